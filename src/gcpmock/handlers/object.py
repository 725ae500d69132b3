"""Cloud Storage object handlers.

Implements the object operations of the JSON API:
    - objects.list     (GET    /storage/v1/b/{bucket}/o?prefix=&delimiter=)
    - objects.insert   (POST   /upload/storage/v1/b/{bucket}/o?name=...)
    - objects.get      (GET    /storage/v1/b/{bucket}/o/{object...}[?alt=media])
    - objects.patch    (PATCH  /storage/v1/b/{bucket}/o/{object...})
    - objects.update   (PUT    /storage/v1/b/{bucket}/o/{object...})
    - objects.delete   (DELETE /storage/v1/b/{bucket}/o/{object...})
    - media download   (GET    /download/storage/v1/b/{bucket}/o/{object...})
    - path-style media (GET    /{bucket}/{object...})

Uploads are either "simple" (the body is the object's bytes and the
``Content-Type`` header is the object's content type) or
``multipart/related`` (JSON metadata part followed by a media part).
"""

import logging

from fastapi import Request, Response

from gcpmock.envelope import json_response, no_content
from gcpmock.errors import BucketNotFound, ObjectNotFound
from gcpmock.handlers.base import BaseHandler
from gcpmock.models.storage import Object, ObjectList, ObjectUpdateRequest
from gcpmock.multipart import is_multipart, parse_multipart_related
from gcpmock.routing import PathParams
from gcpmock.validation import default_content_type, validate_object_name

logger = logging.getLogger(__name__)

_META_PARAM_PREFIX = "x-goog-meta-"


def _query_metadata(request: Request) -> dict[str, str] | None:
    """Collect ``x-goog-meta-<key>`` query parameters as user metadata."""
    metadata = {
        key[len(_META_PARAM_PREFIX):]: value
        for key, value in request.query_params.items()
        if key.lower().startswith(_META_PARAM_PREFIX) and len(key) > len(_META_PARAM_PREFIX)
    }
    return metadata or None


def media_response(obj: Object, content: bytes) -> Response:
    """Serve raw object content with its content type, entity tag and hashes.

    Args:
        obj: Object metadata.
        content: Object bytes.

    Returns:
        A 200 response whose body is *content*.
    """
    headers = {
        "Content-Type": obj.content_type,
        "ETag": obj.etag,
        "X-Goog-Generation": str(obj.generation),
        "X-Goog-Metageneration": str(obj.metageneration),
        "X-Goog-Hash": f"crc32c={obj.crc32c},md5={obj.md5_hash}",
        "X-Goog-Stored-Content-Length": str(obj.size),
    }
    return Response(content=content, status_code=200, headers=headers)


class ObjectHandler(BaseHandler):
    """Handles Cloud Storage object operations."""

    async def list_objects(self, request: Request, params: PathParams) -> Response:
        """List objects with optional ``prefix`` and ``delimiter``.

        Returns:
            A ``storage#objects`` listing. ``prefixes`` is omitted when empty.
        """
        prefix = request.query_params.get("prefix", "")
        delimiter = request.query_params.get("delimiter", "")
        items, prefixes = self.store.list_objects(params.bucket, prefix, delimiter)
        return json_response(ObjectList(items=items, prefixes=prefixes or None))

    async def insert_object(self, request: Request, params: PathParams) -> Response:
        """Upload an object (simple or ``multipart/related``).

        The object name comes from the ``name`` query parameter, else from
        the metadata part's ``name``. Re-uploading identical bytes and
        metadata returns the existing object with its original generation.

        Returns:
            The stored ``storage#object``.

        Raises:
            BucketNotFound: If the bucket does not exist.
            InvalidMultipart: If a multipart body cannot be decoded.
            RequiredField: If no object name was supplied.
        """
        body = await request.body()
        if self.store.get_bucket(params.bucket) is None:
            raise BucketNotFound(params.bucket)

        header_type = request.headers.get("content-type")
        name = request.query_params.get("name") or None
        if is_multipart(header_type):
            upload = parse_multipart_related(header_type, body)
            name = name or upload.name
            content_type = upload.content_type
            content = upload.content
            metadata = upload.metadata
        else:
            content_type = default_content_type(header_type)
            content = body
            metadata = _query_metadata(request)

        name = validate_object_name(name)
        obj = self.store.create_object(params.bucket, name, content_type, content, metadata)
        logger.info("Uploaded %s/%s (%d bytes)", params.bucket, name, obj.size)
        return json_response(obj)

    async def get_object(self, request: Request, params: PathParams) -> Response:
        """Return object metadata, or the object's bytes when ``alt=media``."""
        if request.query_params.get("alt") == "media":
            return self._media(params.bucket, params.object)
        validate_object_name(params.object)
        obj = self.store.get_object(params.bucket, params.object)
        if obj is None:
            raise ObjectNotFound(params.bucket, params.object)
        return json_response(obj)

    async def download_object(self, request: Request, params: PathParams) -> Response:
        """Serve object bytes from the ``/download`` endpoint."""
        return self._media(params.bucket, params.object)

    async def path_style_get(self, request: Request, params: PathParams) -> Response:
        """Serve object bytes for ``GET /{bucket}/{object...}``.

        Unlike the JSON endpoints, a missing bucket is reported as such
        rather than as a missing object.
        """
        if self.store.get_bucket(params.bucket) is None:
            raise BucketNotFound(params.bucket)
        return self._media(params.bucket, params.object)

    async def update_object(self, request: Request, params: PathParams) -> Response:
        """Merge user metadata into an object (PATCH and PUT alike).

        Bumps metageneration; content and generation are unchanged.
        """
        req = await self.read_json(request, ObjectUpdateRequest)
        obj = self.store.update_object(params.bucket, params.object, req)
        return json_response(obj)

    async def delete_object(self, request: Request, params: PathParams) -> Response:
        """Delete an object. Returns 204 on success."""
        self.store.delete_object(params.bucket, params.object)
        logger.info("Deleted object %s/%s", params.bucket, params.object)
        return no_content()

    def _media(self, bucket: str, name: str) -> Response:
        validate_object_name(name)
        found = self.store.get_object_with_content(bucket, name)
        if found is None:
            raise ObjectNotFound(bucket, name)
        obj, content = found
        return media_response(obj, content)
