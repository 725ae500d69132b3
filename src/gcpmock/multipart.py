"""Decoder for ``multipart/related`` media uploads.

The Cloud Storage JSON API accepts uploads with ``uploadType=multipart`` as
a two-part ``multipart/related`` body: a JSON object resource first, the
object's bytes second. The MIME framing is split by requests-toolbelt's
``MultipartDecoder``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import requests_toolbelt
from pydantic import ValidationError
from requests_toolbelt.multipart.decoder import BodyPart

from gcpmock.errors import InvalidMultipart
from gcpmock.models.storage import DEFAULT_CONTENT_TYPE, ObjectUploadMetadata


@dataclass
class MultipartUpload:
    """The decoded pieces of a multipart upload.

    Attributes:
        name: Object name from the metadata part, if any.
        content_type: Resolved content type of the object.
        metadata: User metadata from the metadata part, if any.
        content: The object's bytes.
    """

    name: str | None
    content_type: str
    metadata: dict[str, str] | None
    content: bytes


def is_multipart(content_type: str | None) -> bool:
    return (content_type or "").lower().startswith("multipart/")


def _has_boundary(content_type: str) -> bool:
    for param in content_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.strip().lower() == "boundary" and value.strip().strip('"'):
            return True
    return False


def parse_multipart_related(content_type: str, body: bytes) -> MultipartUpload:
    """Split a ``multipart/related`` body into metadata and content.

    The content type is taken from the metadata's ``contentType``, then
    from the content part's ``Content-Type`` header, then defaults to
    ``application/octet-stream``.

    Args:
        content_type: The request's ``Content-Type`` header (must carry a
            ``boundary`` parameter).
        body: The raw request body.

    Returns:
        The decoded upload.

    Raises:
        InvalidMultipart: If the boundary is missing, the body does not hold
            exactly two parts, or the first part is not a valid object
            resource.
    """
    if not _has_boundary(content_type):
        raise InvalidMultipart("Failed to parse multipart request: no boundary found in Content-Type")
    try:
        parts = requests_toolbelt.MultipartDecoder(body, content_type).parts
    except (
        requests_toolbelt.NonMultipartContentTypeException,
        requests_toolbelt.ImproperBodyPartContentException,
    ) as exc:
        raise InvalidMultipart(f"Failed to parse multipart request: {exc}") from exc
    if len(parts) != 2:
        raise InvalidMultipart(
            f"Failed to parse multipart request: expected metadata and media parts, got {len(parts)}"
        )

    meta_part, media_part = parts
    try:
        raw = json.loads(meta_part.content) if meta_part.content.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidMultipart(f"Failed to parse multipart request: invalid metadata JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise InvalidMultipart("Failed to parse multipart request: metadata must be a JSON object")
    try:
        meta = ObjectUploadMetadata.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidMultipart(
            f"Failed to parse multipart request: invalid metadata field '{loc}': {first.get('msg')}"
        ) from exc

    return MultipartUpload(
        name=meta.name or None,
        content_type=meta.content_type or _part_type(media_part) or DEFAULT_CONTENT_TYPE,
        metadata=meta.metadata,
        content=media_part.content,
    )


def _part_type(part: BodyPart) -> str:
    """Return a part's ``Content-Type`` header, or an empty string."""
    value = part.headers.get(b"Content-Type", b"")
    return value.decode(part.encoding).strip()
