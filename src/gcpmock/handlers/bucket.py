"""Cloud Storage bucket handlers.

Implements the bucket operations of the JSON API:
    - buckets.list   (GET    /storage/v1/b?project=...)
    - buckets.insert (POST   /storage/v1/b?project=...)
    - buckets.get    (GET    /storage/v1/b/{bucket})
    - buckets.patch  (PATCH  /storage/v1/b/{bucket})
    - buckets.update (PUT    /storage/v1/b/{bucket})
    - buckets.delete (DELETE /storage/v1/b/{bucket})
"""

import logging

from fastapi import Request, Response

from gcpmock.envelope import json_response, no_content
from gcpmock.errors import BucketNotFound
from gcpmock.handlers.base import BaseHandler
from gcpmock.models.storage import BucketInsertRequest, BucketList, BucketUpdateRequest
from gcpmock.routing import PathParams

logger = logging.getLogger(__name__)


class BucketHandler(BaseHandler):
    """Handles Cloud Storage bucket operations."""

    async def list_buckets(self, request: Request, params: PathParams) -> Response:
        """List buckets, filtered by the ``project`` query parameter when given.

        Returns:
            A ``storage#buckets`` listing sorted by name.
        """
        project = request.query_params.get("project") or None
        buckets = self.store.list_buckets(project)
        return json_response(BucketList(items=buckets))

    async def insert_bucket(self, request: Request, params: PathParams) -> Response:
        """Create a bucket.

        The bucket is recorded under the ``project`` query parameter, or the
        configured project when absent.

        Returns:
            The new ``storage#bucket`` with status 200.
        """
        req = await self.read_json(request, BucketInsertRequest)
        bucket = self.store.create_bucket(req, project=request.query_params.get("project") or None)
        logger.info("Created bucket %s", bucket.name)
        return json_response(bucket)

    async def get_bucket(self, request: Request, params: PathParams) -> Response:
        bucket = self.store.get_bucket(params.bucket)
        if bucket is None:
            raise BucketNotFound(params.bucket)
        return json_response(bucket)

    async def update_bucket(self, request: Request, params: PathParams) -> Response:
        """Merge the request body into the bucket (PATCH and PUT alike).

        Fields absent from the body, or sent empty, keep their current value.
        """
        req = await self.read_json(request, BucketUpdateRequest)
        bucket = self.store.update_bucket(params.bucket, req)
        return json_response(bucket)

    async def delete_bucket(self, request: Request, params: PathParams) -> Response:
        """Delete an empty bucket. Returns 204 on success."""
        self.store.delete_bucket(params.bucket)
        logger.info("Deleted bucket %s", params.bucket)
        return no_content()
