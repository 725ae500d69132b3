"""Cloud SQL Admin instance handlers.

Implements:
    - instances.list   (GET    /sql/v1beta4/projects/{project}/instances)
    - instances.insert (POST   /sql/v1beta4/projects/{project}/instances)
    - instances.get    (GET    /sql/v1beta4/projects/{project}/instances/{instance})
    - instances.patch  (PATCH  /sql/v1beta4/projects/{project}/instances/{instance})
    - instances.update (PUT    /sql/v1beta4/projects/{project}/instances/{instance})
    - instances.delete (DELETE /sql/v1beta4/projects/{project}/instances/{instance})

Mutations return the completed ``sql#operation`` rather than the instance.
"""

import logging

from fastapi import Request, Response

from gcpmock.envelope import json_response
from gcpmock.errors import InstanceNotFound
from gcpmock.handlers.base import BaseHandler
from gcpmock.models.sqladmin import InstanceInsertRequest, InstancePatchRequest, InstancesList
from gcpmock.routing import PathParams
from gcpmock.validation import require_name

logger = logging.getLogger(__name__)


class InstanceHandler(BaseHandler):
    """Handles Cloud SQL instance operations."""

    async def list_instances(self, request: Request, params: PathParams) -> Response:
        return json_response(InstancesList(items=self.store.list_instances()))

    async def insert_instance(self, request: Request, params: PathParams) -> Response:
        """Create an instance with a default ``mysql`` database and ``root@%`` user.

        Returns:
            The ``CREATE`` operation.
        """
        req = await self.read_json(request, InstanceInsertRequest)
        require_name(req.name, "Instance")
        _, op = self.store.create_instance(req)
        logger.info("Created instance %s", req.name)
        return json_response(op)

    async def get_instance(self, request: Request, params: PathParams) -> Response:
        instance = self.store.get_instance(params.instance)
        if instance is None:
            raise InstanceNotFound(params.instance)
        return json_response(instance)

    async def update_instance(self, request: Request, params: PathParams) -> Response:
        """Merge settings into the instance (PATCH and PUT alike).

        Returns:
            The ``UPDATE`` operation.
        """
        req = await self.read_json(request, InstancePatchRequest)
        _, op = self.store.update_instance(params.instance, req)
        return json_response(op)

    async def delete_instance(self, request: Request, params: PathParams) -> Response:
        """Delete the instance and everything it owns.

        Returns:
            The ``DELETE`` operation.

        Raises:
            InstanceNotFound: If the instance does not exist.
            DeletionProtected: If ``settings.deletionProtectionEnabled`` is set.
        """
        op = self.store.delete_instance(params.instance)
        logger.info("Deleted instance %s", params.instance)
        return json_response(op)
