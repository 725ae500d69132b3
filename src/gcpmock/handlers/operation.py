"""Cloud SQL Admin operation handlers (operations.list and operations.get)."""

from fastapi import Request, Response

from gcpmock.envelope import json_response
from gcpmock.errors import OperationNotFound
from gcpmock.handlers.base import BaseHandler
from gcpmock.models.sqladmin import OperationsList
from gcpmock.routing import PathParams


class OperationHandler(BaseHandler):
    """Handles Cloud SQL operation lookups."""

    async def list_operations(self, request: Request, params: PathParams) -> Response:
        """List operations newest first, filtered by ``?instance=`` when given."""
        instance = request.query_params.get("instance") or None
        return json_response(OperationsList(items=self.store.list_operations(instance)))

    async def get_operation(self, request: Request, params: PathParams) -> Response:
        op = self.store.get_operation(params.operation)
        if op is None:
            raise OperationNotFound(params.operation)
        return json_response(op)
