"""Cloud SQL Admin database handlers.

Implements databases.list/insert/get/patch/update/delete under
``/sql/v1beta4/projects/{project}/instances/{instance}/databases``.
"""

from fastapi import Request, Response

from gcpmock.envelope import json_response
from gcpmock.errors import DatabaseNotFound, InstanceNotFound
from gcpmock.handlers.base import BaseHandler
from gcpmock.models.sqladmin import DatabaseInsertRequest, DatabasePatchRequest, DatabasesList
from gcpmock.routing import PathParams
from gcpmock.validation import require_name


class DatabaseHandler(BaseHandler):
    """Handles Cloud SQL database operations."""

    async def list_databases(self, request: Request, params: PathParams) -> Response:
        return json_response(DatabasesList(items=self.store.list_databases(params.instance)))

    async def insert_database(self, request: Request, params: PathParams) -> Response:
        req = await self.read_json(request, DatabaseInsertRequest)
        require_name(req.name, "Database")
        _, op = self.store.create_database(params.instance, req)
        return json_response(op)

    async def get_database(self, request: Request, params: PathParams) -> Response:
        db = self.store.get_database(params.instance, params.database)
        if db is None:
            if self.store.get_instance(params.instance) is None:
                raise InstanceNotFound(params.instance)
            raise DatabaseNotFound(params.instance, params.database)
        return json_response(db)

    async def update_database(self, request: Request, params: PathParams) -> Response:
        """Merge charset/collation (PATCH and PUT alike); empty values are ignored."""
        req = await self.read_json(request, DatabasePatchRequest)
        _, op = self.store.update_database(params.instance, params.database, req)
        return json_response(op)

    async def delete_database(self, request: Request, params: PathParams) -> Response:
        op = self.store.delete_database(params.instance, params.database)
        return json_response(op)
