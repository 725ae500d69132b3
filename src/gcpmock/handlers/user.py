"""Cloud SQL Admin user handlers.

Users are addressed by ``(name, host)``. As in the live API, update and
delete take both from the query string:

    PUT    .../instances/{instance}/users?name=bob&host=%
    DELETE .../instances/{instance}/users?name=bob&host=%

A single user can also be read with ``GET .../users/{user}?host=...``.
"""

import logging

from fastapi import Request, Response

from gcpmock.envelope import json_response
from gcpmock.errors import InstanceNotFound, UserNotFound
from gcpmock.handlers.base import BaseHandler
from gcpmock.models.sqladmin import (
    DEFAULT_USER_HOST,
    UserInsertRequest,
    UsersList,
    UserUpdateRequest,
)
from gcpmock.routing import PathParams
from gcpmock.validation import require_name

logger = logging.getLogger(__name__)


class UserHandler(BaseHandler):
    """Handles Cloud SQL user operations."""

    async def list_users(self, request: Request, params: PathParams) -> Response:
        return json_response(UsersList(items=self.store.list_users(params.instance)))

    async def insert_user(self, request: Request, params: PathParams) -> Response:
        """Create a user; the password is stored but never returned."""
        req = await self.read_json(request, UserInsertRequest)
        require_name(req.name, "User")
        _, op = self.store.create_user(params.instance, req)
        logger.info("Created user %s@%s on %s", req.name, req.host or DEFAULT_USER_HOST, params.instance)
        return json_response(op)

    async def get_user(self, request: Request, params: PathParams) -> Response:
        host = request.query_params.get("host") or DEFAULT_USER_HOST
        user = self.store.get_user(params.instance, params.user, host)
        if user is None:
            if self.store.get_instance(params.instance) is None:
                raise InstanceNotFound(params.instance)
            raise UserNotFound(params.instance, params.user, host)
        return json_response(user)

    async def update_user(self, request: Request, params: PathParams) -> Response:
        """Update password and/or host. A changed host re-keys the user."""
        name = require_name(request.query_params.get("name"), "User")
        host = request.query_params.get("host") or None
        req = await self.read_json(request, UserUpdateRequest)
        _, op = self.store.update_user(params.instance, name, host, req)
        return json_response(op)

    async def delete_user(self, request: Request, params: PathParams) -> Response:
        name = require_name(request.query_params.get("name"), "User")
        host = request.query_params.get("host") or None
        op = self.store.delete_user(params.instance, name, host)
        logger.info("Deleted user %s on %s", name, params.instance)
        return json_response(op)
