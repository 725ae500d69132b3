"""Common plumbing shared by the resource handlers."""

from __future__ import annotations

from typing import TypeVar

from fastapi import FastAPI, Request

from gcpmock.models.base import WireModel, parse_body

M = TypeVar("M", bound=WireModel)


class BaseHandler:
    """Base for handler families.

    All handlers access the store and config from ``app.state``; nothing is
    cached on the handler so a test can swap the store between requests.

    Attributes:
        app: The parent FastAPI application.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app

    @property
    def store(self):
        """Shortcut to the MemoryStore on app.state."""
        return self.app.state.store

    @property
    def config(self):
        """Shortcut to the GcpMockConfig on app.state."""
        return self.app.state.config

    async def read_json(self, request: Request, model: type[M]) -> M:
        """Read the whole request body and decode it into *model*.

        The body is fully buffered here, before any store call, so the store
        lock is never held while waiting on the client.
        """
        body = await request.body()
        return parse_body(model, body)
