"""JSON response shaping and the Google API error envelope.

Both API families wrap errors as ``{"error": {"code", "message", "errors"}}``.
The Cloud SQL Admin flavor adds a canonical ``status`` string.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse, Response

from gcpmock.errors import ApiError
from gcpmock.models.base import WireModel
from gcpmock.routing import SQL

JSON_CONTENT_TYPE = "application/json; charset=UTF-8"

# Headers Google front ends attach to every JSON API response.
JSON_HEADERS = {
    "Cache-Control": "no-cache, no-store, max-age=0, must-revalidate",
    "Vary": "Origin, X-Origin",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, PATCH, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class GoogleJSONResponse(JSONResponse):
    media_type = JSON_CONTENT_TYPE


def json_response(data: WireModel | dict[str, Any], status: int = 200) -> Response:
    """Build a JSON API response with the standard Google headers.

    Args:
        data: A wire model (rendered via ``to_wire``) or a plain dict.
        status: HTTP status code.

    Returns:
        The response.
    """
    body = data.to_wire() if isinstance(data, WireModel) else data
    return GoogleJSONResponse(content=body, status_code=status, headers=dict(JSON_HEADERS))


def no_content() -> Response:
    """A 204 response with no body."""
    return Response(status_code=204)


def render_error(exc: ApiError, flavor: str) -> dict[str, Any]:
    """Render the nested error envelope for *exc*.

    Args:
        exc: The error to render.
        flavor: ``storage`` or ``sql``.

    Returns:
        The envelope as a dict.
    """
    error: dict[str, Any] = {
        "code": exc.http_status,
        "message": exc.message,
        "errors": [
            {
                "domain": "global",
                "reason": exc.reason_for(flavor),
                "message": exc.message,
            }
        ],
    }
    if flavor == SQL:
        error["status"] = exc.status
    return {"error": error}


def error_response(exc: ApiError, flavor: str) -> Response:
    """Build the error envelope response for *exc* in the given flavor."""
    return json_response(render_error(exc, flavor), status=exc.http_status)
