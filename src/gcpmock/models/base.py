"""Shared pydantic plumbing for the wire models.

Google JSON APIs use camelCase field names, serialize 64-bit integers as
JSON strings, and emit RFC 3339 timestamps in UTC with a ``Z`` suffix.
``WireModel`` and the annotated types below encode those rules once so the
resource modules only declare fields.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer, ValidationError
from pydantic.alias_generators import to_camel

from gcpmock.errors import InvalidArgument, ParseError


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 UTC with millisecond precision.

    Naive datetimes are assumed to already be UTC.

    Args:
        value: The datetime to format.

    Returns:
        A string such as ``2024-05-01T12:00:00.123Z``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


# int64 fields the APIs declare with ``format: int64`` travel as strings.
# Pydantic's lax mode already accepts numeric strings on input.
WireInt = Annotated[int, PlainSerializer(lambda v: str(v), return_type=str, when_used="json")]

Timestamp = Annotated[
    datetime, PlainSerializer(format_timestamp, return_type=str, when_used="json")
]


class WireModel(BaseModel):
    """Base model for every resource and request body.

    Fields are declared in snake_case and exposed in camelCase. Unknown
    request fields are ignored, mirroring the live APIs' tolerance.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Render the model as a JSON-compatible dict with camelCase keys.

        ``None`` fields are omitted, matching ``omitempty`` on the wire.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_body(model: type[WireModel], body: bytes) -> Any:
    """Decode a JSON request body into a request model.

    An empty body decodes as ``{}`` so that optional-only requests succeed.

    Args:
        model: The request model class.
        body: Raw request body bytes.

    Returns:
        An instance of ``model``.

    Raises:
        ParseError: If the body is not a JSON object.
        InvalidArgument: If a field has the wrong type.
    """
    if not body.strip():
        data: Any = {}
    else:
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ParseError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError("Invalid JSON body: expected an object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidArgument(f"Invalid value for field '{loc}': {first.get('msg')}") from exc
