"""Input validation helpers for the GCP mock.

These functions enforce naming rules *independently* of any HTTP handler so
they can be unit-tested in isolation. Each raises an ``ApiError`` subclass
on invalid input; the message names the first rule that was violated.
"""

import ipaddress
import re

from gcpmock.errors import InvalidArgument, RequiredField
from gcpmock.models.storage import DEFAULT_CONTENT_TYPE

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Cloud Storage bucket naming rules:
#   - 3-63 characters
#   - lowercase letters, digits, hyphens, underscores, and periods
#   - must start and end with a letter or digit
#   - must not be an IP address literal
#   - must not start with the reserved "goog" prefix

_MIN_BUCKET_LEN = 3
_MAX_BUCKET_LEN = 63
_BUCKET_CHARS_RE = re.compile(r"^[a-z0-9._\-]+$")
_ALNUM_RE = re.compile(r"^[a-z0-9]$")
_RESERVED_PREFIX = "goog"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_bucket_name(name: str) -> None:
    """Validate a bucket name against Cloud Storage naming rules.

    Args:
        name: The candidate bucket name.

    Raises:
        RequiredField: If the name is empty.
        InvalidArgument: If the name violates a naming rule.
    """
    if not name:
        raise RequiredField("Bucket name is required")

    if len(name) < _MIN_BUCKET_LEN or len(name) > _MAX_BUCKET_LEN:
        raise InvalidArgument("bucket name must be between 3 and 63 characters")

    if not _BUCKET_CHARS_RE.match(name):
        raise InvalidArgument(
            "bucket name can only contain lowercase letters, numbers, "
            "hyphens, underscores, and periods"
        )

    if not _ALNUM_RE.match(name[0]) or not _ALNUM_RE.match(name[-1]):
        raise InvalidArgument("bucket name must start and end with a letter or number")

    if _is_ip_literal(name):
        raise InvalidArgument("bucket name cannot be an IP address")

    if name.startswith(_RESERVED_PREFIX):
        raise InvalidArgument("bucket name cannot start with 'goog' prefix")


def validate_object_name(name: str | None) -> str:
    """Validate an object name. Any non-empty string, ``/`` included, is accepted.

    Returns:
        The name unchanged.

    Raises:
        RequiredField: If the name is missing or empty.
    """
    if not name:
        raise RequiredField("Object name is required")
    return name


def require_name(value: str | None, what: str) -> str:
    """Require a non-empty resource name.

    Args:
        value: The candidate name.
        what: Human-readable resource kind for the error message,
            e.g. ``"Instance"``.

    Returns:
        The name unchanged.

    Raises:
        RequiredField: If the value is missing or empty.
    """
    if not value:
        raise RequiredField(f"{what} name is required")
    return value


def default_content_type(value: str | None) -> str:
    """Return *value*, or ``application/octet-stream`` when it is empty."""
    value = (value or "").strip()
    return value or DEFAULT_CONTENT_TYPE


def _is_ip_literal(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True
