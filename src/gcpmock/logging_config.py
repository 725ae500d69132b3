"""Log output setup for the GCP mock.

Two formats are supported: ``text`` for terminals and ``json`` for log
shippers. JSON lines carry the request fields the HTTP middleware passes via
``extra=`` so one access-log line can be joined with the metrics for the
same operation.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from gcpmock.models.base import format_timestamp

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes attached by the access-log middleware.
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "request_id", "operation")


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Timestamps use the same RFC 3339 millisecond form as the API resources.
    Request fields are included only when the record carries them.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": format_timestamp(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in REQUEST_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Send all gcpmock and uvicorn logging to stderr in one format.

    Existing root handlers are replaced, so calling this twice is safe.

    Args:
        level: A ``logging`` level name; unknown names fall back to INFO.
        fmt: ``text`` or ``json``.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(_formatter(fmt))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)
