"""Wire models for the Cloud Storage and Cloud SQL Admin APIs."""

from gcpmock.models.base import WireModel, format_timestamp, parse_body, utcnow

__all__ = ["WireModel", "format_timestamp", "parse_body", "utcnow"]
