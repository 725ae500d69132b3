"""GCP API mock: in-memory Cloud Storage and Cloud SQL Admin emulator."""

__version__ = "0.1.0"
