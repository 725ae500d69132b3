"""Configuration loading and Pydantic models for the GCP mock.

Configuration is layered: built-in defaults, then an optional YAML file,
then ``GCP_MOCK_*`` environment variables (read by pydantic-settings). The
CLI applies its flags last.
"""

import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "GCP_MOCK_"

_LOG_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


class ServerConfig(BaseModel):
    """HTTP listener and runtime configuration.

    Attributes:
        base_url: Prefix for ``selfLink`` values. Empty means
            ``http://localhost:<port>``.
        shutdown_timeout: Seconds to wait for in-flight requests on shutdown.
        idle_timeout: Seconds an idle keep-alive connection is held open.
    """

    host: str = "0.0.0.0"
    port: int = 8080
    base_url: str = ""
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout: float = 30.0
    idle_timeout: float = 60.0


class ProjectConfig(BaseModel):
    """The single project identity the mock serves."""

    id: str = "playground"
    number: int = 123456789012


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = True


class GcpMockConfig(BaseModel):
    """Top-level GCP mock configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @property
    def base_url(self) -> str:
        """The effective self-link prefix."""
        if self.server.base_url:
            return self.server.base_url.rstrip("/")
        return f"http://localhost:{self.server.port}"


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------


def parse_duration(value: str | int | float) -> float:
    """Parse a duration such as ``30``, ``30s``, ``2m`` or ``500ms`` into seconds.

    Raises:
        ValueError: If the value is not a recognised duration.
    """
    if isinstance(value, (int, float)):
        return float(value)
    m = _DURATION_RE.match(value)
    if m is None:
        raise ValueError(f"invalid duration: {value!r}")
    return float(m.group(1)) * _DURATION_UNITS[m.group(2)]


def normalize_log_level(value: str) -> str:
    """Map ``debug|info|warn|error`` (any case) to a ``logging`` level name.

    Raises:
        ValueError: If the level is unknown.
    """
    level = _LOG_LEVELS.get(value.strip().lower())
    if level is None:
        raise ValueError(f"invalid log level: {value!r} (expected debug, info, warn or error)")
    return level


# ---------------------------------------------------------------------------
# YAML sections
# ---------------------------------------------------------------------------


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    result: dict[str, Any] = {}
    for key in ("host", "port", "base_url", "log_format"):
        if key in data:
            result[key] = data[key]
    if "log_level" in data:
        result["log_level"] = normalize_log_level(str(data["log_level"]))
    for key in ("shutdown_timeout", "idle_timeout"):
        if key in data:
            result[key] = parse_duration(data[key])
    return result


def _parse_project(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the project section from YAML data."""
    if data is None:
        return {}
    return {key: data[key] for key in ("id", "number") if key in data}


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {"metrics": data.get("metrics", True)}


def load_config(path: Path) -> GcpMockConfig:
    """Load a GcpMockConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated GcpMockConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If a value cannot be parsed.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return GcpMockConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        project=ProjectConfig(**_parse_project(raw.get("project"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )


# ---------------------------------------------------------------------------
# Environment layer
# ---------------------------------------------------------------------------


class EnvOverrides(BaseSettings):
    """The ``GCP_MOCK_*`` environment variables.

    Unset or empty variables stay ``None`` and leave the config untouched.
    Type errors surface as ``pydantic.ValidationError`` (a ``ValueError``).
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
    )

    host: str | None = None
    port: int | None = None
    base_url: str | None = None
    log_level: str | None = None
    log_format: Literal["text", "json"] | None = None
    shutdown_timeout: float | None = None
    idle_timeout: float | None = None
    project: str | None = None
    project_number: int | None = None
    metrics: bool | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def coerce_level(cls, value: Any) -> str:
        return normalize_log_level(str(value))

    @field_validator("shutdown_timeout", "idle_timeout", mode="before")
    @classmethod
    def coerce_duration(cls, value: Any) -> float:
        return parse_duration(value)


# EnvOverrides field -> (config section, field in that section)
_ENV_TARGETS = {
    "host": ("server", "host"),
    "port": ("server", "port"),
    "base_url": ("server", "base_url"),
    "log_level": ("server", "log_level"),
    "log_format": ("server", "log_format"),
    "shutdown_timeout": ("server", "shutdown_timeout"),
    "idle_timeout": ("server", "idle_timeout"),
    "project": ("project", "id"),
    "project_number": ("project", "number"),
    "metrics": ("observability", "metrics"),
}


def apply_env_overrides(config: GcpMockConfig) -> GcpMockConfig:
    """Overlay ``GCP_MOCK_*`` environment variables onto *config* in place.

    Args:
        config: The configuration to update.

    Returns:
        The same config object, for chaining.

    Raises:
        ValueError: If a variable holds an unparseable value.
    """
    overrides = EnvOverrides()
    for name, value in overrides.model_dump(exclude_none=True).items():
        section, field = _ENV_TARGETS[name]
        setattr(getattr(config, section), field, value)
    return config
