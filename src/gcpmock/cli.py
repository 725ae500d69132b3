"""CLI entry point for the GCP mock."""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from gcpmock.config import (
    GcpMockConfig,
    apply_env_overrides,
    load_config,
    normalize_log_level,
)
from gcpmock.logging_config import configure_logging
from gcpmock.server import create_app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="gcpmock",
        description="gcpmock - local mock of the Cloud Storage and Cloud SQL Admin APIs",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an optional YAML configuration file",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to (overrides config and GCP_MOCK_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides config and GCP_MOCK_PORT)",
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Project id the mock serves (default: playground)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warn", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=None,
        help="Graceful shutdown timeout in seconds (default: 30)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> GcpMockConfig:
    """Layer defaults, the YAML file, ``GCP_MOCK_*`` variables and CLI flags.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
        ValueError: If any layer holds an invalid value.
    """
    config = load_config(args.config) if args.config is not None else GcpMockConfig()
    apply_env_overrides(config)

    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.project is not None:
        config.project.id = args.project
    if args.log_level is not None:
        config.server.log_level = normalize_log_level(args.log_level)
    if args.log_format is not None:
        config.server.log_format = args.log_format
    if args.shutdown_timeout is not None:
        config.server.shutdown_timeout = args.shutdown_timeout
    return config


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the gcpmock CLI.

    Builds the configuration, configures logging and serves the app with
    uvicorn. SIGINT/SIGTERM trigger uvicorn's graceful shutdown, bounded by
    the configured shutdown timeout.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    logger = logging.getLogger("gcpmock")

    try:
        config = build_config(args)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    configure_logging(
        level=config.server.log_level,
        fmt=config.server.log_format,
    )

    logger.info(
        "Starting gcpmock on %s:%d (project=%s)",
        config.server.host,
        config.server.port,
        config.project.id,
    )

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=int(config.server.shutdown_timeout),
        timeout_keep_alive=int(config.server.idle_timeout),
    )


if __name__ == "__main__":
    main()
