"""Common utilities shared across the console.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.
- ``tracing``: OpenTelemetry setup for the console service.

Import pattern:
- from libs.common.config import BaseConfig
- from libs.common.logging import configure_logging
"""
