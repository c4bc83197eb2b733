"""Configuration management for the watcher console.

This module centralizes environment-driven configuration for the gateway,
the session cache, and the console service. It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults.

Highlights
- Strongly‑typed settings with sensible defaults
- One place to discover commonly used environment variables
- Small service‑specific subclasses to keep concerns clear

Usage
- Inject the appropriate config in your entrypoint:
  ``config = ConsoleConfig()``
- Or select dynamically: ``config = get_config("console")``
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class for all components.

    Each field is read from the environment variable of the same name
    (case-insensitive), e.g. ``WATCHER_BACKEND_URL``.

    Notes
    - Add new shared settings here so downstream components inherit them.
    - ``watcher_backend_persists_results`` decides whether a cache miss on
      view-by-id falls through to the backend store or is reported as not
      found straight away.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    watcher_env: str = Field(default="local")

    # Introspection backend
    watcher_backend_url: str = Field(default="http://localhost:8000")
    watcher_request_timeout: float = Field(default=60.0)
    watcher_submit_field: Literal["output", "response"] = Field(default="output")
    watcher_backend_persists_results: bool = Field(default=False)

    # Session cache
    watcher_cache_backend: str = Field(default="memory")
    watcher_redis_url: str = Field(default="redis://localhost:6379")
    watcher_session_ttl_seconds: int = Field(default=86400)

    # Observability
    watcher_tracing_enabled: bool = Field(default=False)
    watcher_otel_exporter: str = Field(default="http://localhost:4318/v1/traces")
    watcher_otel_service_name: str = Field(default="watcher-console")
    watcher_otel_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)

    # Logging
    watcher_log_level: str = Field(default="INFO")
    watcher_log_format: str = Field(default="json")


class GatewayConfig(BaseConfig):
    """Configuration for standalone gateway use (scripts, notebooks).

    Adds the paging defaults used when listing history.
    """

    watcher_history_default_limit: int = Field(default=20)


class ConsoleConfig(GatewayConfig):
    """Configuration for the console service.

    Extends ``GatewayConfig`` with the HTTP port and the header that carries
    the browsing-session identifier.
    """

    watcher_console_port: int = Field(default=9010)
    watcher_session_header: str = Field(default="X-Session-Id")


def get_config(component_name: str) -> BaseConfig:
    """Get configuration for a specific component.

    Parameters
    - component_name: ``gateway`` or ``console``.

    Returns
    - A concrete ``BaseConfig`` subclass pre‑wired to read the right env vars.
    """
    config_map = {
        "gateway": GatewayConfig,
        "console": ConsoleConfig,
    }

    # Default to ``BaseConfig`` to avoid surprising crashes for unknown names.
    config_class = config_map.get(component_name, BaseConfig)
    return config_class()

