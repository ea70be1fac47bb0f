"""Settings for the plugin host and the application.

Configuration is explicit, validated and environment-driven. Every field
can be overridden with a ``PLUGINHOST_`` prefixed environment variable or
a ``.env`` file; unknown variables are ignored.

Examples:
    >>> from pluginhost.core.settings import PluginHostSettings
    >>> PluginHostSettings(max_decorators=32).default_call_range
    '1.x'

Fields
──────
log_level                   : structlog log level
json_logs                   : JSON output (True), console (False), auto (None)
default_subscriber_version  : fixed version used when ``connect`` names none
default_decorator_range     : range used when ``decorate`` names none
default_call_range          : range used when ``call`` names none
default_component_version   : version used when a component names none
max_decorators              : most decorators composed in one dispatch attempt
"""

from __future__ import annotations

from functools import lru_cache

import nodesemver
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PluginHostSettings(BaseSettings):
    """Settings shared by ``PluginHost`` and ``Application``."""

    model_config = SettingsConfigDict(
        env_prefix="PLUGINHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Versioning ───────────────────────────────────────────────
    default_subscriber_version: str = "1.0.0"
    default_decorator_range: str = "1.x"
    default_call_range: str = "1.x"
    default_component_version: str = "1.0.0"

    # ── Dispatch ─────────────────────────────────────────────────
    max_decorators: int = Field(
        default=256,
        ge=1,
        description="Most decorators composed in one dispatch attempt",
    )

    @field_validator("default_subscriber_version", "default_component_version")
    @classmethod
    def _fixed_version(cls, value: str) -> str:
        if nodesemver.valid(value, False) is None:
            raise ValueError(f"not a semantic version: {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


@lru_cache(maxsize=1)
def get_settings() -> PluginHostSettings:
    """Return the process-wide settings, read from the environment once."""
    return PluginHostSettings()


__all__ = ["PluginHostSettings", "get_settings"]
