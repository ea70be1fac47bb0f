"""Plugin Host Core -- primitives shared by the dispatch and lifecycle layers.

Architecture::

    errors.py      Structured error hierarchy (PluginHostError and friends)
    logging.py     structlog configuration and loggers
    settings.py    PluginHostSettings (pydantic-settings)
    versions.py    Channel name parsing, node-semver checks
    identity.py    FunctionIdentityRegistry (structural function ids)
    events.py      EventBus and notification topics
"""

from pluginhost.core.errors import (
    ConfigError,
    DecoratorFailure,
    DuplicateComponentError,
    ErrorCategory,
    ErrorContext,
    GraphCycleError,
    HostClosedError,
    ImplementationFailure,
    LifecycleError,
    NoImplementationError,
    PluginHostError,
    ValidationError,
)
from pluginhost.core.events import Event, EventBus
from pluginhost.core.identity import FunctionIdentityRegistry
from pluginhost.core.logging import configure_logging, get_logger
from pluginhost.core.settings import PluginHostSettings, get_settings

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "PluginHostError",
    "ValidationError",
    "DuplicateComponentError",
    "NoImplementationError",
    "ImplementationFailure",
    "DecoratorFailure",
    "LifecycleError",
    "HostClosedError",
    "GraphCycleError",
    "ConfigError",
    # Events
    "Event",
    "EventBus",
    # Identity
    "FunctionIdentityRegistry",
    # Logging
    "configure_logging",
    "get_logger",
    # Settings
    "PluginHostSettings",
    "get_settings",
]
