"""
Structured error types for the plugin host.

Provides a typed error hierarchy with rich metadata for classification,
reporting, and root cause analysis through error chaining.

Every error raised by the host or the application extends PluginHostError
and carries:
- **Category:** What kind of error (validation, dispatch, lifecycle, etc.)
- **Context:** Channel, component, version and free-form metadata
- **Cause:** Chained underlying exception for root cause analysis

Propagation policy:
    Caller mistakes (malformed channel names, duplicate components, cycles
    in the dependency graph) are raised synchronously. Failures that
    originate in extension code (decorators, subscribers, component
    lifecycle hooks) are never raised to the caller; they are wrapped in
    ImplementationFailure, DecoratorFailure or LifecycleError and delivered
    through bus notifications.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       PluginHostError                           │
        │             (category, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ValidationError        RegistrationError    DispatchError      │
        │  (VALIDATION)           (REGISTRATION)       (DISPATCH)         │
        │                              │                    │             │
        │                   DuplicateComponentError  NoImplementationError│
        │                                                                 │
        │  ExtensionError         LifecycleError       GraphError         │
        │  (EXTENSION)            (LIFECYCLE)          (GRAPH)            │
        │       │                      │                    │             │
        │  ImplementationFailure  ComponentInitError   GraphCycleError    │
        │  DecoratorFailure       ComponentDestroyError                   │
        │                         HostClosedError                         │
        │                                                                 │
        │  ConfigError                                                    │
        │  (CONFIG)                                                       │
        │       │                                                         │
        │  DecoratorLimitError  ResolutionError                           │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NoImplementationError("foo@1.x")
    >>> error.category
    <ErrorCategory.DISPATCH: 'DISPATCH'>
    >>> error.context.channel
    'foo@1.x'

    >>> try:
    ...     raise RuntimeError("boom")
    ... except RuntimeError as e:
    ...     failure = ImplementationFailure("subscriber failed", cause=e)
    >>> failure.cause
    RuntimeError('boom')
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        VALIDATION: Malformed channel names, versions, arguments
        REGISTRATION: Duplicate or conflicting registrations
        DISPATCH: Channel calls that cannot be routed
        EXTENSION: Failures raised by decorators and subscribers
        LIFECYCLE: Component init/destroy failures, use after destroy
        GRAPH: Dependency graph cannot be linearized
        CONFIG: Settings and resolver problems
        INTERNAL: Bugs, unexpected state
    """

    VALIDATION = "VALIDATION"
    REGISTRATION = "REGISTRATION"
    DISPATCH = "DISPATCH"
    EXTENSION = "EXTENSION"
    LIFECYCLE = "LIFECYCLE"
    GRAPH = "GRAPH"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        channel: Channel name involved, as given by the caller
        component: Component name involved
        version: Semantic version or range involved
        priority: Registration priority involved
        metadata: Additional key-value pairs
    """

    channel: str | None = None
    component: str | None = None
    version: str | None = None
    priority: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["channel", "component", "version", "priority"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PluginHostError(Exception):
    """
    Base exception for all plugin host errors.

    Subclasses set ``default_category`` to classify themselves. The
    optional ``cause`` is chained as ``__cause__`` so tracebacks show the
    original failure.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PluginHostError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ValidationError("bad name").with_context(channel="foo@x")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(PluginHostError):
    """
    Malformed input from the caller: channel names, versions, arguments.

    Always fatal to the call that raised it.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


# =============================================================================
# REGISTRATION / DISPATCH ERRORS
# =============================================================================


class RegistrationError(PluginHostError):
    """Conflicting registration."""

    default_category = ErrorCategory.REGISTRATION


class DuplicateComponentError(RegistrationError):
    """A component with the same name and version is already registered."""

    def __init__(self, name: str, version: str):
        self.component_name = name
        self.component_version = version
        super().__init__(
            f"Component '{name}@{version}' already exists",
            context=ErrorContext(component=name, version=version),
        )


class DispatchError(PluginHostError):
    """A channel call could not be routed."""

    default_category = ErrorCategory.DISPATCH


class NoImplementationError(DispatchError):
    """No subscriber on the channel satisfies the requested version range."""

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(
            f"No implementation connected for channel `{channel}`",
            context=ErrorContext(channel=channel),
        )


# =============================================================================
# EXTENSION ERRORS (never raised to callers)
# =============================================================================


class ExtensionError(PluginHostError):
    """Failure raised by extension code and isolated by the host."""

    default_category = ErrorCategory.EXTENSION


class ImplementationFailure(ExtensionError):
    """A subscriber raised; dispatch falls back to the next candidate."""

    pass


class DecoratorFailure(ExtensionError):
    """A decorator raised; it is bypassed transparently."""

    pass


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class LifecycleError(PluginHostError):
    """Component lifecycle error."""

    default_category = ErrorCategory.LIFECYCLE


class ComponentInitError(LifecycleError):
    """A component failed to initialize."""

    pass


class ComponentDestroyError(LifecycleError):
    """A component's teardown hook raised."""

    pass


class HostClosedError(LifecycleError):
    """The host or application was used after ``destroy()``."""

    def __init__(self, what: str = "plugin host"):
        super().__init__(f"The {what} has been destroyed")


# =============================================================================
# GRAPH ERRORS
# =============================================================================


class GraphError(PluginHostError):
    """Dependency graph error."""

    default_category = ErrorCategory.GRAPH


class GraphCycleError(GraphError):
    """The dependency graph contains a cycle and cannot be linearized."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(
            "Dependency cycle detected: " + " -> ".join(self.cycle),
            context=ErrorContext(metadata={"cycle": self.cycle}),
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(PluginHostError):
    """Configuration error; must be fixed by the integrator."""

    default_category = ErrorCategory.CONFIG


class DecoratorLimitError(ConfigError):
    """More decorators apply to one attempt than ``max_decorators`` allows."""

    def __init__(self, channel: str, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"{count} decorators apply to channel `{channel}`, limit is {limit}",
            context=ErrorContext(channel=channel, metadata={"count": count, "limit": limit}),
        )


class ResolutionError(ConfigError):
    """A component module reference could not be resolved to a callable."""

    def __init__(self, reference: str, message: str | None = None, *, cause: BaseException | None = None):
        self.reference = reference
        super().__init__(
            message or f"Cannot resolve component module `{reference}`",
            context=ErrorContext(metadata={"reference": reference}),
            cause=cause,
        )


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PluginHostError",
    "ValidationError",
    "RegistrationError",
    "DuplicateComponentError",
    "DispatchError",
    "NoImplementationError",
    "ExtensionError",
    "ImplementationFailure",
    "DecoratorFailure",
    "LifecycleError",
    "ComponentInitError",
    "ComponentDestroyError",
    "HostClosedError",
    "GraphError",
    "GraphCycleError",
    "ConfigError",
    "DecoratorLimitError",
    "ResolutionError",
]
