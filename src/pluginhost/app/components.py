"""
Component model, lifecycle states and module resolvers.

A component definition is anything with the component shape: a
``Component``, a mapping, or an object exposing the same attributes::

    {
        "name": "search-index",
        "version": "1.2.0",
        "offers": ["search"],
        "requires": ["storage"],
        "create": create_search_index,
    }

``create(context)`` returns the component's api (or None). When the api has
an ``init`` callable it runs right after creation; a ``destroy`` callable
runs when the component is removed. Both hooks are optional and checked
structurally.

Instead of ``create`` a definition may name a ``module`` reference; the
application resolves it through a ``ComponentResolver`` when the component
is added.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pluginhost.core.errors import ResolutionError, ValidationError
from pluginhost.core.versions import is_valid_version


class ComponentState(str, Enum):
    """Lifecycle state of a registered component."""

    REGISTERED = "registered"
    INITIALIZING = "initializing"
    READY = "ready"
    INIT_FAILED = "init_failed"
    REMOVED = "removed"


class Component(BaseModel):
    """A named, versioned unit with a creation function."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Component name")
    version: str = Field(default="1.0.0", description="Fixed semantic version")
    offers: tuple[str, ...] = Field(default=(), description="Capabilities provided")
    requires: tuple[str, ...] = Field(default=(), description="Capabilities needed before init")
    create: Callable[..., Any] | None = Field(default=None, description="create(context) -> api")
    module: str | None = Field(default=None, description="Reference resolved to `create`")

    @field_validator("version")
    @classmethod
    def _semver(cls, value: str) -> str:
        if not is_valid_version(value):
            raise ValueError(f"not a semantic version: {value!r}")
        return value

    @field_validator("offers", "requires", mode="before")
    @classmethod
    def _capabilities(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @model_validator(mode="after")
    def _has_factory(self) -> Component:
        if self.create is None and not self.module:
            raise ValueError(f"component `{self.name}` needs a `create` function or a `module` reference")
        return self

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def resolved(self) -> bool:
        return self.create is not None

    @classmethod
    def from_definition(cls, definition: Any, default_version: str = "1.0.0") -> Component:
        """Validate ``definition`` into a ``Component``.

        Raises:
            ValidationError: the definition does not have the component shape
        """
        if isinstance(definition, Component):
            return definition

        if isinstance(definition, Mapping):
            data = dict(definition)
        else:
            data = {key: getattr(definition, key) for key in cls.model_fields if hasattr(definition, key)}

        if data.get("version") is None:
            data["version"] = default_version

        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid component definition: {e.errors()[0]['msg']}",
                field="component",
                value=definition,
                cause=e,
            ).with_context(component=data.get("name")) from e


@dataclass
class ComponentInstance:
    """A live component: exists between successful init and removal."""

    name: str
    version: str
    context: Any
    api: Any


def lifecycle_hook(api: Any, name: str) -> Callable[[], Any] | None:
    """Return ``api``'s ``name`` hook when it is callable."""
    if api is None:
        return None
    hook = api.get(name) if isinstance(api, Mapping) else getattr(api, name, None)
    return hook if callable(hook) else None


# =============================================================================
# Resolvers
# =============================================================================


@runtime_checkable
class ComponentResolver(Protocol):
    """Maps a component ``module`` reference to its creation function."""

    def resolve(self, reference: str) -> Callable[..., Any]: ...


class ImportResolver:
    """Resolve ``"package.module:attr"`` references with importlib.

    The attribute defaults to ``create`` when the reference names only a
    module. Dotted attributes are followed.
    """

    def __init__(self, default_attr: str = "create") -> None:
        self.default_attr = default_attr

    def resolve(self, reference: str) -> Callable[..., Any]:
        module_path, _, attr_path = reference.partition(":")
        attr_path = attr_path or self.default_attr

        try:
            obj: Any = importlib.import_module(module_path)
            for part in attr_path.split("."):
                obj = getattr(obj, part)
        except (ImportError, AttributeError, ValueError) as e:
            raise ResolutionError(reference, cause=e) from e

        if not callable(obj):
            raise ResolutionError(reference, f"`{reference}` resolved to non-callable {type(obj).__name__}")
        return obj


class MappingResolver:
    """Resolve references from a fixed mapping."""

    def __init__(self, factories: Mapping[str, Callable[..., Any]]) -> None:
        self._factories = dict(factories)

    def resolve(self, reference: str) -> Callable[..., Any]:
        try:
            return self._factories[reference]
        except KeyError:
            raise ResolutionError(reference) from None


__all__ = [
    "Component",
    "ComponentInstance",
    "ComponentResolver",
    "ComponentState",
    "ImportResolver",
    "MappingResolver",
    "lifecycle_hook",
]
