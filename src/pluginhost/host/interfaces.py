"""Channel objects, interfaces and facades.

Because defining or calling many related channels at once is repetitive,
the host groups channels under a namespace prefix. None of these objects
add dispatch semantics; every method is a pre-bound ``call``.

- ``ChannelCall``: one channel, callable like a function.
- ``ChannelObject``: a ``ChannelCall`` plus chainable ``on_error`` handlers.
- ``InterfaceDefinition``: returned by ``create_interface``; owns the
  implementations, so the host can connect and disconnect all of its
  channels as one unit.
- ``InterfaceClient``: returned by ``get_interface``; call-only.
- ``Facade``: call-only projection of arbitrary channels under custom
  method names.

Interface methods are looked up by name without the version segment::

    iface = host.create_interface("foo", {
        "do_something": do_something,
        "do_another_thing@1.2.5": do_another_thing,
    })
    host.connect_interface(iface)

    foo = host.get_interface("foo", ["do_another_thing@<2.x", "do_something"])
    foo.do_another_thing(2)
    foo.do_bar()  # AttributeError
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from pluginhost.core.errors import ValidationError
from pluginhost.core.versions import base_name
from pluginhost.host.channels import ErrorHook

DispatchFn = Callable[..., Any]


class ChannelCall:
    """A pre-bound dispatch call for one channel."""

    __slots__ = ("channel", "_dispatch", "_on_error")

    def __init__(self, dispatch: DispatchFn, channel: str, on_error: ErrorHook | None = None) -> None:
        self.channel = channel
        self._dispatch = dispatch
        self._on_error = on_error

    def __call__(self, *args: Any) -> Any:
        return self._dispatch(self.channel, args, self._on_error)

    def __repr__(self) -> str:
        return f"<ChannelCall {self.channel}>"


class ChannelObject:
    """Callable handle on one channel with its own subscriber-error handlers.

    Example:
        host.channel("foo").on_error(report).call(1, 2)
    """

    def __init__(self, dispatch: DispatchFn, channel: str) -> None:
        self.channel = channel
        self._handlers: list[ErrorHook] = []
        self.call = ChannelCall(dispatch, channel, self._emit_error)

    def on_error(self, handler: ErrorHook) -> ChannelObject:
        """Add a handler for subscriber errors; returns self for chaining."""
        if not callable(handler):
            raise TypeError("Error handler must be callable")
        self._handlers.append(handler)
        return self

    def _emit_error(self, error: BaseException) -> None:
        for handler in list(self._handlers):
            handler(error)

    def __repr__(self) -> str:
        return f"<ChannelObject {self.channel}>"


class ChannelMethods:
    """Read-only mapping of method names to ``ChannelCall`` objects.

    Methods are reachable as attributes and by item access.
    """

    def __init__(self, methods: Mapping[str, ChannelCall]) -> None:
        object.__setattr__(self, "_methods", dict(methods))

    def __getattr__(self, item: str) -> ChannelCall:
        if item.startswith("_"):
            raise AttributeError(item)
        try:
            return self._methods[item]
        except KeyError:
            raise AttributeError(f"{type(self).__name__} has no method {item!r}") from None

    def __getitem__(self, item: str) -> ChannelCall:
        return self._methods[item]

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __delattr__(self, item: str) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __contains__(self, item: object) -> bool:
        return item in self._methods

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._methods))

    @property
    def method_names(self) -> list[str]:
        return list(self._methods)

    @property
    def channels(self) -> dict[str, str]:
        """Method name -> channel name."""
        return {name: call.channel for name, call in self._methods.items()}


class Facade(ChannelMethods):
    """Call-only projection of arbitrary channels."""

    def __repr__(self) -> str:
        return f"<Facade {self.method_names}>"


class InterfaceClient(ChannelMethods):
    """Call-only view of the channels under an interface prefix."""

    def __init__(self, name: str, methods: Mapping[str, ChannelCall]) -> None:
        super().__init__(methods)
        object.__setattr__(self, "name", name)

    def __repr__(self) -> str:
        return f"<InterfaceClient {self.name} {self.method_names}>"


class InterfaceDefinition(InterfaceClient):
    """Interface that owns its implementations.

    ``implementations`` maps full channel names (``name/key@version``) to a
    function or a ``(function, config)`` pair, ready for ``connect_many``.
    """

    def __init__(self, name: str, methods: Mapping[str, ChannelCall], implementations: Mapping[str, Any]) -> None:
        super().__init__(name, methods)
        object.__setattr__(self, "implementations", MappingProxyType(dict(implementations)))

    def __repr__(self) -> str:
        return f"<InterfaceDefinition {self.name} {self.method_names}>"


# =============================================================================
# Builders
# =============================================================================


def _method_table(dispatch: DispatchFn, methods: Mapping[str, str]) -> dict[str, ChannelCall]:
    if not isinstance(methods, Mapping):
        raise ValidationError("Parameter `methods` must be a mapping", field="methods", value=methods)
    return {method: ChannelCall(dispatch, channel) for method, channel in methods.items()}


def _require_name(name: str) -> str:
    if not isinstance(name, str) or not name:
        raise ValidationError("Argument `name` must be a non-empty string", field="name", value=name)
    return name


def build_facade(dispatch: DispatchFn, methods: Mapping[str, str]) -> Facade:
    return Facade(_method_table(dispatch, methods))


def build_interface_client(dispatch: DispatchFn, name: str, method_names: list[str] | tuple[str, ...]) -> InterfaceClient:
    _require_name(name)
    if not isinstance(method_names, (list, tuple)):
        raise ValidationError("Argument `method_names` must be a list", field="method_names", value=method_names)

    methods = {base_name(key): f"{name}/{key}" for key in method_names}
    return InterfaceClient(name, _method_table(dispatch, methods))


def build_interface_definition(dispatch: DispatchFn, name: str, implementations: Mapping[str, Any]) -> InterfaceDefinition:
    _require_name(name)
    if not isinstance(implementations, Mapping):
        raise ValidationError(
            "Argument `implementations` must be a mapping",
            field="implementations",
            value=implementations,
        )

    prefixed = {f"{name}/{key}": impl for key, impl in implementations.items()}
    methods = {base_name(key): f"{name}/{key}" for key in implementations}
    return InterfaceDefinition(name, _method_table(dispatch, methods), prefixed)


# =============================================================================
# Predicates
# =============================================================================


def is_channel(thing: Any) -> bool:
    return isinstance(thing, ChannelCall)


def is_channel_object(thing: Any) -> bool:
    return isinstance(thing, ChannelObject)


def is_facade(thing: Any) -> bool:
    return isinstance(thing, Facade)


def is_interface_definition(thing: Any) -> bool:
    return isinstance(thing, InterfaceDefinition)


def is_interface_client(thing: Any) -> bool:
    return isinstance(thing, InterfaceClient) and not isinstance(thing, InterfaceDefinition)


def is_interface(thing: Any) -> bool:
    return isinstance(thing, InterfaceClient)


__all__ = [
    "ChannelCall",
    "ChannelObject",
    "ChannelMethods",
    "Facade",
    "InterfaceClient",
    "InterfaceDefinition",
    "build_facade",
    "build_interface_client",
    "build_interface_definition",
    "is_channel",
    "is_channel_object",
    "is_facade",
    "is_interface",
    "is_interface_client",
    "is_interface_definition",
]
