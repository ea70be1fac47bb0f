"""
Plugin Host: channels, decorators, interfaces and the notification bus.

A *channel* is a single hook defined by a channel name and an optional
semantic version. Implementations (subscribers) are connected to a channel
and consumers call it like a function. When several subscribers are
connected, the one with the highest priority is called; if it raises, the
next one is tried until one succeeds or none are left.

Behavior is layered on top of channels with *decorators*: factories that
receive a continuation and return a wrapper calling it. Decorators are
scoped to one channel and a version range, or registered for every
channel at once.

Usage::

    host = PluginHost()

    host.connect("search/query@1.2.0", query_index, priority=10)
    host.connect("search/query@1.0.0", query_scan)
    host.decorate("search/query", log_queries)

    host.call("search/query@1.x", ["ada lovelace"])

    host.subscribe("channel.*", report_failure)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from pluginhost.core.errors import HostClosedError, ValidationError
from pluginhost.core.events import Event, EventBus, EventHandler
from pluginhost.core.logging import get_logger
from pluginhost.core.settings import PluginHostSettings, get_settings
from pluginhost.core.versions import WILDCARD, parse_channel_name, require_version
from pluginhost.host import interfaces
from pluginhost.host.channels import ChannelMatcher, ChannelTable, ErrorHook, Registration
from pluginhost.host.dispatch import DispatchEngine
from pluginhost.host.interfaces import (
    ChannelObject,
    Facade,
    InterfaceClient,
    InterfaceDefinition,
)

log = get_logger(__name__)

_CONFIG_KEYS = frozenset({"priority", "on_error"})


def _require_priority(priority: Any, channel: str) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError(
            "Priority must be an integer",
            field="priority",
            value=priority,
        ).with_context(channel=channel)
    return priority


def _require_callable(fn: Any, what: str, channel: str) -> None:
    if not callable(fn):
        raise ValidationError(f"{what} must be callable", field="fn", value=fn).with_context(channel=channel)


class PluginHost:
    """Versioned dispatch bus with priority fallback and decorator chains.

    Each host owns its channel table and bus; hosts share nothing.
    """

    def __init__(self, settings: PluginHostSettings | None = None, bus: EventBus | None = None) -> None:
        self.settings = settings or get_settings()
        self._bus = bus or EventBus()
        self._table = ChannelTable()
        self._engine = DispatchEngine(self._table, self._bus, self.settings)
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise HostClosedError()

    def destroy(self) -> None:
        """Release every registration and the bus. The host is unusable afterward."""
        if self._closed:
            return
        self._table.clear()
        self._bus.close()
        self._closed = True
        log.debug("host.destroyed")

    # =========================================================================
    # Subscribers
    # =========================================================================

    def connect(
        self,
        channel: str,
        fn: Callable[..., Any],
        *,
        priority: int = 0,
        on_error: ErrorHook | None = None,
    ) -> None:
        """Connect subscriber ``fn`` to ``channel``.

        The version segment, when present, must be a fully resolved semantic
        version; it defaults to ``settings.default_subscriber_version``.
        Connecting the same function to the same channel again is a no-op.

        Raises:
            ValidationError: malformed name, ``*`` as name, non-semver version,
                non-integer priority or non-callable ``fn``
        """
        self._ensure_open()
        name = parse_channel_name(channel)

        if name.base == WILDCARD:
            raise ValidationError(
                "Channel name cannot be '*'",
                field="channel",
                value=channel,
            ).with_context(channel=channel)

        version = require_version(name.version or self.settings.default_subscriber_version, channel=channel)
        _require_callable(fn, "Subscriber", channel)
        _require_priority(priority, channel)

        registration = self._table.add_subscriber(name.base, fn, version, priority, on_error)
        if registration is None:
            log.debug("channel.already_connected", channel=name.base)
            return

        log.debug("channel.connected", channel=name.base, version=version, priority=priority, id=registration.id)

    def disconnect(self, channel: str, fn: Callable[..., Any]) -> None:
        """Disconnect ``fn`` from ``channel``; no-op when it is not connected."""
        self._ensure_open()
        name = parse_channel_name(channel)
        if self._table.remove_subscriber(name.base, fn):
            log.debug("channel.disconnected", channel=name.base)

    def connect_many(self, implementations: Mapping[str, Any]) -> None:
        """Connect every ``channel -> fn`` or ``channel -> (fn, config)`` entry."""
        for channel, impl in self._implementations(implementations):
            fn, config = impl
            self.connect(channel, fn, **config)

    def disconnect_many(self, implementations: Mapping[str, Any]) -> None:
        for channel, impl in self._implementations(implementations):
            self.disconnect(channel, impl[0])

    @staticmethod
    def _implementations(implementations: Mapping[str, Any]) -> list[tuple[str, tuple[Callable[..., Any], dict[str, Any]]]]:
        if not isinstance(implementations, Mapping):
            raise ValidationError(
                "Implementations must be a mapping",
                field="implementations",
                value=implementations,
            )

        result = []
        for channel, impl in implementations.items():
            if isinstance(impl, (list, tuple)) and len(impl) == 2 and callable(impl[0]):
                fn, config = impl
                if config is None:
                    config = {}
                if not isinstance(config, Mapping) or not set(config) <= _CONFIG_KEYS:
                    raise ValidationError(
                        f"Invalid channel implementation config `{channel}`",
                        field="config",
                        value=config,
                        constraint="keys: priority, on_error",
                    ).with_context(channel=channel)
                result.append((channel, (fn, dict(config))))
            elif callable(impl):
                result.append((channel, (impl, {})))
            else:
                raise ValidationError(
                    f"Invalid channel implementation `{channel}`",
                    field="implementation",
                    value=impl,
                ).with_context(channel=channel)
        return result

    # =========================================================================
    # Decorators
    # =========================================================================

    def decorate(
        self,
        channel: str | Callable[..., Any],
        fn: Callable[..., Any] | None = None,
        *,
        priority: int = 0,
        on_error: ErrorHook | None = None,
    ) -> None:
        """Add a decorator.

        ``decorate(channel, factory)`` scopes the decorator to ``channel``; the
        version segment is a range (default ``settings.default_decorator_range``)
        matched against each candidate subscriber's version.
        ``decorate(factory)`` applies it to every channel and version.

        A factory receives the continuation and returns the wrapper::

            def timing(next_):
                def wrapper(*args):
                    started = time.perf_counter()
                    try:
                        return next_(*args)
                    finally:
                        record(time.perf_counter() - started)
                return wrapper
        """
        self._ensure_open()

        if isinstance(channel, str):
            name = parse_channel_name(channel)
            base = name.base
            version_range = name.version or self.settings.default_decorator_range
            factory = fn
        elif callable(channel) and fn is None:
            base = WILDCARD
            version_range = WILDCARD
            factory = channel
        else:
            raise TypeError("Type of `channel` parameter is not supported")

        _require_callable(factory, "Decorator", base)
        _require_priority(priority, base)

        registration = self._table.add_decorator(base, factory, version_range, priority, on_error)
        if registration is None:
            log.debug("decorator.already_registered", channel=base)
            return

        log.debug("decorator.added", channel=base, version=version_range, priority=priority, id=registration.id)

    def remove_decorator(
        self,
        channel: ChannelMatcher | Callable[..., Any],
        fn: Callable[..., Any] | None = None,
    ) -> int:
        """Remove a decorator.

        ``remove_decorator(channel, factory)`` removes it by exact channel
        name; a compiled regular expression or a predicate over channel names
        removes it from every matching channel. ``remove_decorator(factory)``
        removes a wildcard decorator. Returns the number of removals.
        """
        self._ensure_open()

        if fn is None:
            if not callable(channel):
                raise TypeError("Decorator to remove must be callable")
            return self._table.remove_decorator(WILDCARD, channel)

        if isinstance(channel, str):
            channel = parse_channel_name(channel).base
        elif not isinstance(channel, re.Pattern) and not callable(channel):
            raise TypeError("Type of `channel` parameter is not supported")

        removed = self._table.remove_decorator(channel, fn)
        if removed:
            log.debug("decorator.removed", removed=removed)
        return removed

    # =========================================================================
    # Dispatch
    # =========================================================================

    def call(
        self,
        channel: str,
        args: Sequence[Any] | None = None,
        on_error: ErrorHook | None = None,
    ) -> Any:
        """Call ``channel`` (optionally ``name@range``) with positional ``args``.

        Returns the first successful attempt's value, or None when every
        implementation failed.

        Raises:
            ValidationError: malformed channel name or ``args``
            NoImplementationError: no subscriber satisfies the version range
        """
        self._ensure_open()
        return self._engine.call(channel, args, on_error)

    def _dispatch(self, channel: str, args: tuple[Any, ...], on_error: ErrorHook | None) -> Any:
        return self.call(channel, args, on_error)

    def channel(self, channel: str) -> ChannelObject:
        """Callable handle on ``channel`` with chainable ``on_error``."""
        self._ensure_open()
        parse_channel_name(channel)
        return ChannelObject(self._dispatch, channel)

    # =========================================================================
    # Interfaces & Facades
    # =========================================================================

    def create_interface(self, name: str, implementations: Mapping[str, Any]) -> InterfaceDefinition:
        """Group ``implementations`` under channels ``name/<key>``.

        Nothing is connected until ``connect_interface`` is called.
        """
        self._ensure_open()
        self._implementations(implementations)
        return interfaces.build_interface_definition(self._dispatch, name, implementations)

    def connect_interface(self, iface: InterfaceDefinition) -> None:
        if not interfaces.is_interface_definition(iface):
            raise ValidationError("Not an interface definition", field="iface", value=iface)
        self.connect_many(iface.implementations)
        log.debug("interface.connected", interface=iface.name, methods=iface.method_names)

    def disconnect_interface(self, iface: InterfaceDefinition) -> None:
        if not interfaces.is_interface_definition(iface):
            raise ValidationError("Not an interface definition", field="iface", value=iface)
        self.disconnect_many(iface.implementations)
        log.debug("interface.disconnected", interface=iface.name)

    def get_interface(self, name: str, method_names: Sequence[str]) -> InterfaceClient:
        """Call-only client for ``name/<method>`` channels; registers nothing."""
        self._ensure_open()
        return interfaces.build_interface_client(self._dispatch, name, method_names)

    def create_facade(self, methods: Mapping[str, str]) -> Facade:
        """Call-only object mapping custom method names to channel names."""
        self._ensure_open()
        return interfaces.build_facade(self._dispatch, methods)

    is_channel = staticmethod(interfaces.is_channel)
    is_channel_object = staticmethod(interfaces.is_channel_object)
    is_facade = staticmethod(interfaces.is_facade)
    is_interface = staticmethod(interfaces.is_interface)
    is_interface_client = staticmethod(interfaces.is_interface_client)
    is_interface_definition = staticmethod(interfaces.is_interface_definition)

    # =========================================================================
    # Bus
    # =========================================================================

    @property
    def bus(self) -> EventBus:
        return self._bus

    def subscribe(self, pattern: str, handler: EventHandler) -> str:
        self._ensure_open()
        return self._bus.subscribe(pattern, handler)

    def once(self, pattern: str, handler: EventHandler) -> str:
        self._ensure_open()
        return self._bus.once(pattern, handler)

    def unsubscribe(self, subscription_id: str) -> bool:
        self._ensure_open()
        return self._bus.unsubscribe(subscription_id)

    def publish(self, event: Event | str, source: str = "host", **payload: Any) -> Event:
        """Publish an ``Event``, or build one from a topic and keyword payload."""
        self._ensure_open()
        if isinstance(event, Event):
            self._bus.publish(event)
            return event
        return self._bus.emit(event, source, **payload)

    # =========================================================================
    # Introspection
    # =========================================================================

    def identify(self, fn: Callable[..., Any]) -> str:
        """Structural id of ``fn``."""
        self._ensure_open()
        return self._table.identities.identify(fn)

    def subscribers(self, channel: str) -> list[Registration]:
        """Subscribers of ``channel`` (all versions), ascending priority."""
        self._ensure_open()
        return self._table.subscribers(parse_channel_name(channel).base)

    def decorators(self, channel: str) -> list[Registration]:
        """Channel-scoped and wildcard decorators of ``channel``, ascending priority."""
        self._ensure_open()
        return self._table.decorators(parse_channel_name(channel).base)

    def has_subscribers(self, channel: str) -> bool:
        self._ensure_open()
        name = parse_channel_name(channel)
        version_range = name.version or self.settings.default_call_range
        return bool(self._table.subscribers(name.base, version_range))

    def channel_names(self) -> list[str]:
        self._ensure_open()
        return self._table.channel_names()


__all__ = ["PluginHost"]
