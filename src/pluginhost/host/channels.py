"""Channel table: subscriber and decorator registrations per channel.

Every unique function gets a ``Descriptor`` that records which channels it
implements and which it decorates. A registration is unique per
(channel, function id); subscribers and decorators are tracked separately,
so one function may do both on the same channel. A descriptor is dropped
as soon as it neither implements nor decorates anything.

Decorators registered for every channel live in a pool under the
``WILDCARD`` key.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pluginhost.core.identity import FunctionIdentityRegistry
from pluginhost.core.versions import WILDCARD, satisfies

ErrorHook = Callable[[BaseException], Any]
ChannelMatcher = Union[str, re.Pattern, Callable[[str], bool]]


class RegistrationKind(str, Enum):
    SUBSCRIBER = "subscriber"
    DECORATOR = "decorator"


@dataclass
class Descriptor:
    """Bookkeeping for one unique function."""

    id: str
    fn: Callable[..., Any]
    channels: set[str] = field(default_factory=set)
    decorated: set[str] = field(default_factory=set)

    @property
    def orphaned(self) -> bool:
        return not self.channels and not self.decorated


@dataclass(frozen=True)
class Registration:
    """A subscriber or decorator bound to one channel.

    For subscribers ``version`` is a fixed semantic version; for decorators
    it is a range (``WILDCARD`` for the global pool).
    """

    id: str
    kind: RegistrationKind
    channel: str
    version: str
    fn: Callable[..., Any]
    priority: int = 0
    on_error: ErrorHook | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.channel == WILDCARD


def prioritized(registrations: Iterable[Registration]) -> list[Registration]:
    """Sort ascending by priority; ties keep registration order."""
    return sorted(registrations, key=lambda registration: registration.priority)


class ChannelTable:
    """Per-channel subscriber and decorator maps plus the descriptor index."""

    def __init__(self, identities: FunctionIdentityRegistry | None = None) -> None:
        self.identities = identities or FunctionIdentityRegistry()
        self._subscribers: dict[str, dict[str, Registration]] = {}
        self._decorators: dict[str, dict[str, Registration]] = {}
        self._descriptors: dict[str, Descriptor] = {}

    # =========================================================================
    # Descriptors
    # =========================================================================

    def descriptor(self, fn: Callable[..., Any]) -> Descriptor | None:
        return self._descriptors.get(self.identities.identify(fn))

    def _ensure_descriptor(self, fn_id: str, fn: Callable[..., Any]) -> Descriptor:
        descriptor = self._descriptors.get(fn_id)
        if descriptor is None:
            descriptor = Descriptor(id=fn_id, fn=fn)
            self._descriptors[fn_id] = descriptor
        return descriptor

    def _clean_up_descriptor(self, fn_id: str) -> None:
        descriptor = self._descriptors.get(fn_id)
        if descriptor is not None and descriptor.orphaned:
            del self._descriptors[fn_id]

    @property
    def descriptor_count(self) -> int:
        return len(self._descriptors)

    # =========================================================================
    # Subscribers
    # =========================================================================

    def add_subscriber(
        self,
        channel: str,
        fn: Callable[..., Any],
        version: str,
        priority: int = 0,
        on_error: ErrorHook | None = None,
    ) -> Registration | None:
        """Register ``fn`` on ``channel``. Returns None when already registered."""
        fn_id = self.identities.identify(fn)
        registrations = self._subscribers.setdefault(channel, {})

        if fn_id in registrations:
            return None

        descriptor = self._ensure_descriptor(fn_id, fn)
        registration = Registration(
            id=fn_id,
            kind=RegistrationKind.SUBSCRIBER,
            channel=channel,
            version=version,
            fn=descriptor.fn,
            priority=priority,
            on_error=on_error,
        )
        registrations[fn_id] = registration
        descriptor.channels.add(channel)
        return registration

    def remove_subscriber(self, channel: str, fn: Callable[..., Any]) -> bool:
        fn_id = self.identities.identify(fn)
        descriptor = self._descriptors.get(fn_id)

        if descriptor is None:
            return False

        removed = False
        registrations = self._subscribers.get(channel)
        if registrations is not None and fn_id in registrations:
            del registrations[fn_id]
            descriptor.channels.discard(channel)
            removed = True
            if not registrations:
                del self._subscribers[channel]

        self._clean_up_descriptor(fn_id)
        return removed

    def subscribers(self, channel: str, version_range: str | None = None) -> list[Registration]:
        """Subscribers on ``channel`` whose version satisfies ``version_range``.

        Sorted ascending by priority, i.e. the fallback list read backwards.
        """
        registrations = self._subscribers.get(channel, {}).values()
        if version_range is not None:
            registrations = [r for r in registrations if satisfies(r.version, version_range)]
        return prioritized(registrations)

    # =========================================================================
    # Decorators
    # =========================================================================

    def add_decorator(
        self,
        channel: str,
        fn: Callable[..., Any],
        version_range: str,
        priority: int = 0,
        on_error: ErrorHook | None = None,
    ) -> Registration | None:
        """Register decorator ``fn`` on ``channel`` (or ``WILDCARD``)."""
        fn_id = self.identities.identify(fn)
        registrations = self._decorators.setdefault(channel, {})

        if fn_id in registrations:
            return None

        descriptor = self._ensure_descriptor(fn_id, fn)
        registration = Registration(
            id=fn_id,
            kind=RegistrationKind.DECORATOR,
            channel=channel,
            version=WILDCARD if channel == WILDCARD else version_range,
            fn=descriptor.fn,
            priority=priority,
            on_error=on_error,
        )
        registrations[fn_id] = registration
        descriptor.decorated.add(channel)
        return registration

    def remove_decorator(self, matcher: ChannelMatcher, fn: Callable[..., Any]) -> int:
        """Remove ``fn`` from every decorated channel ``matcher`` selects.

        ``matcher`` is an exact channel name (``WILDCARD`` for the pool), a
        compiled regular expression searched against channel names, or a
        predicate over channel names. Pattern and predicate matchers never
        select the wildcard pool. Returns the number of removals.
        """
        fn_id = self.identities.identify(fn)
        descriptor = self._descriptors.get(fn_id)

        if descriptor is None:
            return 0

        if isinstance(matcher, str):
            names = [matcher]
        elif isinstance(matcher, re.Pattern):
            names = [name for name in self._decorators if name != WILDCARD and matcher.search(name)]
        elif callable(matcher):
            names = [name for name in self._decorators if name != WILDCARD and matcher(name)]
        else:
            raise TypeError(f"Unsupported channel matcher: {matcher!r}")

        removed = 0
        for name in names:
            registrations = self._decorators.get(name)
            if registrations is not None and fn_id in registrations:
                del registrations[fn_id]
                descriptor.decorated.discard(name)
                removed += 1
                if not registrations:
                    del self._decorators[name]

        self._clean_up_descriptor(fn_id)
        return removed

    def decorators(self, channel: str, version: str | None = None) -> list[Registration]:
        """Decorators that apply to a subscriber of ``channel`` fixed at ``version``.

        Channel-scoped decorators are kept when ``version`` satisfies their
        range (all of them when ``version`` is None); every wildcard decorator
        is kept unconditionally. Sorted ascending by priority.
        """
        merged: dict[str, Registration] = {}

        for registration in self._decorators.get(channel, {}).values():
            if version is None or satisfies(version, registration.version):
                merged[registration.id] = registration

        if channel != WILDCARD:
            merged.update(self._decorators.get(WILDCARD, {}))

        return prioritized(merged.values())

    # =========================================================================
    # Introspection
    # =========================================================================

    def channel_names(self) -> list[str]:
        """Channels with at least one subscriber."""
        return sorted(self._subscribers)

    def decorated_channel_names(self) -> list[str]:
        return sorted(self._decorators)

    def clear(self) -> None:
        self._subscribers.clear()
        self._decorators.clear()
        self._descriptors.clear()
        self.identities.clear()


__all__ = [
    "ChannelMatcher",
    "ChannelTable",
    "Descriptor",
    "ErrorHook",
    "Registration",
    "RegistrationKind",
    "prioritized",
]
