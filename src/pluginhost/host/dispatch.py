"""
Dispatch engine: executes a channel call against the channel table.

Algorithm for ``call("foo@1.x", args)``:

1. Collect the subscribers of ``foo`` whose fixed version satisfies ``1.x``
   and sort them by priority. No candidate raises ``NoImplementationError``.
2. Try candidates from highest to lowest priority. For each attempt build a
   decorator chain: channel decorators whose range the candidate's version
   satisfies plus every wildcard decorator, sorted ascending by priority,
   followed by the candidate itself.
3. Each decorator factory is invoked once with the chain's continuation
   and returns its wrapper. Invoking the continuation pops the next link
   and calls it with the current arguments:

   - a decorator wrapper that raises is bypassed: its error hook runs, a
     ``channel.decorator_failed`` notification is published and the chain
     moves on with the previous value;
   - the subscriber raising ends the attempt: its error hook and the
     caller's ``on_error`` run, a ``channel.subscriber_failed`` notification
     is published and the next lower-priority candidate is tried. Only the
     subscriber's own exception object ends the attempt: a wrapper that
     raises anything else, even while handling that exception, is a
     decorator failure.

   A wrapper that calls the continuation itself nests the rest of the
   chain inside it, so the lowest-priority decorator runs outermost and
   the highest-priority decorator wraps the subscriber directly.
4. When every candidate fails the call returns None. Failures of extension
   code are never raised to the caller once an implementation existed.

Example::

    host.connect("greet", lambda name: f"hello {name}")

    def shout(next_):
        def wrapper(name):
            return next_(name).upper()
        return wrapper

    host.decorate("greet", shout)
    host.call("greet", ["ada"])  # "HELLO ADA"
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pluginhost.core import events
from pluginhost.core.errors import (
    DecoratorFailure,
    DecoratorLimitError,
    ErrorContext,
    ImplementationFailure,
    NoImplementationError,
    PluginHostError,
    ValidationError,
)
from pluginhost.core.events import EventBus
from pluginhost.core.logging import get_logger
from pluginhost.core.settings import PluginHostSettings
from pluginhost.core.versions import parse_channel_name
from pluginhost.host.channels import ChannelTable, ErrorHook, Registration

log = get_logger(__name__)

SOURCE = "host"


@dataclass
class _Link:
    registration: Registration
    fn: Callable[..., Any]


class AttemptChain:
    """Decorator chain for one dispatch attempt against one subscriber."""

    def __init__(
        self,
        engine: DispatchEngine,
        channel: str,
        subscriber: Registration,
        decorators: Sequence[Registration],
    ) -> None:
        self._engine = engine
        self._channel = channel
        self._queue: deque[_Link] = deque()
        self._last_value: Any = None
        self._subscriber_errors: list[BaseException] = []

        for registration in decorators:
            try:
                wrapper = registration.fn(self.proceed)
            except Exception as error:
                engine._decorator_failed(channel, registration, error)
                continue
            self._queue.append(_Link(registration, wrapper))

        self._queue.append(_Link(subscriber, subscriber.fn))

    def proceed(self, *args: Any) -> Any:
        """The continuation handed to every decorator factory."""
        value = self._last_value

        while self._queue:
            link = self._queue.popleft()

            if not self._queue:
                try:
                    value = link.fn(*args)
                except Exception as error:
                    self._subscriber_errors.append(error)
                    raise
                self._last_value = value
                break

            try:
                value = link.fn(*args)
                self._last_value = value
            except Exception as error:
                # Only the subscriber's own exception object ends the attempt.
                if self.propagates(error):
                    raise
                self._engine._decorator_failed(self._channel, link.registration, error)
                value = self._last_value

        return value

    def propagates(self, error: BaseException) -> bool:
        """True when ``error`` is an exception the subscriber itself raised."""
        return any(error is raised for raised in self._subscriber_errors)

    @property
    def subscriber_error(self) -> Exception | None:
        """The first exception raised by the subscriber in this attempt."""
        return self._subscriber_errors[0] if self._subscriber_errors else None

    def run(self, args: Sequence[Any]) -> Any:
        return self.proceed(*args)


class DispatchEngine:
    """Routes channel calls through priority fallback and decorator chains."""

    def __init__(self, table: ChannelTable, bus: EventBus, settings: PluginHostSettings) -> None:
        self.table = table
        self.bus = bus
        self.settings = settings

    def call(
        self,
        channel: str,
        args: Sequence[Any] | None = None,
        on_error: ErrorHook | None = None,
    ) -> Any:
        """Call ``channel`` with positional ``args``.

        Args:
            channel: Channel name with an optional version range (``foo@2.x``)
            args: Positional arguments for subscribers and wrappers
            on_error: Receives every subscriber error of this call; decorator
                errors are not included (they are published as
                ``channel.decorator_failed``)

        Raises:
            ValidationError: malformed channel name or ``args``
            NoImplementationError: no subscriber satisfies the version range
            DecoratorLimitError: an attempt would compose too many decorators
        """
        name = parse_channel_name(channel)
        version_range = name.version or self.settings.default_call_range
        arguments = self._arguments(channel, args)

        candidates = self.table.subscribers(name.base, version_range)
        if not candidates:
            raise NoImplementationError(channel)

        attempts = [
            (subscriber, self.table.decorators(name.base, subscriber.version))
            for subscriber in reversed(candidates)
        ]
        for _, decorators in attempts:
            if len(decorators) > self.settings.max_decorators:
                raise DecoratorLimitError(channel, len(decorators), self.settings.max_decorators)

        for subscriber, decorators in attempts:
            chain = AttemptChain(self, channel, subscriber, decorators)
            try:
                return chain.run(arguments)
            except Exception as error:
                self._subscriber_failed(channel, subscriber, chain.subscriber_error or error, on_error)

        log.warning(
            "channel.all_implementations_failed",
            channel=channel,
            candidates=len(candidates),
        )
        return None

    @staticmethod
    def _arguments(channel: str, args: Sequence[Any] | None) -> tuple[Any, ...]:
        if args is None:
            return ()
        if isinstance(args, (list, tuple)):
            return tuple(args)
        raise ValidationError(
            "Parameter `args` must be a list or tuple",
            field="args",
            value=args,
        ).with_context(channel=channel)

    # =========================================================================
    # Failure reporting
    # =========================================================================

    def _decorator_failed(self, channel: str, registration: Registration, error: Exception) -> None:
        log.warning(
            "channel.decorator_failed",
            channel=channel,
            decorator=registration.id,
            priority=registration.priority,
            error=str(error),
        )
        self._invoke_hook(registration.on_error, error, channel)

        failure = DecoratorFailure(
            f"Decorator on `{channel}` raised {type(error).__name__}: {error}",
            context=ErrorContext(channel=channel, version=registration.version, priority=registration.priority),
            cause=error,
        )
        self.bus.emit(events.DECORATOR_FAILED, SOURCE, channel=channel, decorator=registration, error=failure)

    def _subscriber_failed(
        self,
        channel: str,
        registration: Registration,
        error: Exception,
        on_error: ErrorHook | None,
    ) -> None:
        log.warning(
            "channel.subscriber_failed",
            channel=channel,
            subscriber=registration.id,
            version=registration.version,
            priority=registration.priority,
            error=str(error),
        )
        self._invoke_hook(registration.on_error, error, channel)
        self._invoke_hook(on_error, error, channel)

        failure = ImplementationFailure(
            f"Implementation of `{channel}` raised {type(error).__name__}: {error}",
            context=ErrorContext(channel=channel, version=registration.version, priority=registration.priority),
            cause=error,
        )
        self.bus.emit(events.SUBSCRIBER_FAILED, SOURCE, channel=channel, subscriber=registration, error=failure)

    def _invoke_hook(self, hook: ErrorHook | None, error: Exception, channel: str) -> None:
        if hook is None:
            return
        try:
            hook(error)
        except Exception as hook_error:
            log.warning("channel.error_hook_failed", channel=channel, error=str(hook_error))
            failure = PluginHostError(
                f"Error hook for `{channel}` raised {type(hook_error).__name__}: {hook_error}",
                context=ErrorContext(channel=channel),
                cause=hook_error,
            )
            self.bus.emit(events.ERROR, SOURCE, channel=channel, error=failure)


__all__ = ["AttemptChain", "DispatchEngine"]
