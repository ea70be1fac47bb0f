"""Tests for pluginhost.host.dispatch: fallback and decorator chains."""

import pytest

from pluginhost.core.errors import (
    DecoratorFailure,
    DecoratorLimitError,
    ImplementationFailure,
    NoImplementationError,
    PluginHostError,
    ValidationError,
)
from pluginhost.core.settings import PluginHostSettings
from pluginhost.host.host import PluginHost


def returning(value):
    def subscriber(*args):
        return value

    return subscriber


def failing(message="boom"):
    def subscriber(*args):
        raise RuntimeError(message)

    return subscriber


def tracing(trace, label):
    """Decorator factory recording pre/post call order."""

    def factory(next_):
        def wrapper(*args):
            trace.append(f"{label}:pre")
            result = next_(*args)
            trace.append(f"{label}:post")
            return result

        return wrapper

    return factory


class TestPriorityFallback:
    def test_highest_priority_wins(self, host):
        host.connect("foo", returning("low"), priority=1)
        host.connect("foo", returning("high"), priority=2)
        assert host.call("foo") == "high"

    def test_failed_top_priority_falls_back(self, host, events):
        """Priority 3 fails: result comes from priority 2, one failure event."""
        host.connect("foo", returning("one"), priority=1)
        host.connect("foo", returning("two"), priority=2)
        host.connect("foo", failing(), priority=3)

        assert host.call("foo") == "two"

        failures = events.of("channel.subscriber_failed")
        assert len(failures) == 1
        assert failures[0].payload["subscriber"].priority == 3
        error = failures[0].payload["error"]
        assert isinstance(error, ImplementationFailure)
        assert isinstance(error.cause, RuntimeError)

    def test_all_fail_returns_none(self, host, events):
        host.connect("foo", failing("a"), priority=1)
        host.connect("foo", failing("b"), priority=2)

        assert host.call("foo") is None
        assert len(events.of("channel.subscriber_failed")) == 2

    def test_no_implementation_raises(self, host):
        with pytest.raises(NoImplementationError):
            host.call("missing")

    def test_no_matching_version_raises(self, host):
        host.connect("foo@1.0.0", returning("v1"))
        with pytest.raises(NoImplementationError):
            host.call("foo@2.x")

    def test_requested_range_selects_candidates(self, host):
        host.connect("foo@1.0.0", returning("v1"), priority=5)
        host.connect("foo@2.1.0", returning("v2"))
        assert host.call("foo@2.x") == "v2"
        assert host.call("foo") == "v1"

    def test_args_are_passed(self, host):
        host.connect("add", lambda a, b: a + b)
        assert host.call("add", [2, 3]) == 5
        assert host.call("add", (2, 3)) == 5

    def test_args_must_be_sequence(self, host):
        host.connect("add", lambda a, b: a + b)
        with pytest.raises(ValidationError):
            host.call("add", "23")


class TestErrorHooks:
    def test_hooks_receive_original_error(self, host):
        seen_registration, seen_call = [], []
        host.connect("foo", failing("bad"), priority=2, on_error=seen_registration.append)
        host.connect("foo", returning("ok"))

        assert host.call("foo", [], seen_call.append) == "ok"

        assert [str(e) for e in seen_registration] == ["bad"]
        assert [str(e) for e in seen_call] == ["bad"]

    def test_raising_hook_is_reported_not_raised(self, host, events):
        def broken_hook(error):
            raise ValueError("hook broke")

        host.connect("foo", failing(), on_error=broken_hook)

        assert host.call("foo") is None
        errors = events.of("error")
        assert len(errors) == 1
        assert isinstance(errors[0].payload["error"], PluginHostError)


class TestDecoratorChains:
    def test_ascending_priority_nests_outside_in(self, host):
        """Priority -1 runs pre-call first and post-call last."""
        trace = []
        host.connect("foo", lambda: trace.append("subscriber") or "ok")
        host.decorate("foo", tracing(trace, "p2"), priority=2)
        host.decorate("foo", tracing(trace, "p-1"), priority=-1)

        assert host.call("foo") == "ok"
        assert trace == ["p-1:pre", "p2:pre", "subscriber", "p2:post", "p-1:post"]

    def test_decorator_can_transform_args_and_result(self, host):
        def double_input(next_):
            return lambda x: next_(x * 2)

        def add_one(next_):
            return lambda x: next_(x) + 1

        host.connect("foo", lambda x: x)
        host.decorate("foo", double_input, priority=1)
        host.decorate("foo", add_one)

        assert host.call("foo", [5]) == 11

    def test_wildcard_decorator_applies_to_every_channel(self, host):
        trace = []
        host.connect("foo", returning("f"))
        host.connect("bar@3.0.0", returning("b"))
        host.decorate(tracing(trace, "wild"))

        host.call("foo")
        host.call("bar@3.x")

        assert trace == ["wild:pre", "wild:post", "wild:pre", "wild:post"]

    def test_range_scoped_decorator(self, host):
        """A 2.x decorator skips 1.0.0 subscribers and wraps 2.3.1 ones."""
        trace = []
        host.connect("foo@1.0.0", returning("v1"))
        host.connect("foo@2.3.1", returning("v2"))
        host.decorate("foo@2.x", tracing(trace, "v2-only"))

        host.call("foo@1.x")
        assert trace == []

        host.call("foo@2.x")
        assert trace == ["v2-only:pre", "v2-only:post"]

    def test_middle_decorator_failure_is_transparent(self, host, events):
        """A failing middle decorator is bypassed; the result is unchanged."""
        trace = []
        host.connect("foo", lambda: trace.append("subscriber") or "ok")
        host.decorate("foo", tracing(trace, "outer"), priority=-1)
        host.decorate("foo", lambda next_: failing("middle"), priority=0)
        host.decorate("foo", tracing(trace, "inner"), priority=2)

        assert host.call("foo") == "ok"
        assert trace == ["outer:pre", "inner:pre", "subscriber", "inner:post", "outer:post"]

        failures = events.of("channel.decorator_failed")
        assert len(failures) == 1
        assert isinstance(failures[0].payload["error"], DecoratorFailure)
        assert events.of("channel.subscriber_failed") == []

    def test_decorator_failing_after_continuation_keeps_value(self, host):
        def late_failure(next_):
            def wrapper(*args):
                next_(*args)
                raise RuntimeError("after")

            return wrapper

        host.connect("foo", returning("ok"))
        host.decorate("foo", late_failure)

        assert host.call("foo") == "ok"

    def test_decorator_hook_receives_error(self, host):
        seen = []
        host.connect("foo", returning("ok"))
        host.decorate("foo", lambda next_: failing("dec"), on_error=seen.append)

        host.call("foo")

        assert [str(e) for e in seen] == ["dec"]

    def test_failing_factory_is_skipped(self, host, events):
        def broken_factory(next_):
            raise RuntimeError("factory")

        host.connect("foo", returning("ok"))
        host.decorate("foo", broken_factory)

        assert host.call("foo") == "ok"
        assert len(events.of("channel.decorator_failed")) == 1

    def test_subscriber_failure_passes_through_decorators(self, host, events):
        """A failing subscriber falls back even when wrapped."""
        trace = []
        host.connect("foo", returning("fallback"), priority=1)
        host.connect("foo", failing(), priority=2)
        host.decorate("foo", tracing(trace, "dec"))

        assert host.call("foo") == "fallback"
        assert trace == ["dec:pre", "dec:pre", "dec:post"]
        assert events.of("channel.decorator_failed") == []
        assert len(events.of("channel.subscriber_failed")) == 1

    def test_decorator_converting_subscriber_error_is_a_decorator_failure(self, host, events):
        """A wrapper that raises a new error while handling the subscriber's is bypassed, not a fallback."""
        seen = []

        def auditing(next_):
            def wrapper(*args):
                try:
                    return next_(*args)
                except RuntimeError:
                    auditor = None
                    return auditor.audit()

            return wrapper

        host.connect("foo", returning("fallback"), priority=1)
        host.connect("foo", failing(), priority=2, on_error=seen.append)
        host.decorate("foo", auditing)

        assert host.call("foo") is None

        failures = events.of("channel.decorator_failed")
        assert len(failures) == 1
        assert isinstance(failures[0].payload["error"].cause, AttributeError)
        assert events.of("channel.subscriber_failed") == []
        assert seen == []

    def test_decorator_reraising_subscriber_error_falls_back(self, host, events):
        raised = RuntimeError("subscriber")
        seen = []

        def subscriber():
            raise raised

        def reraising(next_):
            def wrapper(*args):
                try:
                    return next_(*args)
                except RuntimeError as error:
                    raise error

            return wrapper

        host.connect("foo", returning("fallback"), priority=1)
        host.connect("foo", subscriber, priority=2)
        host.decorate("foo", reraising)

        assert host.call("foo", [], seen.append) == "fallback"
        assert seen == [raised]
        assert events.of("channel.subscriber_failed")[0].payload["error"].cause is raised
        assert events.of("channel.decorator_failed") == []

    def test_decorator_chain_is_rebuilt_per_attempt(self, host):
        factory_calls = []

        def counting(next_):
            factory_calls.append(1)
            return next_

        host.connect("foo", returning("fallback"), priority=1)
        host.connect("foo", failing(), priority=2)
        host.decorate("foo", counting)

        host.call("foo")

        assert len(factory_calls) == 2


class TestDecoratorLimit:
    def test_limit_raises_before_extension_code(self):
        host = PluginHost(PluginHostSettings(_env_file=None, max_decorators=2))
        called = []
        host.connect("foo", lambda: called.append("subscriber"))
        for _ in range(3):
            host.decorate(tracing(called, "dec"))

        with pytest.raises(DecoratorLimitError):
            host.call("foo")
        assert called == []

    def test_limit_checked_for_every_candidate_up_front(self):
        """A lower-priority candidate over the limit stops the call before the first attempt runs."""
        host = PluginHost(PluginHostSettings(_env_file=None, max_decorators=1))
        called = []

        def first():
            called.append("first")
            raise RuntimeError("first failed")

        host.connect("foo@1.0.0", first, priority=2)
        host.connect("foo@1.5.0", lambda: called.append("second"), priority=1)
        host.decorate("foo@1.5.x", tracing(called, "a"))
        host.decorate("foo@1.5.x", tracing(called, "b"))

        with pytest.raises(DecoratorLimitError):
            host.call("foo")
        assert called == []
