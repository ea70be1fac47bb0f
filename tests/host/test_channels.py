"""Tests for pluginhost.host.channels: ChannelTable bookkeeping."""

import re

import pytest

from pluginhost.core.versions import WILDCARD
from pluginhost.host.channels import ChannelTable, RegistrationKind, prioritized


def make_fn():
    def fn(*args):
        return args

    return fn


class TestSubscribers:
    def test_add_once(self):
        """Same (channel, fn) twice yields exactly one registration."""
        table = ChannelTable()
        fn = make_fn()

        first = table.add_subscriber("foo", fn, "1.0.0")
        second = table.add_subscriber("foo", fn, "1.0.0", priority=5)

        assert first is not None
        assert first.kind is RegistrationKind.SUBSCRIBER
        assert second is None
        assert len(table.subscribers("foo")) == 1

    def test_remove_clears_descriptor(self):
        """One removal fully removes the registration and its descriptor."""
        table = ChannelTable()
        fn = make_fn()
        table.add_subscriber("foo", fn, "1.0.0")

        assert table.remove_subscriber("foo", fn) is True
        assert table.subscribers("foo") == []
        assert table.descriptor(fn) is None
        assert table.channel_names() == []

    def test_remove_unknown_is_noop(self):
        table = ChannelTable()
        assert table.remove_subscriber("foo", make_fn()) is False

    def test_descriptor_tracks_channels(self):
        table = ChannelTable()
        fn = make_fn()
        table.add_subscriber("foo", fn, "1.0.0")
        table.add_subscriber("bar", fn, "1.0.0")

        assert table.descriptor(fn).channels == {"foo", "bar"}
        table.remove_subscriber("foo", fn)
        assert table.descriptor(fn).channels == {"bar"}

    def test_filter_by_range_and_sort(self):
        table = ChannelTable()
        low, high, other = make_fn(), make_fn(), make_fn()
        table.add_subscriber("foo", high, "1.2.0", priority=3)
        table.add_subscriber("foo", low, "1.0.0", priority=-1)
        table.add_subscriber("foo", other, "2.0.0", priority=10)

        matched = table.subscribers("foo", "1.x")

        assert [r.fn for r in matched] == [low, high]

    def test_same_fn_can_subscribe_and_decorate(self):
        table = ChannelTable()
        fn = make_fn()
        table.add_subscriber("foo", fn, "1.0.0")
        table.add_decorator("foo", fn, "1.x")

        table.remove_subscriber("foo", fn)

        assert table.descriptor(fn).decorated == {"foo"}


class TestDecorators:
    def test_scoped_by_version(self):
        """A 2.x decorator applies to 2.3.1 but not 1.0.0."""
        table = ChannelTable()
        decorator = make_fn()
        table.add_decorator("foo", decorator, "2.x")

        assert table.decorators("foo", "1.0.0") == []
        assert [r.fn for r in table.decorators("foo", "2.3.1")] == [decorator]

    def test_wildcard_applies_everywhere(self):
        table = ChannelTable()
        decorator = make_fn()
        table.add_decorator(WILDCARD, decorator, "9.x")

        registration = table.decorators("anything", "5.0.0")[0]
        assert registration.fn is decorator
        assert registration.version == WILDCARD
        assert registration.is_wildcard

    def test_merged_and_sorted(self):
        table = ChannelTable()
        scoped, wild = make_fn(), make_fn()
        table.add_decorator("foo", scoped, "1.x", priority=2)
        table.add_decorator(WILDCARD, wild, WILDCARD, priority=-1)

        assert [r.fn for r in table.decorators("foo", "1.0.0")] == [wild, scoped]

    def test_remove_by_exact_name(self):
        table = ChannelTable()
        decorator = make_fn()
        table.add_decorator("foo", decorator, "1.x")

        assert table.remove_decorator("foo", decorator) == 1
        assert table.decorators("foo") == []
        assert table.descriptor_count == 0

    def test_remove_by_regex(self):
        table = ChannelTable()
        decorator = make_fn()
        for name in ("search/query", "search/index", "storage/get"):
            table.add_decorator(name, decorator, "1.x")

        removed = table.remove_decorator(re.compile(r"^search/"), decorator)

        assert removed == 2
        assert table.decorated_channel_names() == ["storage/get"]

    def test_remove_by_predicate(self):
        table = ChannelTable()
        decorator = make_fn()
        table.add_decorator("a", decorator, "1.x")
        table.add_decorator("b", decorator, "1.x")

        assert table.remove_decorator(lambda name: name == "b", decorator) == 1
        assert table.decorated_channel_names() == ["a"]

    def test_remove_with_bad_matcher(self):
        table = ChannelTable()
        decorator = make_fn()
        table.add_decorator("a", decorator, "1.x")
        with pytest.raises(TypeError):
            table.remove_decorator(42, decorator)


class TestPrioritized:
    def test_stable_for_ties(self):
        table = ChannelTable()
        fns = [make_fn() for _ in range(3)]
        for fn in fns:
            table.add_subscriber("foo", fn, "1.0.0")

        assert [r.fn for r in prioritized(table.subscribers("foo"))] == fns


class TestClear:
    def test_clear_drops_everything(self):
        table = ChannelTable()
        fn = make_fn()
        table.add_subscriber("foo", fn, "1.0.0")
        table.add_decorator(WILDCARD, fn, WILDCARD)

        table.clear()

        assert table.channel_names() == []
        assert table.decorated_channel_names() == []
        assert len(table.identities) == 0
