"""
Shared pytest fixtures for pluginhost tests.

This module provides:
- ``settings``: PluginHostSettings isolated from the environment and .env
- ``host``: a fresh PluginHost, destroyed after the test
- ``app``: a fresh Application on its own host
- ``events``: a recorder subscribed to every bus topic of ``host``

Usage:
    def test_fallback(host, events):
        host.connect("foo", failing, priority=2)
        host.connect("foo", working, priority=1)
        assert host.call("foo") == "ok"
        assert len(events.of("channel.subscriber_failed")) == 1
"""

import sys
from pathlib import Path

import pytest

# Ensure pluginhost package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pluginhost.app.application import Application
from pluginhost.core.events import Event
from pluginhost.core.settings import PluginHostSettings, get_settings
from pluginhost.host.host import PluginHost


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of(self, event_type: str) -> list[Event]:
        return [event for event in self.events if event.event_type == event_type]

    @property
    def types(self) -> list[str]:
        return [event.event_type for event in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture(autouse=True)
def clean_settings_cache():
    """Drop the cached process settings around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> PluginHostSettings:
    return PluginHostSettings(_env_file=None)


@pytest.fixture
def host(settings):
    h = PluginHost(settings)
    yield h
    h.destroy()


@pytest.fixture
def events(host) -> EventRecorder:
    recorder = EventRecorder()
    host.subscribe("*", recorder)
    return recorder


@pytest.fixture
def app(host):
    return Application(host)
