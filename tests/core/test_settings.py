"""Tests for core.settings module.

Covers:
- PluginHostSettings defaults
- PLUGINHOST_ environment overrides
- Field validation
- get_settings caching
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from pluginhost.core.settings import PluginHostSettings, get_settings


class TestPluginHostSettingsDefaults:
    def test_version_defaults(self, settings):
        assert settings.default_subscriber_version == "1.0.0"
        assert settings.default_decorator_range == "1.x"
        assert settings.default_call_range == "1.x"
        assert settings.default_component_version == "1.0.0"

    def test_max_decorators_default(self, settings):
        assert settings.max_decorators == 256

    def test_log_defaults(self, settings):
        assert settings.log_level == "INFO"
        assert settings.json_logs is None


class TestPluginHostSettingsEnvOverride:
    def test_call_range_from_env(self, monkeypatch):
        monkeypatch.setenv("PLUGINHOST_DEFAULT_CALL_RANGE", "2.x")
        s = PluginHostSettings(_env_file=None)
        assert s.default_call_range == "2.x"

    def test_max_decorators_from_env(self, monkeypatch):
        monkeypatch.setenv("PLUGINHOST_MAX_DECORATORS", "16")
        s = PluginHostSettings(_env_file=None)
        assert s.max_decorators == 16

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("MAX_DECORATORS", "16")
        s = PluginHostSettings(_env_file=None)
        assert s.max_decorators == 256


class TestPluginHostSettingsValidation:
    def test_log_level_uppercased(self):
        assert PluginHostSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_fixed_version_must_be_semver(self):
        with pytest.raises(PydanticValidationError):
            PluginHostSettings(_env_file=None, default_subscriber_version="1.x")

    def test_max_decorators_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            PluginHostSettings(_env_file=None, max_decorators=0)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch):
        get_settings()
        monkeypatch.setenv("PLUGINHOST_DEFAULT_DECORATOR_RANGE", "3.x")
        get_settings.cache_clear()
        assert get_settings().default_decorator_range == "3.x"
