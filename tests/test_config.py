"""Tests for the central configuration loader (waterfallcache/config.py)."""

import logging

import pytest
import yaml

from waterfallcache.config import (
    CacheSettings,
    ExpirySettings,
    Settings,
    _apply_dict,
    _load_yaml,
    configure_logging,
    get_settings,
    reset_settings,
)


@pytest.fixture(autouse=True)
def _clean_settings():
    """Reset the singleton before and after each test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def no_env(tmp_path):
    """Path to a .env file that does not exist."""
    return tmp_path / "missing.env"


def _write_config(tmp_path, data):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump(data))
    return f


# ── YAML loading ────────────────────────────────────────


class TestLoadYaml:
    def test_loads_valid_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("redis:\n  url: redis://cache:6379/1\n")
        data = _load_yaml(f)
        assert data["redis"]["url"] == "redis://cache:6379/1"

    def test_returns_empty_dict_for_missing_file(self, tmp_path):
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_returns_empty_dict_for_non_dict_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("- item1\n- item2\n")
        assert _load_yaml(f) == {}


# ── Settings defaults ───────────────────────────────────


class TestSettingsDefaults:
    def test_default_settings_have_expected_values(self):
        s = Settings()
        assert s.cache.memory_enabled is True
        assert s.cache.redis_enabled is False
        assert s.expiry.enabled is False
        assert s.expiry.unit == "seconds"
        assert s.redis.key_prefix == "waterfall"
        assert s.delivery.mode == "immediate"
        assert s.logging.level == "INFO"


# ── get_settings() from YAML ────────────────────────────


class TestGetSettings:
    def test_loads_yaml_values(self, tmp_path, no_env):
        cfg = _write_config(tmp_path, {
            "cache": {"redis_enabled": True},
            "expiry": {"enabled": True, "expire_after": 10, "unit": "minutes"},
        })
        s = get_settings(yaml_path=cfg, env_path=no_env, _force_reload=True)
        assert s.cache.redis_enabled is True
        assert s.expiry.expire_after == 10
        assert s.expiry.unit == "minutes"

    def test_missing_yaml_uses_defaults(self, tmp_path, no_env):
        s = get_settings(yaml_path=tmp_path / "nope.yaml", env_path=no_env, _force_reload=True)
        assert s.delivery.mode == "immediate"

    def test_singleton_returns_same_object(self, tmp_path, no_env):
        cfg = _write_config(tmp_path, {"delivery": {"mode": "thread"}})
        s1 = get_settings(yaml_path=cfg, env_path=no_env, _force_reload=True)
        s2 = get_settings()
        assert s1 is s2

    def test_force_reload_reloads(self, tmp_path, no_env):
        cfg = _write_config(tmp_path, {"redis": {"key_prefix": "one"}})
        assert get_settings(yaml_path=cfg, env_path=no_env, _force_reload=True).redis.key_prefix == "one"

        cfg.write_text(yaml.dump({"redis": {"key_prefix": "two"}}))
        assert get_settings(yaml_path=cfg, env_path=no_env, _force_reload=True).redis.key_prefix == "two"

    def test_dotenv_file_applied(self, tmp_path, monkeypatch):
        monkeypatch.delenv("WATERFALL_REDIS_URL", raising=False)
        env = tmp_path / ".env"
        env.write_text("WATERFALL_REDIS_URL=redis://from-dotenv:6379/0\n")
        s = get_settings(yaml_path=tmp_path / "nope.yaml", env_path=env, _force_reload=True)
        assert s.redis.url == "redis://from-dotenv:6379/0"
        monkeypatch.delenv("WATERFALL_REDIS_URL", raising=False)


# ── Environment variable overrides ──────────────────────


class TestEnvOverrides:
    def test_env_override_int(self, tmp_path, no_env, monkeypatch):
        monkeypatch.setenv("WATERFALL_EXPIRY_EXPIRE_AFTER", "99")
        s = get_settings(yaml_path=_write_config(tmp_path, {}), env_path=no_env, _force_reload=True)
        assert s.expiry.expire_after == 99

    def test_env_override_float(self, tmp_path, no_env, monkeypatch):
        monkeypatch.setenv("WATERFALL_REDIS_SOCKET_TIMEOUT_SECONDS", "1.5")
        s = get_settings(yaml_path=_write_config(tmp_path, {}), env_path=no_env, _force_reload=True)
        assert s.redis.socket_timeout_seconds == 1.5

    def test_env_override_bool(self, tmp_path, no_env, monkeypatch):
        monkeypatch.setenv("WATERFALL_CACHE_REDIS_ENABLED", "yes")
        s = get_settings(yaml_path=_write_config(tmp_path, {}), env_path=no_env, _force_reload=True)
        assert s.cache.redis_enabled is True

    def test_env_overrides_trump_yaml(self, tmp_path, no_env, monkeypatch):
        cfg = _write_config(tmp_path, {"delivery": {"mode": "immediate"}})
        monkeypatch.setenv("WATERFALL_DELIVERY_MODE", "thread")
        s = get_settings(yaml_path=cfg, env_path=no_env, _force_reload=True)
        assert s.delivery.mode == "thread"

    def test_invalid_override_keeps_default(self, tmp_path, no_env, monkeypatch):
        monkeypatch.setenv("WATERFALL_EXPIRY_EXPIRE_AFTER", "soon")
        s = get_settings(yaml_path=_write_config(tmp_path, {}), env_path=no_env, _force_reload=True)
        assert s.expiry.expire_after == 3600


# ── _apply_dict helper ──────────────────────────────────


class TestApplyDict:
    def test_applies_known_keys(self):
        target = CacheSettings()
        _apply_dict(target, {"redis_enabled": True})
        assert target.redis_enabled is True

    def test_quoted_scalars_cast_to_field_type(self):
        target = ExpirySettings()
        _apply_dict(target, {"expire_after": "10", "enabled": "true"})
        assert target.expire_after == 10
        assert target.enabled is True

    def test_uncastable_value_keeps_default(self):
        target = ExpirySettings()
        _apply_dict(target, {"expire_after": "soon"})
        assert target.expire_after == 3600

    def test_quoted_yaml_value_loaded(self, tmp_path, no_env):
        cfg = tmp_path / "config.yaml"
        cfg.write_text('redis:\n  socket_timeout_seconds: "2.5"\n')
        s = get_settings(yaml_path=cfg, env_path=no_env, _force_reload=True)
        assert s.redis.socket_timeout_seconds == 2.5

    def test_ignores_unknown_keys(self):
        target = CacheSettings()
        _apply_dict(target, {"unknown_field": "value"})
        assert not hasattr(target, "unknown_field")


# ── Logging ─────────────────────────────────────────────


class TestConfigureLogging:
    def test_sets_package_level(self):
        settings = Settings()
        settings.logging.level = "debug"
        package_logger = logging.getLogger("waterfallcache")
        handlers = list(package_logger.handlers)
        try:
            configure_logging(settings)
            assert package_logger.level == logging.DEBUG
            assert package_logger.handlers
        finally:
            package_logger.handlers = handlers
            package_logger.setLevel(logging.NOTSET)


# ── Integration: real config/config.yaml ─────────────────


class TestRealConfig:
    def test_loads_project_config_yaml(self, no_env):
        s = get_settings(env_path=no_env, _force_reload=True)
        # These values match config/config.yaml
        assert s.cache.memory_enabled is True
        assert s.redis.socket_timeout_seconds == 5.0
        assert s.delivery.thread_name == "waterfall-delivery"
