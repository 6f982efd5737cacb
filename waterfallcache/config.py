"""
Central configuration loader for the waterfall cache.

Reads ``config/config.yaml`` and ``.env``, merges environment-variable
overrides (``WATERFALL_`` prefix), and exposes a typed :class:`Settings`
singleton via :func:`get_settings`.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve project root (directory containing ``config/``)
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent          # waterfallcache/
_PROJECT_ROOT = _THIS_DIR.parent                     # repo root


def _project_path(*parts: str) -> Path:
    """Build an absolute path relative to the project root."""
    return _PROJECT_ROOT.joinpath(*parts)


# ---------------------------------------------------------------------------
# Nested settings dataclasses
# ---------------------------------------------------------------------------


@dataclass
class CacheSettings:
    memory_enabled: bool = True
    redis_enabled: bool = False


@dataclass
class ExpirySettings:
    enabled: bool = False
    expire_after: int = 3600
    unit: str = "seconds"


@dataclass
class RedisSettings:
    url: str = "redis://localhost:6379/0"
    key_prefix: str = "waterfall"
    socket_timeout_seconds: float = 5.0


@dataclass
class DeliverySettings:
    mode: str = "immediate"
    thread_name: str = "waterfall-delivery"


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "text"


@dataclass
class Settings:
    """Top-level settings container."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    expiry: ExpirySettings = field(default_factory=ExpirySettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


_TYPE_MAP = {
    int: int,
    float: float,
    bool: lambda v: v.lower() in ("1", "true", "yes"),
    str: str,
}


def _apply_dict(target: object, data: Dict[str, Any]) -> None:
    """Apply *data* values onto a dataclass instance, ignoring unknown keys.

    Quoted scalars (e.g. ``expire_after: "10"``) are cast to the type of
    the field default; values that cannot be cast are skipped.
    """
    for key, value in data.items():
        if not hasattr(target, key):
            continue
        current = getattr(target, key)
        if isinstance(value, str) and not isinstance(current, str):
            cast = _TYPE_MAP.get(type(current))
            if cast is not None:
                try:
                    value = cast(value)
                except (ValueError, TypeError):
                    logger.warning("Invalid config value %s=%r", key, value)
                    continue
        setattr(target, key, value)


# ---------------------------------------------------------------------------
# Env-var overrides  (WATERFALL_SECTION_KEY  e.g. WATERFALL_REDIS_URL)
# ---------------------------------------------------------------------------

_SECTIONS = ["cache", "expiry", "redis", "delivery", "logging"]


def _apply_env_overrides(settings: Settings) -> None:
    """Override scalar fields via ``WATERFALL_<SECTION>_<KEY>`` env vars."""
    for section_name in _SECTIONS:
        section = getattr(settings, section_name, None)
        if section is None:
            continue
        prefix = f"WATERFALL_{section_name.upper()}_"
        for key in list(vars(section)):
            env_key = prefix + key.upper()
            env_val = os.environ.get(env_key)
            if env_val is None:
                continue
            current = getattr(section, key)
            cast = _TYPE_MAP.get(type(current), str)
            try:
                setattr(section, key, cast(env_val))
                logger.debug("Env override applied: %s=%s", env_key, env_val)
            except (ValueError, TypeError):
                logger.warning("Invalid env override %s=%s", env_key, env_val)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_LOG_FORMATS = {
    "text": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    "json": (
        '{"time": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
    ),
}


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure the ``waterfallcache`` logger from :class:`LoggingSettings`.

    Library code only emits records; applications that want the
    package's own handler call this once at startup.
    """
    log_settings = (settings or get_settings()).logging
    package_logger = logging.getLogger("waterfallcache")
    package_logger.setLevel(log_settings.level.upper())
    fmt = _LOG_FORMATS.get(log_settings.format, _LOG_FORMATS["text"])
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        package_logger.addHandler(handler)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the process-wide :class:`Settings` singleton.

    On first call (or when ``_force_reload=True``) the function:

    1. Calls ``load_dotenv()`` to populate env vars from ``.env``.
    2. Reads ``config/config.yaml``.
    3. Applies ``WATERFALL_*`` environment-variable overrides.

    Args:
        yaml_path: Override the YAML config file path (testing).
        env_path: Override the ``.env`` file path (testing).
        _force_reload: Re-read everything even if already loaded.

    Returns:
        The global ``Settings`` instance.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        # Double-check after acquiring lock
        if _settings is not None and not _force_reload:
            return _settings

        dotenv_path = env_path or _project_path(".env")
        load_dotenv(dotenv_path, override=True)

        config_path = yaml_path or _project_path("config", "config.yaml")
        raw = _load_yaml(config_path)

        settings = Settings()
        for section_name in _SECTIONS:
            section_data = raw.get(section_name)
            if isinstance(section_data, dict):
                _apply_dict(getattr(settings, section_name), section_data)

        _apply_env_overrides(settings)

        _settings = settings
        logger.info("Settings loaded from %s", config_path)
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None
