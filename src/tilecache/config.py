"""Configuration management with XDG paths, atomic writes, and env overrides.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.tilecache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`, :func:`get_storage_dir`.
* **Settings file** -- a single :class:`~tilecache.models.CacheSettings`
  JSON file, ``config.json``, in the config directory.
* **Precedence resolution** -- :func:`resolve_settings` layers
  ``TILECACHE_*`` environment variables over the settings file, which in
  turn overrides the model defaults.

Settings are deployment constants. They are resolved once when the engine
is built and never re-read while it runs.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from tilecache.exceptions import ConfigError
from tilecache.models import CacheSettings

_APP_NAME = "tilecache"
_CONFIG_FILENAME = "config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/tilecache/`` (default ``~/.config/tilecache/``).
    On macOS/Windows: ``~/.tilecache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/tilecache/`` (default ``~/.cache/tilecache/``).
    On macOS/Windows: ``~/.tilecache/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/tilecache/`` (default ``~/.local/share/tilecache/``).
    On macOS/Windows: ``~/.tilecache/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_storage_dir() -> Path:
    """Return the generation storage root (``<cache_dir>/generations/``)."""
    path = get_cache_dir() / "generations"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings file ---


def _settings_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_settings(path: Optional[Path] = None) -> CacheSettings:
    """Load settings from *path* (default: ``<config_dir>/config.json``).

    Returns:
        The deserialised :class:`~tilecache.models.CacheSettings`, or the
        defaults if the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = path or _settings_path()
    if not path.is_file():
        return CacheSettings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return CacheSettings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: CacheSettings, path: Optional[Path] = None) -> None:
    """Persist *settings* atomically."""
    data = settings.model_dump(mode="json")
    _atomic_write(path or _settings_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _env_overrides() -> dict[str, Any]:
    """Collect ``TILECACHE_*`` environment overrides as raw field values."""
    overrides: dict[str, Any] = {}
    env = os.environ

    if env.get("TILECACHE_CACHE_NAME"):
        overrides["cache_name"] = env["TILECACHE_CACHE_NAME"]

    max_items = env.get("TILECACHE_MAX_ITEMS")
    if max_items:
        try:
            overrides["max_items"] = int(max_items)
        except ValueError as exc:
            raise ConfigError(
                f"TILECACHE_MAX_ITEMS must be an integer, got {max_items!r}"
            ) from exc

    if env.get("TILECACHE_BASE_URL"):
        overrides["base_url"] = env["TILECACHE_BASE_URL"]

    strict = env.get("TILECACHE_STRICT_PRECACHE")
    if strict is not None:
        overrides["strict_precache"] = _parse_bool("TILECACHE_STRICT_PRECACHE", strict)

    return overrides


def resolve_settings(path: Optional[Path] = None) -> CacheSettings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. Environment variables (``TILECACHE_CACHE_NAME``,
           ``TILECACHE_MAX_ITEMS``, ``TILECACHE_BASE_URL``,
           ``TILECACHE_STRICT_PRECACHE``)
        2. Settings file
        3. Defaults

    Raises:
        ConfigError: On an invalid file or an invalid environment value.
    """
    settings = load_settings(path)
    overrides = _env_overrides()
    if not overrides:
        return settings
    try:
        return CacheSettings.model_validate({**settings.model_dump(), **overrides})
    except ValueError as exc:
        raise ConfigError(f"Invalid environment override: {exc}") from exc
