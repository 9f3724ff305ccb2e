"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for mtgcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.mtgcache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~mtgcache.models.GlobalConfig`
  JSON file storing the API root, fetch defaults and request settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the global config into the effective
  configuration.

All config writes use :func:`_atomic_write` (temp file then rename).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from mtgcache.exceptions import ConfigError
from mtgcache.models import GlobalConfig

_APP_NAME = "mtgcache"
_CONFIG_FILENAME = "config.json"

ENV_BASE_URL = "MTGCACHE_BASE_URL"
ENV_DIRECTORY = "MTGCACHE_DIR"
ENV_VERSION_TAG = "MTGCACHE_VERSION"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/mtgcache/`` (default ``~/.config/mtgcache/``).
    On macOS/Windows: ``~/.mtgcache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the default download directory, creating it if necessary.

    Used when neither ``--dir``, ``$MTGCACHE_DIR`` nor the config file names
    a directory. Its contents can be deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/mtgcache/`` (default ``~/.cache/mtgcache/``).
    On macOS/Windows: ``~/.mtgcache/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/mtgcache/`` (default ``~/.local/share/mtgcache/``).
    On macOS/Windows: ``~/.mtgcache/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed.
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
        fd = None  # prevent double-close in finally
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


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~mtgcache.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``, ``cli_format``)
        2. Environment variables (``MTGCACHE_BASE_URL``, ``MTGCACHE_DIR``,
           ``MTGCACHE_VERSION``)
        3. User config (``~/.config/mtgcache/config.json``)
        4. Defaults
    """
    config = load_global_config()

    env_base_url = os.environ.get(ENV_BASE_URL)
    if env_base_url:
        config.base_url = env_base_url
    env_dir = os.environ.get(ENV_DIRECTORY)
    if env_dir:
        config.defaults.directory = env_dir
    env_version = os.environ.get(ENV_VERSION_TAG)
    if env_version:
        config.defaults.version_tag = env_version

    if cli_base_url is not None:
        config.base_url = cli_base_url
    if cli_format is not None:
        config.output.format = cli_format

    return config


def resolve_directory(config: GlobalConfig, cli_dir: Optional[str] = None) -> Path:
    """Pick the download directory: CLI flag, then config/env, then the XDG cache dir.

    The directory must already exist; only the XDG default is created.
    """
    if cli_dir:
        return Path(cli_dir).expanduser()
    if config.defaults.directory:
        return Path(config.defaults.directory).expanduser()
    return get_cache_dir()
