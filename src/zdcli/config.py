"""Configuration management with XDG paths, atomic writes, and instance resolution.

This module handles all persistent configuration for zdcli:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.zd/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Instance store** -- a single :class:`~zdcli.models.ZdConfig` JSON
  document holding every configured instance, its credentials, and the
  current-instance marker. Because it contains secrets, the file is always
  written with ``0o600`` permissions.
* **Active instance** -- :func:`resolve_active_instance` picks the
  instance for one command invocation and returns it as a plain value;
  nothing in the process holds a global "current instance".

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from zdcli.exceptions import ConfigError
from zdcli.models import Instance, ZdConfig

if TYPE_CHECKING:
    from zdcli.auth.oauth import OAuthToken

_APP_NAME = "zd"
_CONFIG_FILENAME = "config.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/FreeBSD)."""
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/zd/`` (default ``~/.config/zd/``).
    On macOS/Windows: ``~/.zd/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory path.

    Unlike the other directories it is *not* created here: the cache
    creates it itself with private permissions, and a failure to do so
    only disables caching.

    On Linux/BSD: ``$XDG_CACHE_HOME/zd/`` (default ``~/.cache/zd/``).
    On macOS/Windows: ``~/.zd/cache/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        return base / _APP_NAME
    return _fallback_base_dir() / "cache"


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/zd/`` (default ``~/.local/share/zd/``).
    On macOS/Windows: ``~/.zd/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: int = 0o600) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    Permissions are set on the temp file before any content is written so
    that secrets are never readable by other users, even momentarily.
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
        os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Instance store ---


def config_path(override: Optional[str] = None) -> Path:
    """Path to the config file.

    Precedence: *override* (the ``--config`` flag), then ``ZD_CONFIG``,
    then ``<config_dir>/config.json``.
    """
    if override:
        return Path(override).expanduser()
    env_path = os.environ.get("ZD_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


def load_config(path: Optional[Path] = None) -> ZdConfig:
    """Load the configuration document.

    Args:
        path: Explicit file path; defaults to :func:`config_path`.

    Returns:
        The deserialised :class:`~zdcli.models.ZdConfig`. If the file
        does not exist, an empty default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = path or config_path()
    if not path.is_file():
        return ZdConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return ZdConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config at {path}: {exc}") from exc


def save_config(config: ZdConfig, path: Optional[Path] = None) -> None:
    """Persist the configuration atomically with ``0o600`` permissions.

    Args:
        config: The configuration to save.
        path: Explicit file path; defaults to :func:`config_path`.
    """
    path = path or config_path()
    data = config.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")


def resolve_active_instance(
    cli_instance: Optional[str] = None,
    path: Optional[Path] = None,
) -> tuple[ZdConfig, Instance]:
    """Resolve the instance a command invocation should talk to.

    Precedence (high to low):
        1. ``cli_instance`` (the ``--instance`` flag)
        2. ``ZD_INSTANCE`` environment variable
        3. The ``current`` marker in the config file

    Returns:
        A tuple of ``(config, active_instance)``. The instance is a copy;
        mutating it does not change *config*.

    Raises:
        ConfigError: If no instance can be resolved.
    """
    config = load_config(path)
    name = cli_instance or os.environ.get("ZD_INSTANCE") or None
    if name is not None:
        instance = config.get_instance(name)
    else:
        instance = config.get_current_instance()
    return config, instance.model_copy(deep=True)


def save_instance_tokens(
    name: str,
    token: OAuthToken,
    path: Optional[Path] = None,
) -> Instance:
    """Persist refreshed or reauthorized OAuth tokens for instance *name*.

    The config is re-read before writing so that concurrent edits to other
    instances are not clobbered.

    Returns:
        The updated :class:`~zdcli.models.Instance`.

    Raises:
        ConfigError: If the instance does not exist.
    """
    config = load_config(path)
    instance = config.get_instance(name)
    instance.oauth_access_token = token.access_token
    if token.refresh_token:
        instance.oauth_refresh_token = token.refresh_token
    instance.oauth_expiry = token.expiry
    save_config(config, path)
    return instance.model_copy(deep=True)
