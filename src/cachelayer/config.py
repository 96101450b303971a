"""Configuration resolution: XDG cache directory and environment settings.

* **Directory layout** -- the default on-disk store lives in an XDG Base
  Directory compliant location on Linux/BSD and under ``~/.cachelayer/`` on
  macOS and Windows. ``CACHELAYER_CACHE_DIR`` overrides both. See
  :func:`get_cache_dir`.
* **Precedence resolution** -- :func:`resolve_settings` merges explicit
  arguments, environment variables, and defaults into a validated
  :class:`~cachelayer.models.CacheSettings`.

Environment variables:

``CACHELAYER_TTL``
    Time-to-live in seconds (int or float).
``CACHELAYER_REFRESH_KEY``
    Refresh-trigger query parameter name.
``CACHELAYER_DEBUG``
    ``1``, ``true``, ``yes`` or ``on`` enables lifecycle diagnostics.
``CACHELAYER_CACHE_DIR``
    Directory used by the CLI's disk adapter.
"""

from __future__ import annotations

import os
import platform
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from cachelayer.adapters.base import Adapter
from cachelayer.exceptions import ConfigurationError
from cachelayer.models import CacheSettings

_APP_NAME = "cachelayer"
_TRUTHY = frozenset({"1", "true", "yes", "on"})

ENV_TTL = "CACHELAYER_TTL"
ENV_REFRESH_KEY = "CACHELAYER_REFRESH_KEY"
ENV_DEBUG = "CACHELAYER_DEBUG"
ENV_CACHE_DIR = "CACHELAYER_CACHE_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow XDG Base Directory paths (Linux/FreeBSD)."""
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


def get_cache_dir() -> Path:
    """Return the default cache directory, creating it if necessary.

    ``$CACHELAYER_CACHE_DIR`` when set. Otherwise, on Linux/BSD:
    ``$XDG_CACHE_HOME/cachelayer/`` (default ``~/.cache/cachelayer/``); on
    macOS/Windows: ``~/.cachelayer/cache/``.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    override = os.environ.get(ENV_CACHE_DIR, "")
    if override:
        path = Path(override).expanduser()
    elif _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Settings resolution ---


def _env_ttl() -> Optional[timedelta]:
    raw = os.environ.get(ENV_TTL, "").strip()
    if not raw:
        return None
    try:
        return timedelta(seconds=float(raw))
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_TTL}={raw!r} is not a number of seconds") from exc


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in _TRUTHY


def resolve_settings(
    adapter: Optional[Adapter],
    ttl: Any = None,
    refresh_key: Optional[str] = None,
    debug: Optional[bool] = None,
) -> CacheSettings:
    """Resolve cache settings with full precedence chain.

    Precedence (high to low):
        1. Explicit arguments
        2. Environment variables (``CACHELAYER_TTL``,
           ``CACHELAYER_REFRESH_KEY``, ``CACHELAYER_DEBUG``)
        3. Defaults (no refresh key, debug off; TTL has no default)

    Returns:
        The validated :class:`~cachelayer.models.CacheSettings`.

    Raises:
        ConfigurationError: If the adapter is missing, no TTL is available
            from either source, or a value is invalid.
    """
    resolved_ttl = ttl if ttl is not None else _env_ttl()

    resolved_refresh_key = refresh_key
    if resolved_refresh_key is None:
        resolved_refresh_key = os.environ.get(ENV_REFRESH_KEY) or None

    resolved_debug = debug
    if resolved_debug is None:
        resolved_debug = bool(_env_flag(ENV_DEBUG))

    return CacheSettings.create(
        adapter=adapter,
        ttl=resolved_ttl,
        refresh_key=resolved_refresh_key,
        debug=resolved_debug,
    )
