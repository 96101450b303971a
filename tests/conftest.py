"""Shared test fixtures for cachelayer.

Provides a controllable clock, in-memory adapters, a client factory, and
isolation of the ``CACHELAYER_*`` environment and global output state.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from cachelayer.adapters.memory import MemoryAdapter
from cachelayer.client import CacheClient
from cachelayer.output import reset_output


START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock passed to :class:`CacheClient`."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingAdapter(MemoryAdapter):
    """MemoryAdapter that records every call and can be told to fail."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_on: set[str] = set()

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail_on:
            raise OSError(f"{name} unavailable")

    def get(self, prefix: str, key: str) -> Optional[bytes]:
        self._record("get", prefix, key)
        return super().get(prefix, key)

    def set(self, prefix: str, key: str, response: bytes) -> None:
        self._record("set", prefix, key)
        super().set(prefix, key, response)

    def release(self, prefix: str, key: str) -> None:
        self._record("release", prefix, key)
        super().release(prefix, key)

    def release_prefix(self, prefix: str) -> None:
        self._record("release_prefix", prefix)
        super().release_prefix(prefix)

    def release_if_starts_with(self, key_prefix: str) -> None:
        self._record("release_if_starts_with", key_prefix)
        super().release_if_starts_with(key_prefix)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's CACHELAYER_* variables out of every test."""
    for name in (
        "CACHELAYER_TTL",
        "CACHELAYER_REFRESH_KEY",
        "CACHELAYER_DEBUG",
        "CACHELAYER_CACHE_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter(capacity=100)


@pytest.fixture
def make_client(adapter: RecordingAdapter, clock: FakeClock) -> Callable[..., CacheClient]:
    """Factory building a CacheClient on the shared adapter and clock."""

    def _make(**kwargs: Any) -> CacheClient:
        kwargs.setdefault("adapter", adapter)
        kwargs.setdefault("ttl", timedelta(minutes=1))
        kwargs.setdefault("clock", clock)
        return CacheClient(**kwargs)

    return _make


@pytest.fixture
def client(make_client: Callable[..., CacheClient]) -> CacheClient:
    """Client with a one-minute TTL and ``refresh`` as the refresh key."""
    return make_client(refresh_key="refresh")


@pytest.fixture
def cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point CACHELAYER_CACHE_DIR at a temporary directory."""
    directory = tmp_path / "cache"
    monkeypatch.setenv("CACHELAYER_CACHE_DIR", str(directory))
    return directory
