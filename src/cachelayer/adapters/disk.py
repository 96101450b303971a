"""Persistent adapter backed by :mod:`diskcache`.

Envelopes are written to a :class:`diskcache.Cache` under a ``responses/``
subdirectory. The request prefix is stored as the diskcache *tag* of each
entry so that :meth:`DiskAdapter.release_prefix` is a single
:meth:`diskcache.Cache.evict` call. diskcache handles locking across
threads and processes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import diskcache

from cachelayer.adapters.base import Adapter


class DiskAdapter(Adapter):
    """Disk-backed storage collaborator.

    Args:
        directory: Root directory for the store. A ``responses/``
            subdirectory is created inside it.
        expire: Optional lifetime in seconds after which diskcache drops
            an entry on its own, independent of the envelope's expiration.

    Example::

        with DiskAdapter("/var/cache/myapp") as adapter:
            client = CacheClient(adapter=adapter, ttl=300)
    """

    def __init__(self, directory: str | Path, expire: Optional[float] = None) -> None:
        self._directory = Path(directory) / "responses"
        self._expire = expire
        self._cache = diskcache.Cache(str(self._directory))
        self._cache.create_tag_index()

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, prefix: str, key: str) -> Optional[bytes]:
        value = self._cache.get(key)
        if value is None:
            return None
        return bytes(value)

    def set(self, prefix: str, key: str, response: bytes) -> None:
        self._cache.set(key, bytes(response), expire=self._expire, tag=prefix)

    def release(self, prefix: str, key: str) -> None:
        self._cache.delete(key)

    def release_prefix(self, prefix: str) -> None:
        self._cache.evict(prefix)

    def release_if_starts_with(self, key_prefix: str) -> None:
        for key in list(self._cache.iterkeys()):
            if isinstance(key, str) and key.startswith(key_prefix):
                self._cache.delete(key)

    def clear(self) -> None:
        """Remove all entries."""
        self._cache.clear()

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        self._cache.close()

    def __len__(self) -> int:
        return len(self._cache)

    def __enter__(self) -> DiskAdapter:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
