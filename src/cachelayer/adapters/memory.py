"""Bounded in-process adapter with recency and frequency eviction.

:class:`MemoryAdapter` keeps envelopes in a dict guarded by a single
:class:`threading.Lock`. When storing a new key would exceed ``capacity``,
one entry is evicted according to the configured :class:`Algorithm`,
ranked on the ``last_access`` and ``frequency`` fields the cache client
maintains inside each envelope. The rank is read once when an entry is
stored and kept beside its bytes.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import NamedTuple, Optional, Union

from cachelayer.adapters.base import Adapter
from cachelayer.envelope import ResponseEnvelope, decode
from cachelayer.exceptions import ConfigurationError, DecodeError

logger = logging.getLogger(__name__)


class Algorithm(str, enum.Enum):
    """Eviction policy used once the adapter is full."""

    LRU = "LRU"
    """Least recently used: evict the oldest ``last_access``."""
    MRU = "MRU"
    """Most recently used: evict the newest ``last_access``."""
    LFU = "LFU"
    """Least frequently used: evict the lowest ``frequency``."""
    MFU = "MFU"
    """Most frequently used: evict the highest ``frequency``."""


def _parse_algorithm(algorithm: Union[Algorithm, str]) -> Algorithm:
    if isinstance(algorithm, Algorithm):
        return algorithm
    try:
        return Algorithm(algorithm.upper())
    except (AttributeError, ValueError) as exc:
        raise ConfigurationError(f"memory adapter algorithm {algorithm!r} is invalid") from exc


class _Entry(NamedTuple):
    prefix: str
    data: bytes
    # None when the stored bytes are not a decodable envelope.
    rank: Optional[float]


class MemoryAdapter(Adapter):
    """Thread-safe in-memory storage collaborator.

    Args:
        capacity: Maximum number of entries. Must be greater than 1.
        algorithm: Eviction policy, as an :class:`Algorithm` or its name.

    Raises:
        ConfigurationError: On an invalid capacity or unknown algorithm.
    """

    def __init__(
        self,
        capacity: int = 10_000,
        algorithm: Union[Algorithm, str] = Algorithm.LRU,
    ) -> None:
        if capacity <= 1:
            raise ConfigurationError(f"memory adapter capacity {capacity} is invalid")
        self._algorithm = _parse_algorithm(algorithm)
        self._capacity = capacity
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def algorithm(self) -> Algorithm:
        return self._algorithm

    def get(self, prefix: str, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def set(self, prefix: str, key: str, response: bytes) -> None:
        entry = _Entry(prefix, response, self._rank(response))
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._capacity:
                victim = self._select_victim()
                logger.debug("evicting %s by %s", victim, self._algorithm.value)
                del self._entries[victim]
            self._entries[key] = entry

    def release(self, prefix: str, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def release_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k, entry in self._entries.items() if entry.prefix == prefix]:
                del self._entries[key]

    def release_if_starts_with(self, key_prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._entries if k.startswith(key_prefix)]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    # ------------------------------------------------------------------ #
    # Eviction
    # ------------------------------------------------------------------ #

    def _select_victim(self) -> str:
        """Pick the key to evict. Caller holds the lock.

        Entries whose bytes did not decode go first; ties fall back to insertion
        order.
        """
        ranked: list[tuple[float, int, str]] = []
        for position, (key, entry) in enumerate(self._entries.items()):
            if entry.rank is None:
                return key
            ranked.append((entry.rank, position, key))
        return min(ranked)[2]

    def _rank(self, data: bytes) -> Optional[float]:
        """Return the eviction score of *data*; lower is evicted first."""
        try:
            envelope = decode(data)
        except DecodeError:
            return None
        return self._score(envelope)

    def _score(self, envelope: ResponseEnvelope) -> float:
        if self._algorithm is Algorithm.LRU:
            return envelope.last_access.timestamp()
        if self._algorithm is Algorithm.MRU:
            return -envelope.last_access.timestamp()
        if self._algorithm is Algorithm.LFU:
            return float(envelope.frequency)
        return -float(envelope.frequency)
