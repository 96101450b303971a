"""Abstract storage port consumed by the cache client.

A storage collaborator persists opaque envelope bytes under a two-part
``(prefix, key)`` address and owns everything the cache client does not:
eviction policy, expiry sweeps, and locking around its own structures.
The client calls these methods concurrently from many requests and never
synchronises them.

Any object providing the five operations counts as an :class:`Adapter`
for ``isinstance`` checks, so existing store wrappers do not have to
subclass it.

Example:
    Minimal dict-backed adapter (not thread-safe)::

        class DictAdapter(Adapter):
            def __init__(self):
                self.data = {}

            def get(self, prefix, key):
                return self.data.get(key)

            def set(self, prefix, key, response):
                self.data[key] = response

            def release(self, prefix, key):
                self.data.pop(key, None)

            def release_prefix(self, prefix):
                ...

            def release_if_starts_with(self, key_prefix):
                ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

OPERATIONS = ("get", "set", "release", "release_prefix", "release_if_starts_with")


class Adapter(ABC):
    """Storage collaborator interface."""

    @classmethod
    def __subclasshook__(cls, subclass: type) -> bool:
        if cls is Adapter:
            if all(callable(getattr(subclass, name, None)) for name in OPERATIONS):
                return True
        return NotImplemented

    @abstractmethod
    def get(self, prefix: str, key: str) -> Optional[bytes]:
        """Return the bytes stored under *key*, or ``None`` if absent."""
        ...

    @abstractmethod
    def set(self, prefix: str, key: str, response: bytes) -> None:
        """Store *response* under *key*, overwriting any previous value."""
        ...

    @abstractmethod
    def release(self, prefix: str, key: str) -> None:
        """Remove *key*. Releasing an absent key is a no-op."""
        ...

    @abstractmethod
    def release_prefix(self, prefix: str) -> None:
        """Remove every entry stored with exactly this *prefix*."""
        ...

    @abstractmethod
    def release_if_starts_with(self, key_prefix: str) -> None:
        """Remove every entry whose key string starts with *key_prefix*."""
        ...
