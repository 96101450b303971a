"""Storage collaborators for the cache client.

:class:`Adapter` is the port the client depends on. :class:`MemoryAdapter`
and :class:`DiskAdapter` are ready-made implementations; any object with
the same five operations can be used instead.
"""

from cachelayer.adapters.base import Adapter
from cachelayer.adapters.disk import DiskAdapter
from cachelayer.adapters.memory import Algorithm, MemoryAdapter

__all__ = ["Adapter", "Algorithm", "DiskAdapter", "MemoryAdapter"]
