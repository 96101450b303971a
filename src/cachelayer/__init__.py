"""cachelayer -- HTTP response caching for ASGI, WSGI and httpx.

A :class:`CacheClient` wraps a storage :class:`~cachelayer.adapters.Adapter`
and applies a simple lifecycle to each GET request: derive a
``(prefix, key)`` pair from the path and the canonicalised query, serve a
fresh stored response when there is one, and otherwise forward upstream and
store anything below status 400.

Typical setup::

    from cachelayer import CacheClient, CacheMiddleware, MemoryAdapter

    client = CacheClient(adapter=MemoryAdapter(capacity=1000), ttl=60, refresh_key="refresh")
    app.add_middleware(CacheMiddleware, client=client)

Modules:
    client: The request lifecycle and the invalidation surface.
    keys: Query canonicalisation and FNV-1a key derivation.
    envelope: The stored response record and its JSON wire format.
    models: Pydantic settings model and the cache key tuple.
    config: Environment variables and XDG cache directory.
    adapters: Storage port plus in-memory and on-disk implementations.
    asgi, wsgi, transport: Host integrations.
    app: Typer CLI for inspecting and invalidating on-disk caches.
    exceptions: Exception hierarchy with exit-code mapping.
"""

__version__ = "0.1.0"

from cachelayer.adapters import Adapter, Algorithm, DiskAdapter, MemoryAdapter
from cachelayer.asgi import CacheMiddleware
from cachelayer.client import CacheClient, CacheLookup
from cachelayer.envelope import ResponseEnvelope, decode, encode
from cachelayer.exceptions import (
    CacheLayerError,
    ConfigurationError,
    DecodeError,
    EntryNotFoundError,
    InvalidUsageError,
)
from cachelayer.keys import derive_key
from cachelayer.models import CacheKey, CacheSettings
from cachelayer.transport import AsyncCacheTransport, CacheTransport
from cachelayer.wsgi import WSGICacheMiddleware

__all__ = [
    "Adapter",
    "Algorithm",
    "AsyncCacheTransport",
    "CacheClient",
    "CacheKey",
    "CacheLayerError",
    "CacheLookup",
    "CacheMiddleware",
    "CacheSettings",
    "CacheTransport",
    "ConfigurationError",
    "DecodeError",
    "DiskAdapter",
    "EntryNotFoundError",
    "InvalidUsageError",
    "MemoryAdapter",
    "ResponseEnvelope",
    "WSGICacheMiddleware",
    "decode",
    "derive_key",
    "encode",
]
