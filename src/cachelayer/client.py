"""Cache client: request lifecycle and invalidation surface.

:class:`CacheClient` is the host-independent core. Each host integration
(:mod:`cachelayer.asgi`, :mod:`cachelayer.wsgi`, :mod:`cachelayer.transport`)
drives it in two calls per request:

1. :meth:`CacheClient.lookup` runs the refresh check and the cache lookup
   and returns a :class:`CacheLookup` telling the host whether to bypass,
   serve a stored envelope, or forward upstream (and with which query).
2. On a forward, :meth:`CacheClient.store` receives the captured status,
   headers and body and stores them when the status is below 400.

The client holds no per-request state and takes no locks. Concurrent misses
for the same key each reach upstream and each write; the last write wins.

Storage failures inside the request path are logged and treated as a miss
(for reads) or ignored (for writes and releases), so a broken store only
makes requests slower. The explicit invalidation methods
(:meth:`~CacheClient.release_uri`, :meth:`~CacheClient.release_prefix`,
:meth:`~CacheClient.release_if_starts_with`) let adapter errors propagate to
their caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from cachelayer.adapters.base import Adapter
from cachelayer.envelope import ResponseEnvelope, decode, encode
from cachelayer.exceptions import DecodeError
from cachelayer.keys import derive_key, derive_key_from_uri, has_param, strip_param
from cachelayer.models import CacheKey, CacheSettings

if TYPE_CHECKING:
    from cachelayer.asgi import CacheMiddleware
    from cachelayer.wsgi import WSGIApplication, WSGICacheMiddleware
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

CACHEABLE_METHODS = frozenset({"GET", ""})
"""Methods eligible for caching. An empty method is treated as GET."""

ERROR_STATUS_THRESHOLD = 400
"""Responses with a status code at or above this value are never stored."""

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheLookup:
    """Outcome of :meth:`CacheClient.lookup` for one request.

    Attributes:
        cache_key: Where the response lives or will be stored. ``None`` when
            the request is not cacheable and must bypass the cache.
        envelope: The stored envelope on a fresh hit, already updated with
            the new ``last_access`` and ``frequency``.
        query_string: The query to forward upstream. Differs from the
            inbound query only when the refresh parameter was stripped.
        refreshed: ``True`` when the refresh parameter forced a release.
    """

    cache_key: Optional[CacheKey] = None
    envelope: Optional[ResponseEnvelope] = None
    query_string: str = ""
    refreshed: bool = False

    @property
    def cacheable(self) -> bool:
        return self.cache_key is not None

    @property
    def hit(self) -> bool:
        return self.envelope is not None


class CacheClient:
    """HTTP response cache client.

    Args:
        adapter: The storage collaborator. Required.
        ttl: Freshness lifetime as a :class:`~datetime.timedelta` or
            seconds. Required, must be greater than zero.
        refresh_key: Optional query parameter name. When present on a GET,
            the cached entry is released and the request is recomputed.
        debug: Log lifecycle diagnostics at INFO level.
        clock: Callable returning the current aware UTC time. Defaults to
            :func:`utcnow`.

    Raises:
        ConfigurationError: If the adapter is unset or the TTL is unset or
            non-positive.

    Example::

        client = CacheClient(adapter=MemoryAdapter(), ttl=60, refresh_key="refresh")
        app.add_middleware(CacheMiddleware, client=client)
    """

    def __init__(
        self,
        adapter: Optional[Adapter] = None,
        ttl: Any = None,
        refresh_key: Optional[str] = None,
        debug: bool = False,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = CacheSettings.create(
            adapter=adapter, ttl=ttl, refresh_key=refresh_key, debug=debug
        )
        self._clock: Clock = clock or utcnow

    @classmethod
    def from_settings(cls, settings: CacheSettings, clock: Optional[Clock] = None) -> CacheClient:
        """Build a client from already validated settings."""
        return cls(
            adapter=settings.adapter,
            ttl=settings.ttl,
            refresh_key=settings.refresh_key,
            debug=settings.debug,
            clock=clock,
        )

    @classmethod
    def from_env(
        cls,
        adapter: Optional[Adapter],
        clock: Optional[Clock] = None,
        **overrides: Any,
    ) -> CacheClient:
        """Build a client, filling unset options from ``CACHELAYER_*`` variables.

        See :func:`cachelayer.config.resolve_settings` for the precedence
        rules. *overrides* accepts ``ttl``, ``refresh_key`` and ``debug``.
        """
        from cachelayer.config import resolve_settings

        return cls.from_settings(resolve_settings(adapter, **overrides), clock=clock)

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    @property
    def adapter(self) -> Adapter:
        return self._settings.adapter

    # ------------------------------------------------------------------ #
    # Host integration helpers
    # ------------------------------------------------------------------ #

    def middleware(self, app: ASGIApp) -> CacheMiddleware:
        """Wrap an ASGI application with this client."""
        from cachelayer.asgi import CacheMiddleware

        return CacheMiddleware(app, client=self)

    def wsgi_middleware(self, app: WSGIApplication) -> WSGICacheMiddleware:
        """Wrap a WSGI application with this client."""
        from cachelayer.wsgi import WSGICacheMiddleware

        return WSGICacheMiddleware(app, client=self)

    # ------------------------------------------------------------------ #
    # Request lifecycle
    # ------------------------------------------------------------------ #

    def generate_prefix_and_key(self, path: str, query: str = "") -> CacheKey:
        """Return the ``(prefix, key)`` pair for *path* and *query*."""
        return derive_key(path, query)

    def lookup(self, method: Optional[str], path: str, query: str = "") -> CacheLookup:
        """Run the refresh check and cache lookup for one inbound request.

        Args:
            method: The request method. Only ``GET`` (or empty) is cacheable.
            path: The request path.
            query: The raw query string, without ``?``.

        Returns:
            A :class:`CacheLookup`. When ``cacheable`` is false, forward the
            request untouched. When ``hit`` is true, serve ``envelope``.
            Otherwise forward with ``query_string`` and pass the result to
            :meth:`store`.
        """
        if (method or "") not in CACHEABLE_METHODS:
            return CacheLookup(query_string=query)

        refresh_key = self._settings.refresh_key
        if refresh_key and has_param(query, refresh_key):
            forwarded = strip_param(query, refresh_key)
            cache_key = derive_key(path, forwarded)
            self._trace("refresh key found, releasing key %s:%s", *cache_key)
            self._release(cache_key)
            return CacheLookup(cache_key=cache_key, query_string=forwarded, refreshed=True)

        cache_key = derive_key(path, query)
        envelope = self._load(cache_key)
        if envelope is not None:
            now = self._clock()
            if envelope.is_fresh(now):
                self._trace("serving from cache %s:%s", *cache_key)
                envelope = envelope.touch(now)
                self._save(cache_key, envelope)
                return CacheLookup(cache_key=cache_key, envelope=envelope, query_string=query)
            self._trace("cached object expired, releasing %s:%s", *cache_key)
            self._release(cache_key)

        self._trace("object not in cache, fetching %s:%s from upstream", *cache_key)
        return CacheLookup(cache_key=cache_key, query_string=query)

    def store(
        self,
        cache_key: CacheKey,
        status_code: int,
        header: dict[str, list[str]],
        body: bytes,
    ) -> Optional[ResponseEnvelope]:
        """Store an upstream response unless it is an error.

        Args:
            cache_key: The key returned in the :class:`CacheLookup`.
            status_code: The upstream status code.
            header: Captured headers as a lower-cased multimap.
            body: The complete response body.

        Returns:
            The stored envelope, or ``None`` when the status was 400 or above.
        """
        if status_code >= ERROR_STATUS_THRESHOLD:
            self._trace("not caching %s:%s, upstream returned %d", cache_key.prefix, cache_key.key, status_code)
            return None
        envelope = ResponseEnvelope.fresh(body, header, self._settings.ttl, self._clock())
        self._save(cache_key, envelope)
        return envelope

    # ------------------------------------------------------------------ #
    # Invalidation surface
    # ------------------------------------------------------------------ #

    def release_uri(self, uri: str) -> CacheKey:
        """Release the entry cached for *uri* (``/path?query`` or a full URL).

        Returns:
            The key that was released.
        """
        cache_key = derive_key_from_uri(uri)
        self._trace("releasing %s:%s", *cache_key)
        self._settings.adapter.release(cache_key.prefix, cache_key.key)
        return cache_key

    def release_prefix(self, prefix: str) -> None:
        """Release every entry stored under *prefix* (a request path)."""
        self._trace("releasing prefix %s", prefix)
        self._settings.adapter.release_prefix(prefix)

    def release_if_starts_with(self, key_prefix: str) -> None:
        """Release every entry whose key string starts with *key_prefix*."""
        self._trace("releasing keys starting with %s", key_prefix)
        self._settings.adapter.release_if_starts_with(key_prefix)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _trace(self, message: str, *args: Any) -> None:
        if self._settings.debug:
            logger.info(message, *args)

    def _load(self, cache_key: CacheKey) -> Optional[ResponseEnvelope]:
        try:
            data = self._settings.adapter.get(cache_key.prefix, cache_key.key)
        except Exception as exc:
            logger.warning("cache get failed for %s:%s: %s", cache_key.prefix, cache_key.key, exc)
            return None
        if data is None:
            return None
        try:
            return decode(data)
        except DecodeError as exc:
            logger.warning("discarding undecodable entry %s:%s: %s", cache_key.prefix, cache_key.key, exc)
            self._release(cache_key)
            return None

    def _save(self, cache_key: CacheKey, envelope: ResponseEnvelope) -> None:
        try:
            self._settings.adapter.set(cache_key.prefix, cache_key.key, encode(envelope))
        except Exception as exc:
            logger.warning("cache set failed for %s:%s: %s", cache_key.prefix, cache_key.key, exc)

    def _release(self, cache_key: CacheKey) -> None:
        try:
            self._settings.adapter.release(cache_key.prefix, cache_key.key)
        except Exception as exc:
            logger.warning("cache release failed for %s:%s: %s", cache_key.prefix, cache_key.key, exc)
