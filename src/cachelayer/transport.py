"""httpx transports applying the cache lifecycle on the client side.

:class:`CacheTransport` and :class:`AsyncCacheTransport` sit between an
:class:`httpx.Client` / :class:`httpx.AsyncClient` and the real network
transport, so repeated GETs from an API consumer are answered from the
shared adapter instead of going over the wire.

The stored body is the decoded content (``response.read()``), so
``content-encoding``, ``content-length`` and ``transfer-encoding`` are
dropped from the stored headers; httpx recomputes the length for the
responses these transports return.

Example::

    cache = CacheClient(adapter=MemoryAdapter(), ttl=300)
    with httpx.Client(transport=CacheTransport(cache)) as http:
        http.get("https://api.example.com/items?page=1")
"""

from __future__ import annotations

from typing import Optional

import httpx

from cachelayer.client import CacheClient, CacheLookup
from cachelayer.envelope import ResponseEnvelope, header_from_pairs

_BODY_FRAMING_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def _stored_header(response: httpx.Response) -> dict[str, list[str]]:
    header = header_from_pairs(response.headers.multi_items())
    return {name: values for name, values in header.items() if name not in _BODY_FRAMING_HEADERS}


def _header_pairs(header: dict[str, list[str]]) -> list[tuple[str, str]]:
    return [(name, value) for name, values in header.items() for value in values]


def _cached_response(envelope: ResponseEnvelope, request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        status_code=200,
        headers=envelope.joined_header(),
        content=envelope.value,
        request=request,
        extensions={"cachelayer_hit": True},
    )


def _forward_request(request: httpx.Request, lookup: CacheLookup) -> httpx.Request:
    """Return *request*, or a copy carrying the lookup's rewritten query."""
    query = lookup.query_string.encode("ascii")
    if query == request.url.query:
        return request
    return httpx.Request(
        method=request.method,
        url=request.url.copy_with(query=query or None),
        headers=request.headers,
        stream=request.stream,
        extensions=request.extensions,
    )


def _rebuilt_response(
    upstream: httpx.Response,
    header: dict[str, list[str]],
    body: bytes,
    request: httpx.Request,
) -> httpx.Response:
    return httpx.Response(
        status_code=upstream.status_code,
        headers=_header_pairs(header),
        content=body,
        request=request,
        extensions={**upstream.extensions, "cachelayer_hit": False},
    )


class CacheTransport(httpx.BaseTransport):
    """Synchronous caching transport.

    Args:
        client: The configured :class:`~cachelayer.client.CacheClient`.
        transport: The transport that performs real requests. Defaults to
            :class:`httpx.HTTPTransport`.
    """

    def __init__(self, client: CacheClient, transport: Optional[httpx.BaseTransport] = None) -> None:
        self._cache = client
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        lookup = self._cache.lookup(
            request.method, request.url.path, request.url.query.decode("ascii")
        )
        if not lookup.cacheable:
            return self._transport.handle_request(request)
        if lookup.envelope is not None:
            return _cached_response(lookup.envelope, request)

        forwarded = _forward_request(request, lookup)
        upstream = self._transport.handle_request(forwarded)
        try:
            body = upstream.read()
        finally:
            upstream.close()

        header = _stored_header(upstream)
        assert lookup.cache_key is not None
        self._cache.store(lookup.cache_key, upstream.status_code, header, body)
        return _rebuilt_response(upstream, header, body, request)

    def close(self) -> None:
        self._transport.close()


class AsyncCacheTransport(httpx.AsyncBaseTransport):
    """Asynchronous caching transport.

    Adapter calls stay synchronous; the whole lifecycle for one request
    runs inside :meth:`handle_async_request`.

    Args:
        client: The configured :class:`~cachelayer.client.CacheClient`.
        transport: The transport that performs real requests. Defaults to
            :class:`httpx.AsyncHTTPTransport`.
    """

    def __init__(
        self,
        client: CacheClient,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cache = client
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        lookup = self._cache.lookup(
            request.method, request.url.path, request.url.query.decode("ascii")
        )
        if not lookup.cacheable:
            return await self._transport.handle_async_request(request)
        if lookup.envelope is not None:
            return _cached_response(lookup.envelope, request)

        forwarded = _forward_request(request, lookup)
        upstream = await self._transport.handle_async_request(forwarded)
        try:
            body = await upstream.aread()
        finally:
            await upstream.aclose()

        header = _stored_header(upstream)
        assert lookup.cache_key is not None
        self._cache.store(lookup.cache_key, upstream.status_code, header, body)
        return _rebuilt_response(upstream, header, body, request)

    async def aclose(self) -> None:
        await self._transport.aclose()
