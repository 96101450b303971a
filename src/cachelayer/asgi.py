"""ASGI middleware applying the cache lifecycle to HTTP requests.

:class:`CacheMiddleware` wraps any ASGI application (Starlette, FastAPI,
or a bare callable) and is the async boundary of the cache: one call runs
the full lifecycle of a request before returning.

* Non-HTTP scopes (``websocket``, ``lifespan``) and non-GET requests go
  straight to the wrapped application.
* A fresh hit is answered from the stored envelope with status 200; the
  wrapped application is not called.
* Otherwise the downstream response is buffered in full, handed to
  :meth:`~cachelayer.client.CacheClient.store`, and then replayed to the
  server.

Example::

    from fastapi import FastAPI

    app = FastAPI()
    app.add_middleware(CacheMiddleware, client=CacheClient(adapter=MemoryAdapter(), ttl=60))
"""

from __future__ import annotations

from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from cachelayer.client import CacheClient
from cachelayer.envelope import ResponseEnvelope, header_from_pairs


class CacheMiddleware:
    """ASGI response cache.

    Args:
        app: The wrapped ASGI application.
        client: The configured :class:`~cachelayer.client.CacheClient`.
    """

    def __init__(self, app: ASGIApp, client: CacheClient) -> None:
        self.app = app
        self.client = client

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query = scope.get("query_string", b"").decode("latin-1")
        lookup = self.client.lookup(scope.get("method", ""), scope.get("path", ""), query)

        if not lookup.cacheable:
            await self.app(scope, receive, send)
            return

        if lookup.envelope is not None:
            await _send_envelope(lookup.envelope, send)
            return

        if lookup.query_string != query:
            scope = dict(scope)
            scope["query_string"] = lookup.query_string.encode("latin-1")

        recorder = _ResponseRecorder()
        await self.app(scope, receive, recorder)
        assert lookup.cache_key is not None
        self.client.store(lookup.cache_key, recorder.status, recorder.header, recorder.body)
        await recorder.replay(send)


async def _send_envelope(envelope: ResponseEnvelope, send: Send) -> None:
    headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in envelope.joined_header()
    ]
    await send({"type": "http.response.start", "status": 200, "headers": headers})
    await send({"type": "http.response.body", "body": envelope.value, "more_body": False})


class _ResponseRecorder:
    """Stand-in ``send`` callable that buffers a downstream response."""

    def __init__(self) -> None:
        self._start: Optional[Message] = None
        self._chunks: list[bytes] = []
        self._trailing: list[Message] = []

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]
        if message_type == "http.response.start":
            self._start = message
        elif message_type == "http.response.body":
            self._chunks.append(message.get("body", b""))
        else:
            self._trailing.append(message)

    @property
    def status(self) -> int:
        if self._start is None:
            raise RuntimeError("wrapped application returned without starting a response")
        return int(self._start["status"])

    @property
    def header(self) -> dict[str, list[str]]:
        if self._start is None:
            return {}
        return header_from_pairs(self._start.get("headers", []))

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    async def replay(self, send: Send) -> None:
        """Emit the captured headers, status and body to the real server."""
        if self._start is None:
            raise RuntimeError("wrapped application returned without starting a response")
        await send(self._start)
        await send({"type": "http.response.body", "body": self.body, "more_body": False})
        for message in self._trailing:
            await send(message)
