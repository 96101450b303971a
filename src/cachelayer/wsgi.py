"""WSGI middleware applying the cache lifecycle to HTTP requests.

:class:`WSGICacheMiddleware` is the synchronous counterpart of
:class:`~cachelayer.asgi.CacheMiddleware` for Flask, Django or any other
PEP 3333 application. The request path is ``SCRIPT_NAME + PATH_INFO`` so
that mounted applications keep distinct prefixes.

On a miss the wrapped application's body iterable (plus anything written
through the legacy ``write()`` callable) is drained and closed before the
response is stored and returned as a single chunk.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional

from cachelayer.client import CacheClient
from cachelayer.envelope import header_from_pairs

WSGIEnvironment = dict[str, Any]
StartResponse = Callable[..., Callable[[bytes], object]]
WSGIApplication = Callable[[WSGIEnvironment, StartResponse], Iterable[bytes]]


def status_line(status_code: int) -> str:
    """Return a WSGI status line such as ``"200 OK"``."""
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        phrase = ""
    return f"{status_code} {phrase}".rstrip()


class WSGICacheMiddleware:
    """WSGI response cache.

    Args:
        app: The wrapped WSGI application.
        client: The configured :class:`~cachelayer.client.CacheClient`.

    Example::

        app.wsgi_app = WSGICacheMiddleware(app.wsgi_app, client=client)
    """

    def __init__(self, app: WSGIApplication, client: CacheClient) -> None:
        self.app = app
        self.client = client

    def __call__(self, environ: WSGIEnvironment, start_response: StartResponse) -> Iterable[bytes]:
        query = environ.get("QUERY_STRING", "")
        path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
        lookup = self.client.lookup(environ.get("REQUEST_METHOD", ""), path, query)

        if not lookup.cacheable:
            return self.app(environ, start_response)

        if lookup.envelope is not None:
            start_response(status_line(200), lookup.envelope.joined_header())
            return [lookup.envelope.value]

        if lookup.query_string != query:
            environ = dict(environ)
            environ["QUERY_STRING"] = lookup.query_string

        recorder = _ResponseRecorder()
        recorder.run(self.app, environ)
        assert lookup.cache_key is not None
        self.client.store(lookup.cache_key, recorder.status_code, recorder.header, recorder.body)
        start_response(recorder.status, recorder.headers)
        return [recorder.body]


class _ResponseRecorder:
    """Buffers the status, headers and body produced by a WSGI application."""

    def __init__(self) -> None:
        self.status: Optional[str] = None
        self.headers: list[tuple[str, str]] = []
        self._chunks: list[bytes] = []

    def start_response(
        self,
        status: str,
        headers: list[tuple[str, str]],
        exc_info: Any = None,
    ) -> Callable[[bytes], object]:
        # Nothing reaches the server before the app returns, so a second
        # call with exc_info replaces the buffered status and headers.
        self.status = status
        self.headers = list(headers)
        return self._chunks.append

    def run(self, app: WSGIApplication, environ: WSGIEnvironment) -> None:
        result = app(environ, self.start_response)
        try:
            for chunk in result:
                if chunk:
                    self._chunks.append(chunk)
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()
        if self.status is None:
            raise RuntimeError("wrapped application returned without calling start_response")

    @property
    def status_code(self) -> int:
        assert self.status is not None
        return int(self.status.split(" ", 1)[0])

    @property
    def header(self) -> dict[str, list[str]]:
        return header_from_pairs(self.headers)

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

