"""Tests for the WSGI middleware driven through httpx.WSGITransport."""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from cachelayer.client import CacheClient
from cachelayer.keys import derive_key
from cachelayer.wsgi import WSGICacheMiddleware, status_line
from conftest import FakeClock, RecordingAdapter


class CountingApp:
    """Minimal WSGI app echoing its call count and query string."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.closed = 0

    def __call__(self, environ, start_response):
        query = environ.get("QUERY_STRING", "")
        self.calls.append(query)
        path = environ.get("PATH_INFO", "")
        if path == "/missing":
            start_response("404 Not Found", [("Content-Type", "text/plain")])
            return [b"not found"]
        if path == "/legacy":
            write = start_response("200 OK", [("Content-Type", "text/plain")])
            write(b"written ")
            return [b"returned"]
        body = json.dumps({"call": len(self.calls), "query": query}).encode()
        start_response("200 OK", [("Content-Type", "application/json"), ("X-Tag", "a"), ("X-Tag", "b")])
        return _ClosingIterable([body[:5], body[5:]], self)


class _ClosingIterable:
    def __init__(self, chunks: list[bytes], app: CountingApp) -> None:
        self._chunks = chunks
        self._app = app

    def __iter__(self):
        return iter(self._chunks)

    def close(self) -> None:
        self._app.closed += 1


@pytest.fixture
def wsgi_app() -> CountingApp:
    return CountingApp()


@pytest.fixture
def http(client: CacheClient, wsgi_app: CountingApp) -> httpx.Client:
    transport = httpx.WSGITransport(app=WSGICacheMiddleware(wsgi_app, client=client))
    with httpx.Client(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


class TestWSGICacheMiddleware:
    def test_miss_then_hit(self, http: httpx.Client, wsgi_app: CountingApp) -> None:
        first = http.get("/items?b=2&a=1")
        second = http.get("/items?a=1&b=2")
        assert first.status_code == second.status_code == 200
        assert second.json() == first.json() == {"call": 1, "query": "b=2&a=1"}
        assert second.headers["x-tag"] == "a,b"
        assert len(wsgi_app.calls) == 1
        assert wsgi_app.closed == 1

    def test_refresh_strips_param(self, http: httpx.Client, wsgi_app: CountingApp) -> None:
        http.get("/items")
        response = http.get("/items?refresh")
        assert response.json() == {"call": 2, "query": ""}
        assert http.get("/items").json()["call"] == 2

    def test_stale_entry_refetched(
        self, http: httpx.Client, wsgi_app: CountingApp, clock: FakeClock
    ) -> None:
        http.get("/items")
        clock.advance(minutes=5)
        assert http.get("/items").json()["call"] == 2

    def test_error_not_stored(
        self, http: httpx.Client, wsgi_app: CountingApp, adapter: RecordingAdapter
    ) -> None:
        assert http.get("/missing").status_code == 404
        assert http.get("/missing").text == "not found"
        assert len(wsgi_app.calls) == 2
        assert adapter.get(*derive_key("/missing")) is None

    def test_write_callable_output_captured(self, http: httpx.Client, wsgi_app: CountingApp) -> None:
        assert http.get("/legacy").text == "written returned"
        assert http.get("/legacy").text == "written returned"
        assert len(wsgi_app.calls) == 1

    def test_post_bypasses(self, http: httpx.Client, wsgi_app: CountingApp, adapter: RecordingAdapter) -> None:
        http.post("/items")
        http.post("/items")
        assert len(wsgi_app.calls) == 2
        assert len(adapter) == 0

    def test_script_name_in_prefix(self, client: CacheClient, wsgi_app: CountingApp, adapter: RecordingAdapter) -> None:
        middleware = WSGICacheMiddleware(wsgi_app, client=client)
        environ = {"REQUEST_METHOD": "GET", "SCRIPT_NAME": "/api", "PATH_INFO": "/items", "QUERY_STRING": ""}
        statuses: list[str] = []
        body = b"".join(middleware(environ, lambda status, headers, exc_info=None: statuses.append(status)))
        assert statuses == ["200 OK"]
        assert json.loads(body)["call"] == 1
        assert adapter.get(*derive_key("/api/items")) is not None


class TestHelpers:
    def test_status_line(self) -> None:
        assert status_line(200) == "200 OK"
        assert status_line(404) == "404 Not Found"
        assert status_line(599) == "599"

    def test_wsgi_middleware_helper(self, make_client: Callable[..., CacheClient], wsgi_app: CountingApp) -> None:
        client = make_client()
        wrapped = client.wsgi_middleware(wsgi_app)
        assert isinstance(wrapped, WSGICacheMiddleware)
        assert wrapped.app is wsgi_app
