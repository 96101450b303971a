"""Tests for the ASGI middleware using a FastAPI application."""

from __future__ import annotations

from typing import Callable

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from cachelayer.asgi import CacheMiddleware
from cachelayer.client import CacheClient
from cachelayer.envelope import decode
from cachelayer.keys import derive_key
from conftest import FakeClock, RecordingAdapter


def _build_app(client: CacheClient, calls: list[str]) -> FastAPI:
    app = FastAPI()

    @app.get("/items")
    def list_items(request: Request) -> dict:
        calls.append(request.url.query)
        return {"call": len(calls), "query": request.url.query}

    @app.get("/missing")
    def missing() -> dict:
        calls.append("missing")
        raise HTTPException(status_code=404, detail="nope")

    @app.post("/items")
    def create_item() -> dict:
        calls.append("post")
        return {"created": len(calls)}

    app.add_middleware(CacheMiddleware, client=client)
    return app


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def http(client: CacheClient, calls: list[str]) -> TestClient:
    with TestClient(_build_app(client, calls)) as test_client:
        yield test_client


class TestCacheMiddleware:
    def test_miss_then_hit(self, http: TestClient, calls: list[str], adapter: RecordingAdapter) -> None:
        first = http.get("/items?b=2&a=1")
        assert first.status_code == 200
        assert first.json()["call"] == 1

        second = http.get("/items?a=1&b=2")
        assert second.status_code == 200
        assert second.json() == first.json()
        assert second.headers["content-type"] == "application/json"
        assert len(calls) == 1

        stored = decode(adapter.get(*derive_key("/items", "a=1&b=2")))
        assert stored.frequency == 2

    def test_stale_entry_refetched(
        self, http: TestClient, calls: list[str], clock: FakeClock
    ) -> None:
        http.get("/items")
        clock.advance(minutes=2)
        response = http.get("/items")
        assert response.json()["call"] == 2

    def test_refresh_strips_param(self, http: TestClient, calls: list[str]) -> None:
        http.get("/items?a=1")
        response = http.get("/items?refresh=1&a=1")
        assert response.json() == {"call": 2, "query": "a=1"}
        assert http.get("/items?a=1").json()["call"] == 2
        assert len(calls) == 2

    def test_error_response_not_stored(
        self, http: TestClient, calls: list[str], adapter: RecordingAdapter
    ) -> None:
        assert http.get("/missing").status_code == 404
        assert http.get("/missing").status_code == 404
        assert calls == ["missing", "missing"]
        assert adapter.get(*derive_key("/missing")) is None

    def test_post_bypasses_cache(
        self, http: TestClient, calls: list[str], adapter: RecordingAdapter
    ) -> None:
        assert http.post("/items").json() == {"created": 1}
        assert http.post("/items").json() == {"created": 2}
        assert len(adapter) == 0

    def test_get_failure_still_serves(
        self, http: TestClient, adapter: RecordingAdapter
    ) -> None:
        adapter.fail_on.add("get")
        assert http.get("/items").status_code == 200
        assert http.get("/items").json()["call"] == 2


class TestClientHelper:
    def test_middleware_wraps_app(self, make_client: Callable[..., CacheClient]) -> None:
        client = make_client()
        inner = FastAPI()
        wrapped = client.middleware(inner)
        assert isinstance(wrapped, CacheMiddleware)
        assert wrapped.app is inner
        assert wrapped.client is client


class TestBareAsgiApp:
    def test_app_without_response_raises(self, client: CacheClient) -> None:
        async def silent_app(scope, receive, send) -> None:
            return None

        http = TestClient(CacheMiddleware(silent_app, client=client))
        with pytest.raises(RuntimeError, match="without starting a response"):
            http.get("/silent")
