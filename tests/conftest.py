"""Shared fixtures for the BEdita API client test suite."""

import asyncio
import inspect
import json
from collections.abc import Callable

import httpx
import pytest

from bedita_client.client.api_client import BEditaApiClient
from bedita_client.client.models import ClientConfig
from bedita_client.config.settings import get_settings
from bedita_client.interceptors.base import ResponseInterceptor

BASE_URL = "https://api.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


def respond(status: int = 200, body: dict | None = None) -> Handler:
    """Route handler returning a fresh JSON response on every call."""
    def _handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)
    return _handler


def auth_body(jwt: str = "access-1", renew: str = "refresh-1") -> dict:
    return {
        "data": {},
        "meta": {"jwt": jwt, "renew": renew},
    }


class FakeBackend:
    """httpx.MockTransport handler that routes by (method, path) and records calls.

    Each request yields to the event loop once, so concurrent calls
    really interleave.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Handler] = {}

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method.upper(), path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await asyncio.sleep(0)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": {"status": "404", "title": "Not Found"}})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result


def bearer_guard(token: str, ok: Handler) -> Handler:
    """Handler answering 401 unless the request carries ``Bearer <token>``."""
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("Authorization") != f"Bearer {token}":
            return httpx.Response(401, json={"error": {"status": "401", "title": "Expired token"}})
        return ok(request)
    return _handler


def request_json(request: httpx.Request):
    return json.loads(request.content) if request.content else None


USER_DOCUMENT = {
    "data": {
        "id": "1",
        "type": "users",
        "attributes": {"username": "bedita", "name": "BEdita"},
        "relationships": {"roles": {"data": [{"id": "1", "type": "roles"}]}},
    },
    "included": [
        {"id": "1", "type": "roles", "attributes": {"name": "admin"}},
        {"id": "9", "type": "images", "attributes": {"name": "avatar"}},
    ],
}


class RecordPaths(ResponseInterceptor):
    """Response interceptor recording the path of every response it sees."""

    key = "record-paths"

    def __init__(self, client, paths: list[str]):
        super().__init__(client)
        self.paths = paths

    async def on_response(self, response):
        self.paths.append(httpx.URL(response.request.url).path)
        return response


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def api_client(backend):
    """Client wired to the fake backend through httpx.MockTransport."""
    client = BEditaApiClient(
        ClientConfig(base_url=BASE_URL, api_key="test-api-key"),
        transport=httpx.MockTransport(backend),
    )
    yield client
    await client.close()


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(BEDITA_BASE_URL="https://x", CREDENTIAL_STORE_BACKEND="json")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        get_settings.cache_clear()

    yield _override

    get_settings.cache_clear()
