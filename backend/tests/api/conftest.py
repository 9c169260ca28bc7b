"""API test fixtures — HttpServer built around the packaged contract + httpx client.

Invariants:
    - Requests go through the full middleware stack via ASGITransport (no socket)
    - make_server() accepts any RouteProviders, so tests can mount stubs
    - Every client opened by a test is closed at teardown
"""

from typing import Callable

import pytest
from fastapi import APIRouter
from httpx import ASGITransport, AsyncClient

from userservice.api.routing import RouteProvider
from userservice.config import DEFAULT_SPEC_LOCATION
from userservice.factories import build_user_controller
from userservice.server import HttpServer, ServerConfiguration


class StubProvider(RouteProvider):
    """RouteProvider whose routes are given as (method, path, endpoint) triples."""

    def __init__(self, *routes: tuple[str, str, Callable]):
        self.router = APIRouter()
        for method, path, endpoint in routes:
            self.router.add_api_route(path, endpoint, methods=[method])

    def get_routes(self) -> APIRouter:
        return self.router


@pytest.fixture
def make_server(database):
    def _make(*controllers: RouteProvider, **overrides) -> HttpServer:
        config = ServerConfiguration(
            port=0,
            spec_location=DEFAULT_SPEC_LOCATION,
            controllers=controllers,
            **overrides,
        )
        return HttpServer(config, database=database)
    return _make


@pytest.fixture
async def client_for():
    clients: list[AsyncClient] = []

    def _open(server: HttpServer) -> AsyncClient:
        client = AsyncClient(
            transport=ASGITransport(app=server.app), base_url="http://test",
        )
        clients.append(client)
        return client

    yield _open
    for client in clients:
        await client.aclose()


@pytest.fixture
def client(make_server, database, client_for) -> AsyncClient:
    """Client for the real user service (SQLite-backed)."""
    return client_for(make_server(build_user_controller(database)))


@pytest.fixture
def stub_provider():
    return StubProvider
