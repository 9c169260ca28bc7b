"""Error Translator — every failure leaves the server as one uniform JSON response.

Invariants:
    - Unclassified exceptions → 500 with exactly {"message": "Internal Server Error"}
    - Errors carrying a status keep it and render {message, status, timestamp, path}
    - An explicit 500 is logged in full before the response is sent
    - The process keeps serving after any of the above
"""

import logging

import pytest
from fastapi import HTTPException
from pydantic import BaseModel

from userservice.config import DEFAULT_SPEC_LOCATION
from userservice.core.errors import DatabaseError, ResourceNotFoundError
from userservice.factories import build_user_controller
from userservice.infrastructure.database import Database
from userservice.server import HttpServer, ServerConfiguration


async def test_unclassified_error_hides_details(make_server, client_for, stub_provider, caplog):
    async def list_users():
        raise RuntimeError("connection string is postgres://admin:hunter2@db")

    client = client_for(make_server(stub_provider(("GET", "/users", list_users))))
    res = await client.get("/users")

    assert res.status_code == 500
    assert res.json() == {"message": "Internal Server Error"}
    assert "hunter2" not in res.text
    assert any(r.exc_info for r in caplog.records if r.levelno == logging.ERROR)


async def test_server_keeps_serving_after_unclassified_error(make_server, client_for, stub_provider):
    async def list_users():
        raise ValueError("boom")

    client = client_for(make_server(stub_provider(("GET", "/users", list_users))))
    assert (await client.get("/users")).status_code == 500
    assert (await client.get("/health")).status_code == 200


async def test_explicit_not_found_keeps_status(make_server, client_for, stub_provider):
    async def get_user(id: str):
        raise ResourceNotFoundError("User", id)

    client = client_for(make_server(stub_provider(("GET", "/users/{id}", get_user))))
    res = await client.get("/users/ghost")

    assert res.status_code == 404
    body = res.json()
    assert body["message"] == "User not found"
    assert body["status"] == 404
    assert body["path"] == "/users/ghost"
    assert body["timestamp"].endswith("Z")


async def test_http_exception_uses_detail(make_server, client_for, stub_provider):
    async def get_user(id: str):
        raise HTTPException(status_code=404, detail="gone")

    client = client_for(make_server(stub_provider(("GET", "/users/{id}", get_user))))
    res = await client.get("/users/ghost")

    assert res.status_code == 404
    assert res.json()["message"] == "gone"


async def test_explicit_500_is_logged_in_full(make_server, client_for, stub_provider, caplog):
    async def list_users():
        raise DatabaseError("disk full", "insert")

    client = client_for(make_server(stub_provider(("GET", "/users", list_users))))
    with caplog.at_level(logging.ERROR):
        res = await client.get("/users")

    assert res.status_code == 500
    assert res.json()["message"] == "Database insert failed: disk full"
    logged = [r.getMessage() for r in caplog.records]
    assert any('"code": "DATABASE_ERROR"' in m and '"path": "/users"' in m for m in logged)


async def test_framework_validation_error_becomes_400(make_server, client_for, stub_provider):
    class StricterUser(BaseModel):
        id: str
        name: str
        email: str
        nickname: str

    async def create_user(body: StricterUser):
        pytest.fail("handler must not run")

    client = client_for(make_server(stub_provider(("POST", "/users", create_user))))
    res = await client.post("/users", json={"id": "u1", "name": "Ada", "email": "a@b.co"})

    assert res.status_code == 400
    body = res.json()
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["field"] == "body.nickname"


async def test_request_before_database_connected_fails_fast(client_for, database_url):
    database = Database(database_url)
    server = HttpServer(
        ServerConfiguration(
            port=0,
            spec_location=DEFAULT_SPEC_LOCATION,
            controllers=(build_user_controller(database),),
        ),
        database=database,
    )
    res = await client_for(server).get("/users")

    assert res.status_code == 500
    assert res.json()["message"] == "Database is not connected"
