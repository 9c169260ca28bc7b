"""Users API — end-to-end CRUD through contract validation, controller, service and SQLite.

Invariants:
    - POST → 201 with the stored user; GET by id returns the same user
    - Duplicate id / email and malformed email → 400 ValidationError
    - Unknown id → 404 "User not found" on GET, PUT and DELETE
    - DELETE → 200 {"message": "User deleted successfully"}
"""

from datetime import datetime

import pytest

from userservice.factories import build_user_controller

ADA = {"id": "u1", "name": "Ada", "email": "ada@example.com"}


@pytest.fixture
async def ada(client):
    res = await client.post("/users", json=ADA)
    assert res.status_code == 201
    return res.json()


async def test_create_then_fetch(client, ada):
    assert ada["id"] == "u1"
    assert ada["name"] == "Ada"
    assert ada["email"] == "ada@example.com"
    assert datetime.fromisoformat(ada["createdAt"].replace("Z", "+00:00")).tzinfo is not None

    res = await client.get("/users/u1")
    assert res.status_code == 200
    assert res.json() == ada


async def test_create_keeps_supplied_created_at(client):
    res = await client.post(
        "/users", json={**ADA, "createdAt": "2024-05-01T12:00:00+02:00"},
    )
    assert res.status_code == 201
    created = datetime.fromisoformat(res.json()["createdAt"].replace("Z", "+00:00"))
    assert created == datetime.fromisoformat("2024-05-01T10:00:00+00:00")


async def test_list_users(client, ada):
    await client.post("/users", json={"id": "u2", "name": "Bob", "email": "bob@example.com"})

    res = await client.get("/users")
    assert res.status_code == 200
    assert [u["id"] for u in res.json()] == ["u1", "u2"]


async def test_list_users_empty(client):
    res = await client.get("/users")
    assert res.status_code == 200
    assert res.json() == []


async def test_duplicate_id_rejected(client, ada):
    res = await client.post("/users", json={**ADA, "email": "other@example.com"})
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "body.id"


async def test_duplicate_email_rejected(client, ada):
    res = await client.post("/users", json={**ADA, "id": "u2"})
    assert res.status_code == 400
    error = res.json()["errors"][0]
    assert error["field"] == "body.email"
    assert error["value"] == "ada@example.com"


async def test_invalid_email_rejected(client):
    res = await client.post("/users", json={**ADA, "email": "not-an-email"})
    assert res.status_code == 400
    assert res.json()["errors"][0]["message"] == "Please provide a valid email address"


async def test_empty_id_rejected_by_contract(client):
    res = await client.post("/users", json={**ADA, "id": ""})
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "body.id"


async def test_update_name(client, ada):
    res = await client.put("/users/u1", json={"name": "Ada Lovelace"})
    assert res.status_code == 200
    assert res.json()["name"] == "Ada Lovelace"
    assert res.json()["email"] == ADA["email"]

    assert (await client.get("/users/u1")).json()["name"] == "Ada Lovelace"


async def test_update_with_empty_body_returns_user_unchanged(client, ada):
    res = await client.put("/users/u1", json={})
    assert res.status_code == 200
    assert res.json() == ada


async def test_update_to_taken_email_rejected(client, ada):
    await client.post("/users", json={"id": "u2", "name": "Bob", "email": "bob@example.com"})

    res = await client.put("/users/u2", json={"email": ADA["email"]})
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "body.email"


async def test_update_unknown_user_returns_404(client):
    res = await client.put("/users/ghost", json={"name": "x"})
    assert res.status_code == 404
    assert res.json()["message"] == "User not found"


async def test_get_unknown_user_returns_404(client):
    res = await client.get("/users/ghost")
    assert res.status_code == 404
    body = res.json()
    assert body["message"] == "User not found"
    assert body["path"] == "/users/ghost"


async def test_delete_user(client, ada):
    res = await client.delete("/users/u1")
    assert res.status_code == 200
    assert res.json() == {"message": "User deleted successfully"}

    assert (await client.get("/users/u1")).status_code == 404


async def test_delete_unknown_user_returns_404(client):
    res = await client.delete("/users/ghost")
    assert res.status_code == 404


async def test_crud_under_base_path(make_server, database, client_for):
    client = client_for(make_server(build_user_controller(database), base_path="/api"))

    created = await client.post("/api/users", json=ADA)
    assert created.status_code == 201
    assert (await client.get("/api/users")).json() == [created.json()]
    assert (await client.get("/api/users/u1")).json() == created.json()

    updated = await client.put("/api/users/u1", json={"name": "Ada Lovelace"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Ada Lovelace"

    deleted = await client.delete("/api/users/u1")
    assert deleted.json() == {"message": "User deleted successfully"}
    missing = await client.get("/api/users/u1")
    assert missing.status_code == 404
    assert missing.json()["path"] == "/api/users/u1"


async def test_unprefixed_path_is_not_found_under_base_path(make_server, database, client_for):
    client = client_for(make_server(build_user_controller(database), base_path="/api"))

    res = await client.get("/users")
    assert res.status_code == 404
    assert res.json()["message"] == "not found"
    assert (await client.get("/health")).status_code == 200
