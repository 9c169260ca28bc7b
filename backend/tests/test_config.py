"""Settings + composition root — environment-driven configuration."""

from httpx import ASGITransport, AsyncClient

from userservice.config import DEFAULT_SPEC_LOCATION, Settings
from userservice.main import create_server
from userservice.core.domain_types import ServerState


def test_defaults(monkeypatch):
    for key in ("PORT", "DATABASE_URL", "API_SPEC_LOCATION", "REQUEST_TIMEOUT_MS"):
        monkeypatch.delenv(key, raising=False)
    settings = Settings(_env_file=None)

    assert settings.port == 3000
    assert settings.request_timeout_ms == 30_000
    assert settings.api_spec_location == DEFAULT_SPEC_LOCATION
    assert settings.database_url is None


def test_postgres_url_rewritten_for_asyncpg():
    settings = Settings(_env_file=None, database_url="postgresql://u:p@db:5432/users")
    assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/users"


def test_empty_database_url_is_none():
    assert Settings(_env_file=None, database_url="").database_url is None


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ORIGINS", '["https://app.example.com"]')
    settings = Settings(_env_file=None)
    assert settings.port == 8080
    assert settings.cors_origins == ["https://app.example.com"]


async def test_create_server_wires_user_controller(database_url):
    server = create_server(Settings(
        _env_file=None, port=0, database_url=database_url, database_create_schema=True,
    ))
    assert server.state is ServerState.CONFIGURED
    assert server.database.database_url == database_url

    await server.database_setup()
    try:
        async with AsyncClient(
            transport=ASGITransport(app=server.app), base_url="http://test",
        ) as client:
            assert (await client.get("/health")).status_code == 200
            created = await client.post(
                "/users", json={"id": "u1", "name": "Ada", "email": "ada@example.com"},
            )
            assert created.status_code == 201
            assert (await client.get("/users/u1")).json() == created.json()
    finally:
        await server.close_database()
