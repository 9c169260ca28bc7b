"""User Service — composition root and process entry point.

Invariants:
    - Settings are read once here; HttpServer only sees ServerConfiguration
    - Routes registered explicitly (no auto-discovery)
    - Database is set up before listen() and closed after the server stops
    - A ContractConfigurationError aborts startup before any port is bound

Intended usage:
    userservice                      (console script)
    python -m userservice.main
"""

import asyncio
import logging

from userservice.config import Settings, get_settings
from userservice.db.base import Base
from userservice.factories import build_user_controller
from userservice.infrastructure.database import Database
from userservice.infrastructure.observability import setup_logging
from userservice.models import user as _user_model  # noqa: F401  (registers the users table)
from userservice.server import HttpServer, ServerConfiguration

logger = logging.getLogger(__name__)


def create_server(settings: Settings | None = None) -> HttpServer:
    """Wire settings, database and controllers into a configured HttpServer."""
    settings = settings or get_settings()
    database = Database(
        settings.database_url,
        metadata=Base.metadata if settings.database_create_schema else None,
    )
    config = ServerConfiguration(
        port=settings.port,
        host=settings.host,
        spec_location=settings.api_spec_location,
        database_url=settings.database_url,
        request_timeout_ms=settings.request_timeout_ms,
        controllers=(build_user_controller(database),),
        base_path=settings.base_path,
        max_body_bytes=settings.max_body_bytes,
        cors_origins=tuple(settings.cors_origins),
        cors_allow_credentials=settings.cors_allow_credentials,
    )
    return HttpServer(config, database=database)


async def serve(settings: Settings | None = None) -> None:
    server = create_server(settings)
    await server.database_setup()
    handle = await server.listen()
    try:
        await handle.wait()
    finally:
        await server.close_database()
        logger.info("User service stopped")


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
