"""HTTP Server Shell — composes contract validation, routing, error translation and the database.

Invariants:
    - Construction order is fixed: health route → middleware → providers → error handlers
    - A missing or invalid contract raises ContractConfigurationError from the constructor
    - State only moves forward: constructed → configured → listening → closed
    - listen() applies request_timeout_ms (default 30000) as the socket keep-alive timeout
    - listen() raises RuntimeError when the port cannot be bound
    - base_path prefixes both the mounted routes and contract matching
    - database_setup()/close_database() delegate to Database; call order is not enforced

Design Decisions:
    - ServerConfiguration is a frozen dataclass built once by the composition root
    - uvicorn.Server runs as an asyncio task so listen() returns a handle instead of blocking
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from userservice.api.error_handlers import ErrorBoundaryMiddleware, register_error_handlers
from userservice.api.middleware import (
    ContractValidationMiddleware, RequestContextMiddleware, SecurityHeadersMiddleware,
)
from userservice.api.routes import health
from userservice.api.routing import (
    RouteProvider, mount_route_providers, normalize_base_path,
)
from userservice.core.domain_types import ServerState
from userservice.infrastructure.contract import ApiContract
from userservice.infrastructure.database import Database

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_BODY_BYTES = 3 * 1024 * 1024


@dataclass(frozen=True)
class ServerConfiguration:
    port: int
    spec_location: str
    database_url: str | None = None
    request_timeout_ms: int | None = None
    controllers: tuple[RouteProvider, ...] = ()
    host: str = "0.0.0.0"
    base_path: str = "/"
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    cors_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False

    @property
    def timeout_seconds(self) -> float:
        return (self.request_timeout_ms or DEFAULT_TIMEOUT_MS) / 1000


@dataclass
class ServerHandle:
    """Returned by listen(); used to wait for or trigger shutdown."""
    server: uvicorn.Server
    task: asyncio.Task
    on_closed: Callable[[], None] = field(repr=False)

    @property
    def port(self) -> int:
        """Port actually bound (differs from the configured one when that was 0)."""
        return self.server.servers[0].sockets[0].getsockname()[1]

    async def wait(self) -> None:
        try:
            await self.task
        finally:
            self.on_closed()

    async def shutdown(self) -> None:
        self.server.should_exit = True
        await self.wait()


class HttpServer:
    """Top-level composition unit: owns startup, listening and shutdown."""

    def __init__(
        self,
        config: ServerConfiguration,
        database: Database | None = None,
    ):
        self.state = ServerState.CONSTRUCTED
        self.config = config
        self.database = database or Database(config.database_url)
        self.contract = ApiContract.load(config.spec_location)
        self.app = FastAPI(
            title=self.contract.document.get("info", {}).get("title", "User Service"),
            version=str(self.contract.document.get("info", {}).get("version", "0.0.0")),
            openapi_url=None, docs_url=None, redoc_url=None,
        )
        self._handle: ServerHandle | None = None

        self.app.include_router(health.router)
        self._middlewares()
        self._routes(config.controllers)
        self._error_handlers()
        self.state = ServerState.CONFIGURED

    def _middlewares(self) -> None:
        # add_middleware prepends: the last one added is the outermost
        self.app.add_middleware(
            ContractValidationMiddleware,
            contract=self.contract,
            max_body_bytes=self.config.max_body_bytes,
            exempt_paths=(health.HEALTH_PATH,),
            mount_prefix=normalize_base_path(self.config.base_path),
        )
        if self.config.cors_origins:
            self.app.add_middleware(
                CORSMiddleware,
                allow_origins=list(self.config.cors_origins),
                allow_credentials=self.config.cors_allow_credentials,
                allow_methods=["*"],
                allow_headers=["*"],
            )

    def _routes(self, controllers: Sequence[RouteProvider]) -> None:
        mount_route_providers(self.app, controllers, self.config.base_path)

    def _error_handlers(self) -> None:
        register_error_handlers(self.app)
        self.app.add_middleware(ErrorBoundaryMiddleware)
        self.app.add_middleware(SecurityHeadersMiddleware)
        self.app.add_middleware(RequestContextMiddleware)

    # ─── Database ────────────────────────────────────────────────

    async def database_setup(self) -> None:
        await self.database.start()

    async def close_database(self) -> None:
        await self.database.close()

    # ─── Listening ───────────────────────────────────────────────

    async def listen(self) -> ServerHandle:
        """Bind the configured port and start serving in the background."""
        if self.state is not ServerState.CONFIGURED:
            raise RuntimeError(f"Cannot listen from state '{self.state.value}'")
        server = uvicorn.Server(uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            timeout_keep_alive=self.config.timeout_seconds,
            log_config=None,
        ))
        task = asyncio.create_task(self._serve(server))
        while not server.started:
            if task.done():
                await task
                raise RuntimeError(f"Server stopped before listening on port {self.config.port}")
            await asyncio.sleep(0.01)

        self._handle = ServerHandle(server, task, on_closed=self._mark_closed)
        self.state = ServerState.LISTENING
        logger.info(
            f"App listening on http://{self.config.host}:{self._handle.port}",
            extra={
                "event_name": "start_listening",
                "component": "Application",
                "port": self._handle.port,
            },
        )
        return self._handle

    async def _serve(self, server: uvicorn.Server) -> None:
        # uvicorn calls sys.exit(1) when startup fails (e.g. port in use)
        try:
            await server.serve()
        except SystemExit as e:
            raise RuntimeError(f"Server failed to bind port {self.config.port}") from e

    async def shutdown(self) -> None:
        if self._handle is not None:
            await self._handle.shutdown()

    def _mark_closed(self) -> None:
        self.state = ServerState.CLOSED
