"""Database Lifecycle — one shared async engine per server, with observable state.

Invariants:
    - At most one ConnectionHandle exists per Database instance
    - start() is idempotent: concurrent or repeated calls share one connect attempt
    - start() and close() never raise; connection failures are logged and emitted as "error"
    - Every session auto-rolls-back on exception; SQLAlchemy errors map to DatabaseError
    - session() before start() (or after close()) raises DatabaseUnavailableError

Design Decisions:
    - Database is constructed by the composition root and passed explicitly to the
      server and repositories (no module-level db_manager)
    - Listeners are plain callables keyed by ConnectionEvent; exceptions raised by a
      listener are logged so one bad listener cannot break the lifecycle
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Callable

from sqlalchemy import MetaData, text
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)

from userservice.core.domain_types import ConnectionEvent, ConnectionState
from userservice.core.errors import DatabaseError, DatabaseUnavailableError

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


@dataclass
class ConnectionHandle:
    """The live connection: engine plus the session factory bound to it."""
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]


class Database:
    """Owns connect/disconnect to the store, independent of request handling."""

    def __init__(
        self,
        database_url: str | None,
        *,
        metadata: MetaData | None = None,
        echo: bool = False,
    ):
        self.database_url = database_url
        self.metadata = metadata
        self.echo = echo
        self.state = ConnectionState.DISCONNECTED
        self._handle: ConnectionHandle | None = None
        self._lock = asyncio.Lock()
        self._listeners: dict[ConnectionEvent, list[tuple[Listener, bool]]] = (
            defaultdict(list)
        )

    @property
    def handle(self) -> ConnectionHandle | None:
        return self._handle

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    # ─── Events ──────────────────────────────────────────────────

    def on(self, event: ConnectionEvent, listener: Listener) -> None:
        """Call listener every time event is emitted."""
        self._listeners[ConnectionEvent(event)].append((listener, False))

    def once(self, event: ConnectionEvent, listener: Listener) -> None:
        """Call listener the next time event is emitted, then forget it."""
        self._listeners[ConnectionEvent(event)].append((listener, True))

    def _emit(self, event: ConnectionEvent, *args) -> None:
        registered = self._listeners[event]
        self._listeners[event] = [(fn, once) for fn, once in registered if not once]
        for listener, _ in registered:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{event.value}' failed")

    # ─── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Open the shared connection. Logs (never raises) on failure."""
        if not self.database_url:
            logger.error(
                "Database URL not provided",
                extra={"event_name": "database.missing_url"},
            )
            return
        async with self._lock:
            if self._handle is not None:
                return
            self.state = ConnectionState.CONNECTING
            engine: AsyncEngine | None = None
            try:
                engine = create_async_engine(
                    self.database_url, echo=self.echo, pool_pre_ping=True,
                )
                async with engine.begin() as conn:
                    await conn.execute(text("SELECT 1"))
                    if self.metadata is not None:
                        await conn.run_sync(self.metadata.create_all)
            except Exception as e:
                if engine is not None:
                    await engine.dispose()
                self.state = ConnectionState.ERROR
                logger.error(
                    f"Error connecting to database: {e}",
                    exc_info=True,
                    extra={
                        "event_name": "database.error",
                        "connection_state": self.state.value,
                    },
                )
                self._emit(ConnectionEvent.ERROR, e)
                return

            self._handle = ConnectionHandle(
                engine=engine,
                session_factory=async_sessionmaker(
                    engine, class_=AsyncSession, expire_on_commit=False,
                ),
            )
            self.state = ConnectionState.CONNECTED
        logger.info(
            "Connected to database",
            extra={
                "event_name": "database.connected",
                "connection_state": self.state.value,
            },
        )
        self._emit(ConnectionEvent.CONNECTED)

    async def close(self) -> None:
        """Dispose the connection. Safe when never started or already closed."""
        async with self._lock:
            handle, self._handle = self._handle, None
            self.state = ConnectionState.DISCONNECTED
            if handle is None:
                return
            await handle.engine.dispose()
        logger.info(
            "Database disconnected",
            extra={"event_name": "database.disconnected"},
        )
        self._emit(ConnectionEvent.DISCONNECTED)

    # ─── Sessions ────────────────────────────────────────────────

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        if self._handle is None:
            raise DatabaseUnavailableError()
        session = self._handle.session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit") from e
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute") from e
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown") from e
        finally:
            await session.close()
