"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - All valid states encoded as Enums — no raw string matching
    - ConnectionEvent values are the event names listeners subscribe to
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", str)


# ─── Enums ───────────────────────────────────────────────────────

class ConnectionState(str, Enum):
    """Lifecycle of the shared store connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConnectionEvent(str, Enum):
    """Observable events emitted by the database lifecycle manager."""
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class ServerState(str, Enum):
    """HTTP server shell lifecycle. No transition goes backwards."""
    CONSTRUCTED = "constructed"
    CONFIGURED = "configured"
    LISTENING = "listening"
    CLOSED = "closed"


class UserErrorCode(str, Enum):
    """Domain outcomes of user operations that are not successes."""
    NOT_FOUND = "not_found"
    DUPLICATE_ID = "duplicate_id"
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_EMAIL = "invalid_email"
