"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Lookups return None for absence; they never raise "not found"

Design Decisions:
    - Protocol over ABC: repositories are swapped in tests without inheritance
"""

from typing import Any, Protocol

from userservice.core.domain_types import UserId
from userservice.core.user import User


class UserRepository(Protocol):
    """Contract for user persistence — implemented by shell."""
    async def create(self, user: User) -> User: ...
    async def find_by_id(self, user_id: UserId) -> User | None: ...
    async def find_by_email(self, email: str) -> User | None: ...
    async def update(self, user_id: UserId, changes: dict[str, Any]) -> User | None: ...
    async def delete(self, user_id: UserId) -> User | None: ...
    async def list_all(self) -> list[User]: ...
