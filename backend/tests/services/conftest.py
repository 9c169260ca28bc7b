"""Service test fixtures — in-memory UserRepository.

Invariants:
    - The fake honors the UserRepository protocol: absence is None, never raised
    - writes counts every mutating call so tests can assert "nothing was stored"
"""

from dataclasses import replace
from typing import Any

import pytest

from userservice.core.domain_types import UserId
from userservice.core.user import User
from userservice.services.user_service import UserService


class InMemoryUserRepository:

    def __init__(self):
        self.users: dict[str, User] = {}
        self.writes = 0

    async def create(self, user: User) -> User:
        self.writes += 1
        self.users[user.id] = user
        return user

    async def find_by_id(self, user_id: UserId) -> User | None:
        return self.users.get(user_id)

    async def find_by_email(self, email: str) -> User | None:
        return next((u for u in self.users.values() if u.email == email), None)

    async def update(self, user_id: UserId, changes: dict[str, Any]) -> User | None:
        if user_id not in self.users:
            return None
        self.writes += 1
        self.users[user_id] = replace(self.users[user_id], **changes)
        return self.users[user_id]

    async def delete(self, user_id: UserId) -> User | None:
        self.writes += 1
        return self.users.pop(user_id, None)

    async def list_all(self) -> list[User]:
        return sorted(self.users.values(), key=lambda u: u.created_at)


@pytest.fixture
def repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def service(repository) -> UserService:
    return UserService(repository)
