"""User Service — pass-through CRUD with uniqueness and email checks.

Invariants:
    - Every fallible operation returns Ok(User) or Err(UserError); absence is never raised
    - id and email uniqueness is checked before writing (the unique index still guards races)
    - Unexpected failures (store errors) propagate as exceptions
"""

import logging
from datetime import datetime, timezone
from typing import Any

from userservice.core.domain_types import UserId, UserErrorCode
from userservice.core.repository_protocols import UserRepository
from userservice.core.result import Err, Ok, Result
from userservice.core.user import User, UserError, is_valid_email

logger = logging.getLogger(__name__)

UserResult = Result[User, UserError]


def _not_found(user_id: str) -> Err[UserError]:
    return Err(UserError(UserErrorCode.NOT_FOUND, "User not found", "id", user_id))


def _invalid_email(email: str) -> Err[UserError]:
    return Err(UserError(
        UserErrorCode.INVALID_EMAIL, "Please provide a valid email address",
        "email", email,
    ))


class UserService:

    def __init__(self, repository: UserRepository):
        self._repository = repository

    async def create_user(
        self,
        user_id: str,
        name: str,
        email: str,
        created_at: datetime | None = None,
    ) -> UserResult:
        if not is_valid_email(email):
            return _invalid_email(email)
        if await self._repository.find_by_id(UserId(user_id)):
            return Err(UserError(
                UserErrorCode.DUPLICATE_ID, "A user with this id already exists",
                "id", user_id,
            ))
        if await self._repository.find_by_email(email):
            return Err(UserError(
                UserErrorCode.DUPLICATE_EMAIL, "A user with this email already exists",
                "email", email,
            ))
        user = User(
            id=UserId(user_id),
            name=name,
            email=email,
            created_at=_as_utc(created_at) if created_at else datetime.now(timezone.utc),
        )
        created = await self._repository.create(user)
        logger.info(f"Created user {created.id}")
        return Ok(created)

    async def get_user(self, user_id: str) -> UserResult:
        user = await self._repository.find_by_id(UserId(user_id))
        return Ok(user) if user else _not_found(user_id)

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> UserResult:
        existing = await self._repository.find_by_id(UserId(user_id))
        if existing is None:
            return _not_found(user_id)
        email = changes.get("email")
        if email is not None and email != existing.email:
            if not is_valid_email(email):
                return _invalid_email(email)
            if await self._repository.find_by_email(email):
                return Err(UserError(
                    UserErrorCode.DUPLICATE_EMAIL,
                    "A user with this email already exists", "email", email,
                ))
        if not changes:
            return Ok(existing)
        updated = await self._repository.update(UserId(user_id), changes)
        return Ok(updated) if updated else _not_found(user_id)

    async def delete_user(self, user_id: str) -> UserResult:
        deleted = await self._repository.delete(UserId(user_id))
        if deleted is None:
            return _not_found(user_id)
        logger.info(f"Deleted user {user_id}")
        return Ok(deleted)

    async def list_users(self) -> list[User]:
        return await self._repository.list_all()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
