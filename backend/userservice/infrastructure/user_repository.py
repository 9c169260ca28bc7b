"""User Repository — SQLAlchemy implementation of the UserRepository protocol.

Invariants:
    - Every operation opens its own session from the shared Database
    - Absence is reported as None, never raised
    - Returned objects are domain Users, never ORM records
"""

from typing import Any

from sqlalchemy import select

from userservice.core.domain_types import UserId
from userservice.core.user import User
from userservice.infrastructure.database import Database
from userservice.models.user import UserRecord


class SqlUserRepository:
    """Stores users in the `users` table."""

    def __init__(self, database: Database):
        self._database = database

    async def create(self, user: User) -> User:
        async with self._database.session() as db:
            record = UserRecord.from_entity(user)
            db.add(record)
            await db.commit()
            await db.refresh(record)
            return record.to_entity()

    async def find_by_id(self, user_id: UserId) -> User | None:
        async with self._database.session() as db:
            record = await db.get(UserRecord, user_id)
            return record.to_entity() if record else None

    async def find_by_email(self, email: str) -> User | None:
        async with self._database.session() as db:
            result = await db.execute(
                select(UserRecord).where(UserRecord.email == email),
            )
            record = result.scalar_one_or_none()
            return record.to_entity() if record else None

    async def update(self, user_id: UserId, changes: dict[str, Any]) -> User | None:
        async with self._database.session() as db:
            record = await db.get(UserRecord, user_id)
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            await db.commit()
            await db.refresh(record)
            return record.to_entity()

    async def delete(self, user_id: UserId) -> User | None:
        async with self._database.session() as db:
            record = await db.get(UserRecord, user_id)
            if record is None:
                return None
            user = record.to_entity()
            await db.delete(record)
            await db.commit()
            return user

    async def list_all(self) -> list[User]:
        async with self._database.session() as db:
            result = await db.execute(
                select(UserRecord).order_by(UserRecord.created_at),
            )
            return [record.to_entity() for record in result.scalars().all()]
