"""User ORM — persisted form of the User entity.

Invariants:
    - id is the caller-supplied string primary key
    - email is unique (unique index backs duplicate detection under concurrency)
    - created_at is timezone-aware; SQLite drops tzinfo, to_entity() restores UTC
"""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from userservice.core.domain_types import UserId
from userservice.core.user import User
from userservice.db.base import Base


class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def from_entity(cls, user: User) -> "UserRecord":
        return cls(
            id=user.id, name=user.name, email=user.email,
            created_at=user.created_at,
        )

    def to_entity(self) -> User:
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return User(
            id=UserId(self.id), name=self.name, email=self.email,
            created_at=created_at,
        )
