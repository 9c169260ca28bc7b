"""User Schemas — Pydantic models for the /users endpoints.

Invariants:
    - Wire names follow the contract (createdAt), Python names stay snake_case
    - UserUpdate only reports fields the client actually sent (exclude_unset)
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from userservice.core.user import User


class UserCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str
    email: str
    created_at: datetime | None = Field(None, alias="createdAt")


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class UserResponse(BaseModel):
    """Public-facing user data."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_entity(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id, name=user.name, email=user.email,
            created_at=user.created_at,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SuccessMessage(BaseModel):
    message: str
