"""User Entity — the single resource managed by the template service.

Invariants:
    - id and email are unique in the store (enforced by the store, pre-checked by the service)
    - email matches EMAIL_PATTERN
    - created_at is timezone-aware (UTC)
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from userservice.core.domain_types import UserId, UserErrorCode

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class User:
    id: UserId
    name: str
    email: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class UserError:
    """Domain error value carried inside Err results."""
    code: UserErrorCode
    message: str
    field: str | None = None
    value: str | None = None


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None
