from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

# users.id is an INTEGER column
MAX_USER_ID = 2**31 - 1

# bcrypt only reads this many bytes of a password
MAX_PASSWORD_BYTES = 72


class _Unset:
    """Marker for a field that was not supplied at all."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class User:
    """A user as stored, password hash included."""

    email: str
    username: str
    password_hash: str
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool = True
    id: int | None = field(default=None)
    created_at: datetime | None = field(default=None)
    updated_at: datetime | None = field(default=None)


@dataclass
class PublicUser:
    id: int
    email: str
    username: str
    first_name: str | None
    last_name: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class UserChanges:
    """A partial update.

    Each field is UNSET when the caller did not supply it, and the stored value
    is kept. Any other value, including None or "", replaces the stored one.
    """

    email: str = UNSET
    username: str = UNSET
    first_name: str | None = UNSET
    last_name: str | None = UNSET
    is_active: bool = UNSET

    def as_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }


@dataclass
class UserPage:
    users: list[PublicUser]
    total_count: int
    page: int
    page_size: int
    total_pages: int
