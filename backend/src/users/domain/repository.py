from typing import Protocol

from users.domain.entities import User, UserChanges


class StorageError(Exception):
    """Raised by repositories for any storage failure."""


class UniqueViolationError(StorageError):
    """Raised when a write collides with a unique constraint."""


class UserRepository(Protocol):
    async def create(self, user: User) -> User: ...

    async def get_by_id(self, user_id: int) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_username(self, username: str) -> User | None: ...

    async def list_page(self, limit: int, offset: int) -> list[User]: ...

    async def update(self, user_id: int, changes: UserChanges) -> User | None: ...

    async def update_password(self, user_id: int, password_hash: str) -> bool: ...

    async def deactivate(self, user_id: int) -> User | None: ...

    async def delete(self, user_id: int) -> bool: ...

    async def count(self) -> int: ...

    async def count_active(self) -> int: ...
