import asyncio
import functools
import logging
import math

import bcrypt

from shared.exceptions import (
    AuthenticationError,
    ConflictError,
    HashingError,
    NotFoundError,
    PersistenceError,
)
from users.domain.entities import MAX_PASSWORD_BYTES, PublicUser, User, UserChanges, UserPage
from users.domain.repository import StorageError, UniqueViolationError, UserRepository

logger = logging.getLogger(__name__)

PASSWORD_HASH_ROUNDS = 10


async def create_user(
    repo: UserRepository,
    email: str,
    username: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
) -> PublicUser:
    try:
        if await repo.get_by_email(email):
            raise _duplicate("email")
        if await repo.get_by_username(username):
            raise _duplicate("username")
    except StorageError as exc:
        raise PersistenceError("Failed to create user", code="CREATE_USER_ERROR") from exc

    password_hash = await _hash_password(password, code="CREATE_USER_ERROR")
    try:
        user = await repo.create(
            User(
                email=email,
                username=username,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
            )
        )
    except UniqueViolationError as exc:
        raise ConflictError(
            "Email or username already taken", code="USER_ALREADY_EXISTS"
        ) from exc
    except StorageError as exc:
        logger.error("Failed to insert user %s: %s", username, exc)
        raise PersistenceError("Failed to create user", code="CREATE_USER_ERROR") from exc

    logger.info("Created user id=%s", user.id)
    return to_public_user(user)


async def get_user(repo: UserRepository, user_id: int) -> PublicUser:
    try:
        user = await repo.get_by_id(user_id)
    except StorageError as exc:
        raise PersistenceError("Failed to fetch user", code="GET_USER_ERROR") from exc
    if not user:
        raise NotFoundError("User", str(user_id), code="USER_NOT_FOUND")
    return to_public_user(user)


async def get_user_by_email(repo: UserRepository, email: str) -> PublicUser:
    try:
        user = await repo.get_by_email(email)
    except StorageError as exc:
        raise PersistenceError("Failed to fetch user", code="GET_USER_ERROR") from exc
    if not user:
        raise NotFoundError("User", email, code="USER_NOT_FOUND")
    return to_public_user(user)


async def list_users(repo: UserRepository, page: int, page_size: int) -> UserPage:
    """Return one page of users, newest first.

    page and page_size are expected to be validated already (both >= 1).
    A page past the end comes back empty without reading any rows.
    """
    offset = (page - 1) * page_size
    try:
        total_count = await repo.count()
        users = []
        if offset < total_count:
            users = await repo.list_page(limit=page_size, offset=offset)
    except StorageError as exc:
        raise PersistenceError("Failed to list users", code="LIST_USERS_ERROR") from exc

    return UserPage(
        users=[to_public_user(u) for u in users],
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total_count / page_size),
    )


async def update_user(
    repo: UserRepository, user_id: int, changes: UserChanges
) -> PublicUser:
    try:
        user = await repo.update(user_id, changes)
    except UniqueViolationError as exc:
        raise ConflictError(
            "Email or username already taken", code="USER_ALREADY_EXISTS"
        ) from exc
    except StorageError as exc:
        logger.error("Failed to update user id=%s: %s", user_id, exc)
        raise PersistenceError("Failed to update user", code="UPDATE_USER_ERROR") from exc
    if not user:
        raise NotFoundError("User", str(user_id), code="USER_NOT_FOUND")

    logger.info("Updated user id=%s fields=%s", user_id, sorted(changes.as_dict()))
    return to_public_user(user)


async def change_password(repo: UserRepository, user_id: int, new_password: str) -> None:
    password_hash = await _hash_password(new_password, code="UPDATE_PASSWORD_ERROR")
    try:
        found = await repo.update_password(user_id, password_hash)
    except StorageError as exc:
        raise PersistenceError(
            "Failed to update password", code="UPDATE_PASSWORD_ERROR"
        ) from exc
    if not found:
        raise NotFoundError("User", str(user_id), code="USER_NOT_FOUND")
    logger.info("Changed password for user id=%s", user_id)


async def delete_user(repo: UserRepository, user_id: int) -> None:
    try:
        deleted = await repo.delete(user_id)
    except StorageError as exc:
        logger.error("Failed to delete user id=%s: %s", user_id, exc)
        raise PersistenceError("Failed to delete user", code="DELETE_USER_ERROR") from exc
    if not deleted:
        raise NotFoundError("User", str(user_id), code="USER_NOT_FOUND")
    logger.info("Deleted user id=%s", user_id)


async def deactivate_user(repo: UserRepository, user_id: int) -> PublicUser:
    try:
        user = await repo.deactivate(user_id)
    except StorageError as exc:
        raise PersistenceError(
            "Failed to deactivate user", code="DEACTIVATE_USER_ERROR"
        ) from exc
    if not user:
        raise NotFoundError("User", str(user_id), code="USER_NOT_FOUND")
    logger.info("Deactivated user id=%s", user_id)
    return to_public_user(user)


async def verify_password(repo: UserRepository, email: str, password: str) -> PublicUser:
    try:
        user = await repo.get_by_email(email)
    except StorageError as exc:
        raise PersistenceError("Failed to verify password", code="VERIFY_PASSWORD_ERROR") from exc

    candidate = password.encode()
    too_long = len(candidate) > MAX_PASSWORD_BYTES
    if user and not too_long:
        stored_hash = user.password_hash.encode()
    else:
        stored_hash = await asyncio.to_thread(_dummy_hash, PASSWORD_HASH_ROUNDS)
    matches = await asyncio.to_thread(
        bcrypt.checkpw, candidate[:MAX_PASSWORD_BYTES], stored_hash
    )
    if not user or too_long or not matches:
        raise AuthenticationError("Invalid email or password")
    return to_public_user(user)


async def count_users(repo: UserRepository, active_only: bool = False) -> int:
    try:
        return await (repo.count_active() if active_only else repo.count())
    except StorageError as exc:
        raise PersistenceError("Failed to count users", code="COUNT_USERS_ERROR") from exc


def to_public_user(user: User) -> PublicUser:
    return PublicUser(
        id=user.id,
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


async def _hash_password(password: str, code: str) -> str:
    try:
        hashed = await asyncio.to_thread(
            bcrypt.hashpw, password.encode(), bcrypt.gensalt(PASSWORD_HASH_ROUNDS)
        )
    except ValueError as exc:
        raise HashingError("Failed to hash password", code=code) from exc
    return hashed.decode()


@functools.cache
def _dummy_hash(rounds: int) -> bytes:
    """Stand-in hash checked when there is no real one to check, at the same
    cost as stored hashes so every failed verification takes as long."""
    return bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds))


def _duplicate(field: str) -> ConflictError:
    return ConflictError(
        f"User with this {field} already exists",
        code="USER_ALREADY_EXISTS",
        details={"field": field},
    )
