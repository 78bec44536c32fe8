from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from users.domain.entities import User, UserChanges
from users.domain.repository import StorageError, UniqueViolationError
from users.infrastructure.orm_models import UserModel


class DbUserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _translate_errors(self) -> AsyncIterator[None]:
        try:
            yield
        except IntegrityError as exc:
            await self.session.rollback()
            raise UniqueViolationError(_describe(exc)) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StorageError(_describe(exc)) from exc

    async def create(self, user: User) -> User:
        now = _utcnow()
        model = UserModel(
            email=user.email,
            username=user.username,
            password_hash=user.password_hash,
            first_name=user.first_name,
            last_name=user.last_name,
            is_active=user.is_active,
            created_at=now,
            updated_at=now,
        )
        async with self._translate_errors():
            self.session.add(model)
            await self.session.commit()
            await self.session.refresh(model)
        return _to_entity(model)

    async def get_by_id(self, user_id: int) -> User | None:
        return await self._get_one(UserModel.id == user_id)

    async def get_by_email(self, email: str) -> User | None:
        return await self._get_one(UserModel.email == email)

    async def get_by_username(self, username: str) -> User | None:
        return await self._get_one(UserModel.username == username)

    async def list_page(self, limit: int, offset: int) -> list[User]:
        async with self._translate_errors():
            result = await self.session.execute(
                select(UserModel)
                .order_by(UserModel.created_at.desc(), UserModel.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return [_to_entity(m) for m in result.scalars().all()]

    async def update(self, user_id: int, changes: UserChanges) -> User | None:
        return await self._update_returning(user_id, **changes.as_dict())

    async def update_password(self, user_id: int, password_hash: str) -> bool:
        user = await self._update_returning(user_id, password_hash=password_hash)
        return user is not None

    async def deactivate(self, user_id: int) -> User | None:
        return await self._update_returning(user_id, is_active=False)

    async def delete(self, user_id: int) -> bool:
        async with self._translate_errors():
            result = await self.session.execute(
                delete(UserModel).where(UserModel.id == user_id)
            )
            await self.session.commit()
        return result.rowcount > 0

    async def count(self) -> int:
        async with self._translate_errors():
            result = await self.session.execute(
                select(func.count()).select_from(UserModel)
            )
            return result.scalar_one()

    async def count_active(self) -> int:
        async with self._translate_errors():
            result = await self.session.execute(
                select(func.count())
                .select_from(UserModel)
                .where(UserModel.is_active.is_(True))
            )
            return result.scalar_one()

    async def _get_one(self, condition) -> User | None:
        async with self._translate_errors():
            result = await self.session.execute(select(UserModel).where(condition))
            model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def _update_returning(self, user_id: int, **values) -> User | None:
        """UPDATE the given columns, always bumping updated_at.

        Columns not named keep their stored value.
        """
        values["updated_at"] = _utcnow()
        async with self._translate_errors():
            result = await self.session.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(**values)
                .returning(UserModel)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
            if model is None:
                await self.session.rollback()
                return None
            user = _to_entity(model)
            await self.session.commit()
        return user


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe(exc: SQLAlchemyError) -> str:
    """Driver message only. str(exc) also renders the SQL and its bound
    parameters, which include password hashes."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else exc.__class__.__name__


def _to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        email=model.email,
        username=model.username,
        password_hash=model.password_hash,
        first_name=model.first_name,
        last_name=model.last_name,
        is_active=model.is_active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
