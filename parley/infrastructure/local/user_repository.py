"""
SQLite implementation of user repository.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from parley.core.exceptions import ConflictError, ConflictKind, StorageError
from parley.infrastructure.local.database import UserORM, begin_write, get_session_factory
from parley.interfaces.user_repository import IUserRepository
from parley.models.user import UserAccount, UserCreate
from parley.utils.datetime_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteUserRepository(IUserRepository):
    """SQLite implementation of user repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: UserORM) -> UserAccount:
        return UserAccount(
            id=orm.id,
            username=orm.username,
            password_hash=orm.password_hash,
            created_at=ensure_utc(orm.created_at),
        )

    async def get(self, user_id: str) -> Optional[UserAccount]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserORM).where(UserORM.id == user_id)
                )
                orm = result.scalar_one_or_none()
                return self._orm_to_model(orm) if orm else None
        except SQLAlchemyError as exc:
            logger.error("Failed to load user %s: %s", user_id, exc)
            raise StorageError("Failed to load the user") from exc

    async def get_by_username(self, username: str) -> Optional[UserAccount]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserORM).where(UserORM.username == username)
                )
                orm = result.scalar_one_or_none()
                return self._orm_to_model(orm) if orm else None
        except SQLAlchemyError as exc:
            logger.error("Failed to look up user %s: %s", username, exc)
            raise StorageError("Failed to load the user") from exc

    async def create(self, data: UserCreate) -> UserAccount:
        orm = UserORM(
            id=str(uuid4()),
            username=data.username,
            password_hash=data.password_hash,
            created_at=now_utc(),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await begin_write(session)
                    session.add(orm)
        except IntegrityError as exc:
            raise ConflictError(
                ConflictKind.CREATE_FAILED, f"Username {data.username!r} is already taken"
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to create user: {exc}") from exc
        return self._orm_to_model(orm)

    async def search(self, query: str, exclude_user_id: str, limit: int = 50) -> list[UserAccount]:
        """Search users by username (case-insensitive partial match, Unicode aware)."""
        pattern = f"%{escape_like(query.casefold())}%"
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserORM)
                    .where(
                        func.casefold(UserORM.username).like(pattern, escape="\\"),
                        UserORM.id != exclude_user_id,
                    )
                    .order_by(UserORM.username)
                    .limit(limit)
                )
                return [self._orm_to_model(orm) for orm in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("User search failed: %s", exc)
            raise StorageError("User search failed") from exc
