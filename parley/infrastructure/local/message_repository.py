"""
SQLite implementation of the message store.

``insert_message`` and ``trim_chat`` operate on an open session so that any
transaction which writes a message (a user send, or the system message of a
member addition) applies the retention cap in the same commit.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import get_settings
from parley.core.exceptions import StorageError
from parley.infrastructure.local.database import MessageORM, begin_write, get_session_factory
from parley.interfaces.message_repository import IMessageRepository
from parley.models.message import Message, MessageCreate
from parley.utils.datetime_utils import ensure_utc, monotonic_now

logger = logging.getLogger(__name__)


def message_from_orm(orm: MessageORM) -> Message:
    return Message(
        id=orm.id,
        chat_id=orm.chat_id,
        sender_id=orm.sender_id,
        sender_name=orm.sender_name,
        text=orm.text,
        attachment_ref=orm.attachment_ref,
        timestamp=ensure_utc(orm.timestamp),
    )


async def insert_message(session: AsyncSession, data: MessageCreate) -> MessageORM:
    """Add a message row to the session's transaction and flush it."""
    orm = MessageORM(
        id=str(uuid4()),
        chat_id=data.chat_id,
        sender_id=data.sender_id,
        sender_name=data.sender_name,
        text=data.text,
        attachment_ref=data.attachment_ref,
        timestamp=monotonic_now(),
    )
    session.add(orm)
    await session.flush()
    return orm


async def trim_chat(session: AsyncSession, chat_id: str, limit: int) -> int:
    """Delete the oldest messages of a chat beyond ``limit``. Returns rows deleted."""
    count = await session.scalar(
        select(func.count()).select_from(MessageORM).where(MessageORM.chat_id == chat_id)
    )
    excess = (count or 0) - limit
    if excess <= 0:
        return 0

    oldest = (
        select(MessageORM.seq)
        .where(MessageORM.chat_id == chat_id)
        .order_by(MessageORM.timestamp.asc(), MessageORM.seq.asc())
        .limit(excess)
    )
    await session.execute(
        delete(MessageORM)
        .where(MessageORM.seq.in_(oldest))
        .execution_options(synchronize_session=False)
    )
    logger.debug("Trimmed %d message(s) from chat %s", excess, chat_id)
    return excess


class SqliteMessageRepository(IMessageRepository):
    """SQLite implementation of message store."""

    def __init__(self, session_factory=None, message_limit: int | None = None):
        self._session_factory = session_factory or get_session_factory()
        self._message_limit = message_limit or get_settings().MESSAGE_LIMIT_PER_CHAT

    async def append(self, data: MessageCreate) -> Message:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await begin_write(session)
                    orm = await insert_message(session, data)
                    await trim_chat(session, data.chat_id, self._message_limit)
        except SQLAlchemyError as exc:
            logger.error("Failed to store message in chat %s: %s", data.chat_id, exc)
            raise StorageError("Failed to save the message") from exc
        return message_from_orm(orm)

    async def history(self, chat_id: str) -> list[Message]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MessageORM)
                    .where(MessageORM.chat_id == chat_id)
                    .order_by(MessageORM.timestamp.asc(), MessageORM.seq.asc())
                )
                return [message_from_orm(orm) for orm in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("Failed to load history of chat %s: %s", chat_id, exc)
            raise StorageError("Failed to load the history") from exc

    async def count(self, chat_id: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.scalar(
                    select(func.count()).select_from(MessageORM).where(MessageORM.chat_id == chat_id)
                )
                return result or 0
        except SQLAlchemyError as exc:
            logger.error("Failed to count messages of chat %s: %s", chat_id, exc)
            raise StorageError("Failed to count messages") from exc
