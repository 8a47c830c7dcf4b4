"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models, engine construction and
database initialization.
"""

from functools import lru_cache
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from parley.core.config import get_settings
from parley.utils.datetime_utils import now_utc


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# ORM Models
# ===========================================


class UserORM(Base):
    """User ORM model."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    username = Column(String(64), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=now_utc)


class ChatORM(Base):
    """Chat ORM model."""

    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    type = Column(String(10), nullable=False)
    name = Column(String(128), nullable=False)
    # "<smaller user id>:<larger user id>" for private chats, NULL for groups
    pair_key = Column(String(80), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, index=True)


class ChatMemberORM(Base):
    """Chat membership ORM model."""

    __tablename__ = "chat_members"
    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_chat_members_chat_user"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    chat_id = Column(String(36), ForeignKey("chats.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)


class MessageORM(Base):
    """Chat message ORM model."""

    __tablename__ = "messages"
    __table_args__ = (Index("idx_messages_chat", "chat_id", "timestamp"),)

    # Insertion order; breaks timestamp ties
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid4()))
    chat_id = Column(String(36), ForeignKey("chats.id"), nullable=False)
    sender_id = Column(String(36), nullable=False)
    sender_name = Column(String(64), nullable=False)
    text = Column(Text, nullable=True)
    attachment_ref = Column(String(512), nullable=True)
    timestamp = Column(DateTime, nullable=False)


# ===========================================
# Database Session Management
# ===========================================

# Connection execution option marking a write transaction
WRITE_TRANSACTION = "parley_write"


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite engines get WAL and immediate write transactions."""
    engine = create_async_engine(url, echo=echo)
    if url.startswith("sqlite"):
        _configure_sqlite(engine)
    return engine


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def _configure_sqlite(engine: AsyncEngine) -> None:
    """
    Install the SQLite connection and transaction hooks.

    Write transactions (sessions that called ``begin_write``) open with
    BEGIN IMMEDIATE. A deferred transaction that reads and then writes can
    deadlock against another one doing the same and fail with "database is
    locked"; taking the write lock up front makes writers queue on the busy
    timeout instead, so check-then-insert and insert-then-trim sequences are
    serialized. Everything else opens a plain deferred BEGIN, and WAL
    journaling lets those readers run alongside each other and alongside
    the single writer.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from emitting its own BEGIN
        dbapi_connection.isolation_level = None
        # SQLite's lower() only folds ASCII
        dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_TRANSACTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


async def begin_write(session: AsyncSession) -> None:
    """
    Mark the session's transaction as a write transaction.

    Must be the first thing done inside ``session.begin()``, before any
    statement checks out the connection.
    """
    await session.connection(execution_options={WRITE_TRANSACTION: True})


@lru_cache()
def get_engine() -> AsyncEngine:
    """Get the process-wide async engine."""
    settings = get_settings()
    return build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory(engine: AsyncEngine | None = None):
    """Get async session factory."""
    return sessionmaker(engine or get_engine(), class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections of the process-wide engine."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_engine.cache_clear()
