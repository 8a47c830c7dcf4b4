"""
SQLite implementation of chat repository.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import get_settings
from parley.core.exceptions import (
    AuthError,
    AuthFailure,
    ConflictError,
    ConflictKind,
    NotFoundError,
    NotFoundKind,
    StorageError,
    ValidationError,
)
from parley.infrastructure.local.database import (
    ChatMemberORM,
    ChatORM,
    MessageORM,
    UserORM,
    begin_write,
    get_session_factory,
)
from parley.infrastructure.local.message_repository import (
    insert_message,
    message_from_orm,
    trim_chat,
)
from parley.interfaces.chat_repository import IChatRepository
from parley.models.chat import (
    Chat,
    ChatDetail,
    ChatSummary,
    MemberAddition,
    Membership,
    PrivateChatResult,
)
from parley.models.enums import SYSTEM_SENDER_ID, ChatType
from parley.models.message import MessageCreate
from parley.models.user import UserAccount, UserSummary
from parley.utils.datetime_utils import ensure_utc, monotonic_now

logger = logging.getLogger(__name__)


def private_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key of a user pair."""
    first, second = sorted((user_a, user_b))
    return f"{first}:{second}"


class SqliteChatRepository(IChatRepository):
    """SQLite implementation of chat repository."""

    def __init__(
        self,
        session_factory=None,
        message_limit: int | None = None,
        default_group_name: str | None = None,
        group_name_max_length: int | None = None,
        system_sender_name: str | None = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory or get_session_factory()
        self._message_limit = message_limit or settings.MESSAGE_LIMIT_PER_CHAT
        self._default_group_name = default_group_name or settings.DEFAULT_GROUP_NAME
        self._group_name_max_length = group_name_max_length or settings.GROUP_NAME_MAX_LENGTH
        self._system_sender_name = system_sender_name or settings.SYSTEM_SENDER_NAME

    def _orm_to_model(self, orm: ChatORM) -> Chat:
        return Chat(
            id=orm.id,
            type=ChatType(orm.type),
            name=orm.name,
            created_at=ensure_utc(orm.created_at),
        )

    def _normalize_group_name(self, name: Optional[str]) -> str:
        cleaned = (name or "").strip()[: self._group_name_max_length].strip()
        return cleaned or self._default_group_name

    # ===========================================
    # Creation
    # ===========================================

    async def create_group(self, owner_id: str, name: Optional[str]) -> Chat:
        chat = ChatORM(
            id=str(uuid4()),
            type=ChatType.GROUP.value,
            name=self._normalize_group_name(name),
            pair_key=None,
            created_at=monotonic_now(),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await begin_write(session)
                    session.add(chat)
                    await session.flush()
                    session.add(ChatMemberORM(id=str(uuid4()), chat_id=chat.id, user_id=owner_id))
        except SQLAlchemyError as exc:
            logger.error("Failed to create group for %s: %s", owner_id, exc)
            raise ConflictError(ConflictKind.CREATE_FAILED, "Could not create the group") from exc

        logger.info("Group chat %s created by %s", chat.id, owner_id)
        return self._orm_to_model(chat)

    async def create_or_get_private(self, requester_id: str, partner_id: str) -> PrivateChatResult:
        if requester_id == partner_id:
            raise ValidationError("Cannot start a private chat with yourself")

        pair_key = private_pair_key(requester_id, partner_id)
        # Lookup and insert share one transaction; a concurrent creator that
        # commits first makes our insert fail on the unique pair_key, and the
        # retry then finds its row.
        for attempt in range(2):
            try:
                return await self._create_or_get_private_once(requester_id, partner_id, pair_key)
            except IntegrityError as exc:
                if attempt:
                    raise StorageError("Could not create the chat") from exc
                logger.info("Private chat %s created concurrently, re-reading", pair_key)
            except SQLAlchemyError as exc:
                logger.error("Failed to resolve private chat %s: %s", pair_key, exc)
                raise StorageError("Could not create the chat") from exc
        raise StorageError("Could not create the chat")

    async def _create_or_get_private_once(
        self, requester_id: str, partner_id: str, pair_key: str
    ) -> PrivateChatResult:
        async with self._session_factory() as session:
            async with session.begin():
                await begin_write(session)
                partner = await session.get(UserORM, partner_id)
                if partner is None:
                    raise NotFoundError(NotFoundKind.PARTNER, "Partner not found")

                result = await session.execute(
                    select(ChatORM).where(ChatORM.pair_key == pair_key)
                )
                existing = result.scalar_one_or_none()
                if existing is not None:
                    return PrivateChatResult(chat=self._orm_to_model(existing), created=False)

                chat = ChatORM(
                    id=str(uuid4()),
                    type=ChatType.PRIVATE.value,
                    name=partner.username,
                    pair_key=pair_key,
                    created_at=monotonic_now(),
                )
                session.add(chat)
                await session.flush()
                session.add_all(
                    [
                        ChatMemberORM(id=str(uuid4()), chat_id=chat.id, user_id=requester_id),
                        ChatMemberORM(id=str(uuid4()), chat_id=chat.id, user_id=partner_id),
                    ]
                )

        logger.info("Private chat %s created between %s and %s", chat.id, requester_id, partner_id)
        return PrivateChatResult(chat=self._orm_to_model(chat), created=True)

    # ===========================================
    # Reads
    # ===========================================

    async def get(self, chat_id: str) -> Optional[Chat]:
        try:
            async with self._session_factory() as session:
                orm = await session.get(ChatORM, chat_id)
                return self._orm_to_model(orm) if orm else None
        except SQLAlchemyError as exc:
            logger.error("Failed to load chat %s: %s", chat_id, exc)
            raise StorageError("Failed to load the chat") from exc

    async def get_with_members_and_history(self, chat_id: str) -> Optional[ChatDetail]:
        try:
            async with self._session_factory() as session:
                orm = await session.get(ChatORM, chat_id)
                if orm is None:
                    return None
                members = await self._members(session, chat_id)
                result = await session.execute(
                    select(MessageORM)
                    .where(MessageORM.chat_id == chat_id)
                    .order_by(MessageORM.timestamp.asc(), MessageORM.seq.asc())
                )
                messages = [message_from_orm(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("Failed to load chat %s with history: %s", chat_id, exc)
            raise StorageError("Failed to load the chat") from exc

        chat = self._orm_to_model(orm)
        return ChatDetail(**chat.model_dump(), members=members, messages=messages)

    async def is_member(self, chat_id: str, user_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                return await self._is_member(session, chat_id, user_id)
        except SQLAlchemyError as exc:
            logger.error("Membership check of %s in %s failed: %s", user_id, chat_id, exc)
            raise StorageError("Failed to check membership") from exc

    async def list_members(self, chat_id: str) -> list[UserSummary]:
        try:
            async with self._session_factory() as session:
                return await self._members(session, chat_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to list members of %s: %s", chat_id, exc)
            raise StorageError("Failed to list members") from exc

    async def list_for_user(self, user_id: str) -> list[ChatSummary]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ChatORM)
                    .join(ChatMemberORM, ChatMemberORM.chat_id == ChatORM.id)
                    .where(ChatMemberORM.user_id == user_id)
                    .order_by(ChatORM.created_at.desc())
                )
                chats = result.scalars().all()

                private_ids = [chat.id for chat in chats if chat.type == ChatType.PRIVATE.value]
                partner_names: dict[str, str] = {}
                if private_ids:
                    partners = await session.execute(
                        select(ChatMemberORM.chat_id, UserORM.username)
                        .join(UserORM, UserORM.id == ChatMemberORM.user_id)
                        .where(
                            ChatMemberORM.chat_id.in_(private_ids),
                            ChatMemberORM.user_id != user_id,
                        )
                    )
                    partner_names = {chat_id: username for chat_id, username in partners.all()}
        except SQLAlchemyError as exc:
            logger.error("Failed to list chats of %s: %s", user_id, exc)
            raise StorageError("Failed to load the chat list") from exc

        return [
            ChatSummary(
                id=chat.id,
                type=ChatType(chat.type),
                name=partner_names.get(chat.id, chat.name),
                created_at=ensure_utc(chat.created_at),
            )
            for chat in chats
        ]

    # ===========================================
    # Membership
    # ===========================================

    async def add_member(
        self, chat_id: str, requester_id: str, target_username: str
    ) -> MemberAddition:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await begin_write(session)
                    chat = await session.get(ChatORM, chat_id)
                    if chat is None or chat.type != ChatType.GROUP.value:
                        raise NotFoundError(
                            NotFoundKind.CHAT, "Group not found or access denied"
                        )
                    if not await self._is_member(session, chat_id, requester_id):
                        raise AuthError(AuthFailure.NOT_A_MEMBER, "You are not a member of this group")

                    requester = await session.get(UserORM, requester_id)
                    result = await session.execute(
                        select(UserORM).where(UserORM.username == target_username)
                    )
                    target = result.scalar_one_or_none()
                    if target is None:
                        raise NotFoundError(
                            NotFoundKind.USER, f'User "{target_username}" not found'
                        )
                    if await self._is_member(session, chat_id, target.id):
                        raise ConflictError(
                            ConflictKind.ALREADY_MEMBER, f"{target.username} is already in the chat"
                        )

                    membership = ChatMemberORM(id=str(uuid4()), chat_id=chat_id, user_id=target.id)
                    session.add(membership)
                    await session.flush()

                    requester_name = requester.username if requester else requester_id
                    system_message = await insert_message(
                        session,
                        MessageCreate(
                            chat_id=chat_id,
                            sender_id=SYSTEM_SENDER_ID,
                            sender_name=self._system_sender_name,
                            text=f"{requester_name} added {target.username}",
                        ),
                    )
                    await trim_chat(session, chat_id, self._message_limit)
        except IntegrityError as exc:
            # Lost a race against a concurrent addition of the same user
            raise ConflictError(
                ConflictKind.ALREADY_MEMBER, f"{target_username} is already in the chat"
            ) from exc
        except SQLAlchemyError as exc:
            logger.error("Failed to add %s to chat %s: %s", target_username, chat_id, exc)
            raise StorageError("Failed to add the member") from exc

        logger.info("User %s added to chat %s by %s", target.id, chat_id, requester_id)
        return MemberAddition(
            chat=self._orm_to_model(chat),
            membership=Membership(id=membership.id, chat_id=chat_id, user_id=target.id),
            member=UserAccount(
                id=target.id,
                username=target.username,
                password_hash=target.password_hash,
                created_at=ensure_utc(target.created_at),
            ),
            system_message=message_from_orm(system_message),
        )

    # ===========================================
    # Helpers
    # ===========================================

    async def _is_member(self, session: AsyncSession, chat_id: str, user_id: str) -> bool:
        result = await session.execute(
            select(ChatMemberORM.id)
            .where(and_(ChatMemberORM.chat_id == chat_id, ChatMemberORM.user_id == user_id))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _members(self, session: AsyncSession, chat_id: str) -> list[UserSummary]:
        result = await session.execute(
            select(UserORM.id, UserORM.username)
            .join(ChatMemberORM, ChatMemberORM.user_id == UserORM.id)
            .where(ChatMemberORM.chat_id == chat_id)
            .order_by(UserORM.username)
        )
        return [UserSummary(id=user_id, username=username) for user_id, username in result.all()]
