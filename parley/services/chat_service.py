"""
Request layer of the chat engine.

``ChatService.handle`` takes one validated inbound request from one
connection and returns every delivery it published: targeted replies to
the requesting connection, pushes to users' personal channels and
broadcasts to chat live channels. Failures are turned into a single
failure event for the requesting connection and are never broadcast.

Message sends and member additions hold a per-chat lock from the insert
until the broadcast has been queued, so every member observes a chat's
messages in the order they were committed.
"""

from __future__ import annotations

import asyncio
import weakref
from typing import Awaitable, Callable, Iterable, Optional

from parley.core.config import Settings, get_settings
from parley.core.exceptions import (
    AuthError,
    AuthFailure,
    NotFoundError,
    NotFoundKind,
    ParleyError,
    ValidationError,
)
from parley.core.logger import setup_logger
from parley.interfaces.chat_repository import IChatRepository
from parley.interfaces.message_repository import IMessageRepository
from parley.models.chat import Chat
from parley.models.enums import ChatType
from parley.models.events import (
    FAILURE_EVENTS,
    AddMemberPayload,
    ChatHistoryOut,
    ChatOut,
    CreateChatPayload,
    Delivery,
    ErrorOut,
    InboundRequest,
    JoinChatPayload,
    LoginPayload,
    LoginSuccessOut,
    MemberAddedOut,
    MessageOut,
    OpenChatOut,
    RequestParseError,
    SearchUsersPayload,
    SendMessagePayload,
    ServerEvent,
    ServerEventName,
    UserOut,
)
from parley.models.message import MessageCreate
from parley.models.user import UserSummary
from parley.services.broadcast_router import BroadcastRouter
from parley.services.directory_service import DirectoryService
from parley.services.membership_guard import assert_member
from parley.services.session_registry import SessionRegistry, normalize_username

logger = setup_logger(__name__)

Handler = Callable[[str, object], Awaitable[list[Delivery]]]


class ChatService:
    def __init__(
        self,
        registry: SessionRegistry,
        router: BroadcastRouter,
        directory: DirectoryService,
        chat_repo: IChatRepository,
        message_repo: IMessageRepository,
        settings: Optional[Settings] = None,
    ):
        self._registry = registry
        self._router = router
        self._directory = directory
        self._chat_repo = chat_repo
        self._message_repo = message_repo
        self._settings = settings or get_settings()
        self._chat_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._handlers: dict[str, Handler] = {
            "login": self._login,
            "search_users": self._search_users,
            "create_chat": self._create_chat,
            "join_chat": self._join_chat,
            "send_message": self._send_message,
            "add_member_request": self._add_member,
            "request_chat_list": self._request_chat_list,
        }

    async def handle(self, connection_id: str, request: InboundRequest) -> list[Delivery]:
        """Execute one request and return the deliveries it produced."""
        handler = self._handlers[request.event]
        try:
            return await handler(connection_id, request.data)
        except ParleyError as exc:
            return await self.reject(connection_id, request.event, exc)

    async def reject(
        self, connection_id: str, event: Optional[str], error: ParleyError
    ) -> list[Delivery]:
        """Report a failed request to the requesting connection only."""
        logger.info("Rejected %s from %s: %s", event or "frame", connection_id, error.message)

        not_authenticated = (
            isinstance(error, AuthError) and error.reason is AuthFailure.NOT_AUTHENTICATED
        )
        if event == "request_chat_list":
            return []
        if event == "search_users" and not not_authenticated:
            return await self._publish(
                [Delivery.to_connection(connection_id, ServerEvent.of(ServerEventName.SEARCH_RESULTS, []))]
            )

        name = ServerEventName.ERROR
        if event and not not_authenticated:
            name = FAILURE_EVENTS.get(event, ServerEventName.ERROR)
        payload = ErrorOut(event=event, code=error.code, message=error.message)
        return await self._publish(
            [Delivery.to_connection(connection_id, ServerEvent.of(name, payload))]
        )

    async def reject_frame(self, connection_id: str, error: RequestParseError) -> list[Delivery]:
        """Report a frame that could not be parsed into a request."""
        logger.info("Malformed frame from %s: %s", connection_id, error.message)
        payload = ErrorOut(event=error.event, code=error.code, message=error.message)
        return await self._publish(
            [Delivery.to_connection(connection_id, ServerEvent.of(ServerEventName.ERROR, payload))]
        )

    # ===========================================
    # Handlers
    # ===========================================

    async def _login(self, connection_id: str, data: LoginPayload) -> list[Delivery]:
        result = await self._registry.authenticate(connection_id, data.username, data.password)
        user = result.user
        chats = await self._chat_repo.list_for_user(user.id)
        return await self._publish(
            [
                Delivery.to_connection(
                    connection_id,
                    ServerEvent.of(
                        ServerEventName.LOGIN_SUCCESS,
                        LoginSuccessOut(
                            user_id=user.id,
                            username=user.username,
                            is_new_account=result.is_new_account,
                        ),
                    ),
                ),
                Delivery.to_connection(
                    connection_id,
                    ServerEvent.of(
                        ServerEventName.UPDATE_CHAT_LIST,
                        [ChatOut.from_model(chat) for chat in chats],
                    ),
                ),
            ]
        )

    async def _search_users(self, connection_id: str, data: SearchUsersPayload) -> list[Delivery]:
        user = self._registry.require_user(connection_id)
        results = await self._directory.search(user.id, data.query)
        return await self._publish(
            [
                Delivery.to_connection(
                    connection_id,
                    ServerEvent.of(
                        ServerEventName.SEARCH_RESULTS,
                        [UserOut.from_model(found) for found in results],
                    ),
                )
            ]
        )

    async def _create_chat(self, connection_id: str, data: CreateChatPayload) -> list[Delivery]:
        user = self._registry.require_user(connection_id)

        if data.is_group:
            chat = await self._chat_repo.create_group(user.id, data.group_name)
            deliveries = await self._chat_list_deliveries([user.id])
            deliveries.append(self._open_chat(connection_id, chat.id, chat.name))
            return await self._publish(deliveries)

        result = await self._chat_repo.create_or_get_private(user.id, data.partner_id)
        partner = await self._directory.get_user(data.partner_id)
        partner_name = partner.username if partner else result.chat.name
        deliveries = await self._chat_list_deliveries([user.id, data.partner_id])
        deliveries.append(self._open_chat(connection_id, result.chat.id, partner_name))
        return await self._publish(deliveries)

    async def _join_chat(self, connection_id: str, data: JoinChatPayload) -> list[Delivery]:
        user = self._registry.require_user(connection_id)
        await assert_member(self._chat_repo, data.chat_id, user.id)

        detail = await self._chat_repo.get_with_members_and_history(data.chat_id)
        if detail is None:
            raise NotFoundError(NotFoundKind.CHAT, "Chat not found")

        await self._router.join_chat(connection_id, data.chat_id)
        name = self._display_name(detail, detail.members, user.id)
        return await self._publish(
            [
                Delivery.to_connection(
                    connection_id,
                    ServerEvent.of(
                        ServerEventName.CHAT_HISTORY, ChatHistoryOut.from_detail(detail, name)
                    ),
                )
            ]
        )

    async def _send_message(self, connection_id: str, data: SendMessagePayload) -> list[Delivery]:
        user = self._registry.require_user(connection_id)
        await assert_member(self._chat_repo, data.chat_id, user.id)

        text = (data.text or "").strip()[: self._settings.MESSAGE_TEXT_MAX_LENGTH].strip()
        attachment_ref = (data.attachment_ref or "").strip()
        if len(attachment_ref) > self._settings.ATTACHMENT_REF_MAX_LENGTH:
            raise ValidationError("Attachment reference is too long")
        if not text and not attachment_ref:
            raise ValidationError("Message is empty")

        async with self._chat_lock(data.chat_id):
            message = await self._message_repo.append(
                MessageCreate(
                    chat_id=data.chat_id,
                    sender_id=user.id,
                    sender_name=user.username,
                    text=text or None,
                    attachment_ref=attachment_ref or None,
                )
            )
            return await self._publish(
                [
                    Delivery.to_chat(
                        data.chat_id,
                        ServerEvent.of(ServerEventName.NEW_MESSAGE, MessageOut.from_model(message)),
                    )
                ]
            )

    async def _add_member(self, connection_id: str, data: AddMemberPayload) -> list[Delivery]:
        user = self._registry.require_user(connection_id)

        chat = await self._chat_repo.get(data.chat_id)
        if chat is None or chat.type is not ChatType.GROUP:
            raise NotFoundError(NotFoundKind.CHAT, "Group not found or access denied")
        await assert_member(self._chat_repo, data.chat_id, user.id)

        username = normalize_username(data.username, self._settings.USERNAME_MAX_LENGTH)
        if not username:
            raise ValidationError("Username is required")

        async with self._chat_lock(data.chat_id):
            addition = await self._chat_repo.add_member(data.chat_id, user.id, username)
            published = await self._publish(
                [
                    Delivery.to_chat(
                        data.chat_id,
                        ServerEvent.of(
                            ServerEventName.NEW_MESSAGE,
                            MessageOut.from_model(addition.system_message),
                        ),
                    )
                ]
            )

        member = addition.member
        members = await self._chat_repo.list_members(data.chat_id)
        deliveries = [
            Delivery.to_user(
                member.id,
                ServerEvent.of(
                    ServerEventName.MEMBER_ADDED,
                    MemberAddedOut(
                        username=member.username,
                        chat_name=addition.chat.name,
                        chat_id=addition.chat.id,
                        target_id=member.id,
                    ),
                ),
            )
        ]
        deliveries.extend(await self._chat_list_deliveries([m.id for m in members]))
        return published + await self._publish(deliveries)

    async def _request_chat_list(self, connection_id: str, data: object) -> list[Delivery]:
        user = self._registry.require_user(connection_id)
        chats = await self._chat_repo.list_for_user(user.id)
        return await self._publish(
            [
                Delivery.to_connection(
                    connection_id,
                    ServerEvent.of(
                        ServerEventName.UPDATE_CHAT_LIST,
                        [ChatOut.from_model(chat) for chat in chats],
                    ),
                )
            ]
        )

    # ===========================================
    # Helpers
    # ===========================================

    async def _publish(self, deliveries: list[Delivery]) -> list[Delivery]:
        await self._router.dispatch(deliveries)
        return deliveries

    async def _chat_list_deliveries(self, user_ids: Iterable[str]) -> list[Delivery]:
        """One chat-list push per user; private chats are named per viewer."""
        deliveries = []
        for user_id in dict.fromkeys(user_ids):
            chats = await self._chat_repo.list_for_user(user_id)
            deliveries.append(
                Delivery.to_user(
                    user_id,
                    ServerEvent.of(
                        ServerEventName.UPDATE_CHAT_LIST,
                        [ChatOut.from_model(chat) for chat in chats],
                    ),
                )
            )
        return deliveries

    @staticmethod
    def _open_chat(connection_id: str, chat_id: str, name: str) -> Delivery:
        return Delivery.to_connection(
            connection_id,
            ServerEvent.of(ServerEventName.OPEN_CHAT_FORCE, OpenChatOut(id=chat_id, name=name)),
        )

    @staticmethod
    def _display_name(chat: Chat, members: list[UserSummary], viewer_id: str) -> str:
        if chat.type is ChatType.PRIVATE:
            for member in members:
                if member.id != viewer_id:
                    return member.username
        return chat.name

    def _chat_lock(self, chat_id: str) -> asyncio.Lock:
        lock = self._chat_locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._chat_locks[chat_id] = lock
        return lock
