"""
WebSocket wire protocol.

Every frame is a JSON object ``{"event": <name>, "data": <payload>}``.
Inbound frames are validated into one tagged request variant per event
name before they reach the chat service; outbound events carry payloads
already dumped to JSON-ready dicts with camelCase keys.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from parley.core.exceptions import ValidationError
from parley.models.chat import Chat, ChatDetail, ChatSummary
from parley.models.enums import ChatType, DeliveryTarget
from parley.models.message import Message
from parley.models.user import UserSummary


class WireModel(BaseModel):
    """Base for payloads that travel over the socket (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ===========================================
# Inbound payloads
# ===========================================


class LoginPayload(WireModel):
    username: str = Field(..., max_length=256)
    password: str = Field(..., max_length=256)


class SearchUsersPayload(WireModel):
    query: str = ""

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_query(cls, data: Any) -> Any:
        # Anything that is not text searches for nothing
        if isinstance(data, str):
            return {"query": data}
        if not isinstance(data, dict):
            return {}
        if not isinstance(data.get("query", ""), str):
            return {**data, "query": ""}
        return data


class CreateChatPayload(WireModel):
    partner_id: Optional[str] = None
    is_group: bool = False
    group_name: Optional[str] = None

    @model_validator(mode="after")
    def _require_partner_for_private(self) -> CreateChatPayload:
        if not self.is_group and not self.partner_id:
            raise ValueError("partnerId is required for a private chat")
        return self


class JoinChatPayload(WireModel):
    chat_id: str = Field(..., min_length=1, max_length=64)

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_chat_id(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"chatId": data}
        return data


class SendMessagePayload(WireModel):
    chat_id: str = Field(..., min_length=1, max_length=64)
    text: Optional[str] = None
    attachment_ref: Optional[str] = None


class AddMemberPayload(WireModel):
    chat_id: str = Field(..., min_length=1, max_length=64)
    username: str = Field(..., min_length=1, max_length=256)


# ===========================================
# Inbound request variants
# ===========================================


class LoginRequest(BaseModel):
    event: Literal["login"]
    data: LoginPayload


class SearchUsersRequest(BaseModel):
    event: Literal["search_users"]
    data: SearchUsersPayload = Field(default_factory=SearchUsersPayload)


class CreateChatRequest(BaseModel):
    event: Literal["create_chat"]
    data: CreateChatPayload


class JoinChatRequest(BaseModel):
    event: Literal["join_chat"]
    data: JoinChatPayload


class SendMessageRequest(BaseModel):
    event: Literal["send_message"]
    data: SendMessagePayload


class AddMemberRequest(BaseModel):
    event: Literal["add_member_request"]
    data: AddMemberPayload


class RequestChatListRequest(BaseModel):
    event: Literal["request_chat_list"]
    data: Any = None


InboundRequest = Annotated[
    Union[
        LoginRequest,
        SearchUsersRequest,
        CreateChatRequest,
        JoinChatRequest,
        SendMessageRequest,
        AddMemberRequest,
        RequestChatListRequest,
    ],
    Field(discriminator="event"),
]

_request_adapter: TypeAdapter[InboundRequest] = TypeAdapter(InboundRequest)


class RequestParseError(ValidationError):
    """An inbound frame that could not be turned into a request variant."""

    def __init__(self, event: Optional[str], message: str):
        super().__init__(message, details={"event": event})
        self.event = event


def parse_request(raw: str | bytes) -> InboundRequest:
    """Validate one inbound frame into its tagged request variant."""
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestParseError(None, "Malformed frame") from exc
    if not isinstance(frame, dict):
        raise RequestParseError(None, "Frame must be a JSON object")

    event = frame.get("event") if isinstance(frame.get("event"), str) else None
    try:
        return _request_adapter.validate_python(frame)
    except PydanticValidationError as exc:
        raise RequestParseError(event, _describe(exc)) from exc


def _describe(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "data")
    message = first.get("msg", "Invalid request")
    return f"{location}: {message}" if location else message


# ===========================================
# Outbound events
# ===========================================


class ServerEventName(str, Enum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_ERROR = "login_error"
    SEARCH_RESULTS = "search_results"
    UPDATE_CHAT_LIST = "update_chat_list"
    OPEN_CHAT_FORCE = "open_chat_force"
    CREATE_CHAT_ERROR = "create_chat_error"
    CHAT_HISTORY = "chat_history"
    JOIN_CHAT_ERROR = "join_chat_error"
    NEW_MESSAGE = "new_message"
    SEND_MESSAGE_ERROR = "send_message_error"
    MEMBER_ADDED = "member_added"
    ADD_MEMBER_ERROR = "add_member_error"
    ERROR = "error"


# Failure event per request; requests missing here fail with ERROR
FAILURE_EVENTS: dict[str, ServerEventName] = {
    "login": ServerEventName.LOGIN_ERROR,
    "create_chat": ServerEventName.CREATE_CHAT_ERROR,
    "join_chat": ServerEventName.JOIN_CHAT_ERROR,
    "send_message": ServerEventName.SEND_MESSAGE_ERROR,
    "add_member_request": ServerEventName.ADD_MEMBER_ERROR,
}


class UserOut(WireModel):
    id: str
    username: str

    @classmethod
    def from_model(cls, user: UserSummary) -> UserOut:
        return cls(id=user.id, username=user.username)


class ChatOut(WireModel):
    id: str
    type: ChatType
    name: str
    created_at: str

    @classmethod
    def from_model(cls, chat: Chat | ChatSummary, name: Optional[str] = None) -> ChatOut:
        return cls(
            id=chat.id,
            type=chat.type,
            name=name if name is not None else chat.name,
            created_at=chat.created_at.isoformat(),
        )


class MessageOut(WireModel):
    id: str
    chat_id: str
    sender_id: str
    sender_name: str
    text: Optional[str] = None
    attachment_ref: Optional[str] = None
    timestamp: str

    @classmethod
    def from_model(cls, message: Message) -> MessageOut:
        return cls(
            id=message.id,
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            text=message.text,
            attachment_ref=message.attachment_ref,
            timestamp=message.timestamp.isoformat(),
        )


class ChatHistoryOut(ChatOut):
    members: list[UserOut]
    messages: list[MessageOut]

    @classmethod
    def from_detail(cls, detail: ChatDetail, name: str) -> ChatHistoryOut:
        return cls(
            id=detail.id,
            type=detail.type,
            name=name,
            created_at=detail.created_at.isoformat(),
            members=[UserOut.from_model(member) for member in detail.members],
            messages=[MessageOut.from_model(message) for message in detail.messages],
        )


class LoginSuccessOut(WireModel):
    user_id: str
    username: str
    is_new_account: bool


class OpenChatOut(WireModel):
    id: str
    name: str


class MemberAddedOut(WireModel):
    username: str
    chat_name: str
    chat_id: str
    target_id: str


class ErrorOut(WireModel):
    event: Optional[str] = None
    code: str
    message: str


class ServerEvent(BaseModel):
    """One outbound frame."""

    event: str
    data: Any = None

    @classmethod
    def of(cls, name: ServerEventName, payload: Any = None) -> ServerEvent:
        return cls(event=name.value, data=_dump(payload))

    def to_json(self) -> str:
        return json.dumps(
            {"event": self.event, "data": self.data},
            separators=(",", ":"),
            ensure_ascii=False,
        )


def _dump(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    if isinstance(payload, (list, tuple)):
        return [_dump(item) for item in payload]
    return payload


@dataclass(frozen=True)
class Delivery:
    """An outbound event and the channel it goes to."""

    target: DeliveryTarget
    key: str
    event: ServerEvent

    @classmethod
    def to_connection(cls, connection_id: str, event: ServerEvent) -> Delivery:
        return cls(DeliveryTarget.CONNECTION, connection_id, event)

    @classmethod
    def to_user(cls, user_id: str, event: ServerEvent) -> Delivery:
        return cls(DeliveryTarget.USER, user_id, event)

    @classmethod
    def to_chat(cls, chat_id: str, event: ServerEvent) -> Delivery:
        return cls(DeliveryTarget.CHAT, chat_id, event)
