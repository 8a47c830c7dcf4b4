"""
Chat and membership models.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from parley.models.enums import ChatType
from parley.models.message import Message
from parley.models.user import UserAccount, UserSummary


class Chat(BaseModel):
    """A private or group conversation."""

    id: str
    type: ChatType
    name: str = Field(..., description="Group name, or the partner's username for private chats")
    created_at: datetime


class ChatSummary(BaseModel):
    """Chat-list entry as seen by one member."""

    id: str
    type: ChatType
    name: str
    created_at: datetime


class Membership(BaseModel):
    """A (chat, user) membership row."""

    id: str
    chat_id: str
    user_id: str


class ChatDetail(Chat):
    """A chat with its members and full retained history."""

    members: list[UserSummary] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)


@dataclass(frozen=True)
class PrivateChatResult:
    chat: Chat
    created: bool


@dataclass(frozen=True)
class MemberAddition:
    """Everything a successful add-member transaction produced."""

    chat: Chat
    membership: Membership
    member: UserAccount
    system_message: Message
