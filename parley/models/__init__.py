"""Pydantic models (schemas) for the application."""

from parley.models.enums import ChatType, ConnectionState, DeliveryTarget
from parley.models.user import UserAccount, UserCreate, UserSummary
from parley.models.chat import Chat, ChatDetail, ChatSummary, Membership
from parley.models.message import Message, MessageCreate

__all__ = [
    "ChatType",
    "ConnectionState",
    "DeliveryTarget",
    "UserAccount",
    "UserCreate",
    "UserSummary",
    "Chat",
    "ChatDetail",
    "ChatSummary",
    "Membership",
    "Message",
    "MessageCreate",
]
