"""
Chat repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from parley.models.chat import (
    Chat,
    ChatDetail,
    ChatSummary,
    MemberAddition,
    PrivateChatResult,
)
from parley.models.user import UserSummary


class IChatRepository(ABC):
    """Abstract interface for chats and their memberships."""

    @abstractmethod
    async def create_group(self, owner_id: str, name: Optional[str]) -> Chat:
        """Create a group chat with the owner as its only member."""
        pass

    @abstractmethod
    async def create_or_get_private(self, requester_id: str, partner_id: str) -> PrivateChatResult:
        """Return the single private chat between two users, creating it if absent."""
        pass

    @abstractmethod
    async def get(self, chat_id: str) -> Optional[Chat]:
        """Get a chat by ID."""
        pass

    @abstractmethod
    async def get_with_members_and_history(self, chat_id: str) -> Optional[ChatDetail]:
        """Get a chat with its member list and ordered message history."""
        pass

    @abstractmethod
    async def add_member(
        self, chat_id: str, requester_id: str, target_username: str
    ) -> MemberAddition:
        """Add a user to a group chat and record a system message, atomically."""
        pass

    @abstractmethod
    async def is_member(self, chat_id: str, user_id: str) -> bool:
        """Check whether a membership row exists."""
        pass

    @abstractmethod
    async def list_members(self, chat_id: str) -> list[UserSummary]:
        """Members of a chat, ordered by username."""
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[ChatSummary]:
        """Chats the user belongs to, newest first, named as the user sees them."""
        pass
