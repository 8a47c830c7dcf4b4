"""
Message store interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from parley.models.message import Message, MessageCreate


class IMessageRepository(ABC):
    """Abstract interface for message persistence with per-chat retention."""

    @abstractmethod
    async def append(self, data: MessageCreate) -> Message:
        """
        Persist a message and trim the chat to the retention cap.

        Insert and trim happen in one transaction. The store does not check
        that the message has a body; the request layer does.
        """
        pass

    @abstractmethod
    async def history(self, chat_id: str) -> list[Message]:
        """Messages of a chat, oldest first."""
        pass

    @abstractmethod
    async def count(self, chat_id: str) -> int:
        """Number of retained messages in a chat."""
        pass
