"""
Fan-out of outbound events to connections.

Each connection owns one outbound queue drained by its transport. A
connection can sit in two kinds of channels:

- the personal channel of the user it is authenticated as (all of that
  user's connections), and
- the live channel of at most one chat, joined while the chat is open.
"""

import asyncio
from typing import Iterable, Optional

from parley.core.logger import setup_logger
from parley.models.enums import DeliveryTarget
from parley.models.events import Delivery, ServerEvent

logger = setup_logger(__name__)


class BroadcastRouter:
    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[str]] = {}
        self._user_channels: dict[str, set[str]] = {}
        self._chat_channels: dict[str, set[str]] = {}
        self._connection_user: dict[str, str] = {}
        self._connection_chat: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection_id: str) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        async with self._lock:
            self._queues[connection_id] = queue
        return queue

    async def unregister(self, connection_id: str) -> None:
        async with self._lock:
            self._queues.pop(connection_id, None)
            user_id = self._connection_user.pop(connection_id, None)
            if user_id is not None:
                self._discard(self._user_channels, user_id, connection_id)
            chat_id = self._connection_chat.pop(connection_id, None)
            if chat_id is not None:
                self._discard(self._chat_channels, chat_id, connection_id)

    async def bind_user(self, connection_id: str, user_id: str) -> None:
        """Add the connection to the user's personal channel."""
        async with self._lock:
            if connection_id not in self._queues:
                return
            self._connection_user[connection_id] = user_id
            self._user_channels.setdefault(user_id, set()).add(connection_id)

    async def join_chat(self, connection_id: str, chat_id: str) -> Optional[str]:
        """Move the connection into a chat's live channel. Returns the chat it left."""
        async with self._lock:
            if connection_id not in self._queues:
                return None
            previous = self._connection_chat.get(connection_id)
            if previous is not None and previous != chat_id:
                self._discard(self._chat_channels, previous, connection_id)
            self._connection_chat[connection_id] = chat_id
            self._chat_channels.setdefault(chat_id, set()).add(connection_id)
        return previous

    async def connections_for_user(self, user_id: str) -> set[str]:
        async with self._lock:
            return set(self._user_channels.get(user_id, set()))

    async def to_connection(self, connection_id: str, event: ServerEvent) -> None:
        await self._publish({connection_id}, event)

    async def to_user(self, user_id: str, event: ServerEvent) -> None:
        async with self._lock:
            targets = set(self._user_channels.get(user_id, set()))
        await self._publish(targets, event)

    async def to_chat(self, chat_id: str, event: ServerEvent) -> None:
        async with self._lock:
            targets = set(self._chat_channels.get(chat_id, set()))
        await self._publish(targets, event)

    async def dispatch(self, deliveries: Iterable[Delivery]) -> None:
        """Publish deliveries in order."""
        for delivery in deliveries:
            if delivery.target is DeliveryTarget.CONNECTION:
                await self.to_connection(delivery.key, delivery.event)
            elif delivery.target is DeliveryTarget.USER:
                await self.to_user(delivery.key, delivery.event)
            elif delivery.target is DeliveryTarget.CHAT:
                await self.to_chat(delivery.key, delivery.event)

    async def _publish(self, connection_ids: set[str], event: ServerEvent) -> None:
        if not connection_ids:
            return
        message = event.to_json()
        async with self._lock:
            queues = [self._queues[cid] for cid in connection_ids if cid in self._queues]
        for queue in queues:
            queue.put_nowait(message)
        logger.debug("Published %s to %d connection(s)", event.event, len(queues))

    @staticmethod
    def _discard(channels: dict[str, set[str]], key: str, connection_id: str) -> None:
        members = channels.get(key)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            channels.pop(key, None)
