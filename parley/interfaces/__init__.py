"""Abstract interfaces for infrastructure abstraction."""

from parley.interfaces.chat_repository import IChatRepository
from parley.interfaces.message_repository import IMessageRepository
from parley.interfaces.storage_provider import IStorageProvider
from parley.interfaces.user_repository import IUserRepository

__all__ = [
    "IChatRepository",
    "IMessageRepository",
    "IStorageProvider",
    "IUserRepository",
]
