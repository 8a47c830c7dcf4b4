"""
User repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from parley.models.user import UserAccount, UserCreate


class IUserRepository(ABC):
    """Abstract interface for user persistence."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserAccount]:
        """Get a user by ID."""
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[UserAccount]:
        """Get a user by exact (case-sensitive) username."""
        pass

    @abstractmethod
    async def create(self, data: UserCreate) -> UserAccount:
        """Create a new user. Raises ConflictError if the username is taken."""
        pass

    @abstractmethod
    async def search(self, query: str, exclude_user_id: str, limit: int = 50) -> list[UserAccount]:
        """Case-insensitive substring search on usernames, ordered by username."""
        pass
