"""
User directory: lookups and username search.
"""

from typing import Optional

from parley.interfaces.user_repository import IUserRepository
from parley.models.user import UserAccount, UserSummary

QUERY_MAX_LENGTH = 64


class DirectoryService:
    def __init__(self, user_repo: IUserRepository, result_limit: int = 50):
        self._user_repo = user_repo
        self._result_limit = result_limit

    async def search(self, requester_id: str, query: Optional[str]) -> list[UserSummary]:
        """
        Case-insensitive substring search over usernames.

        The query is trimmed and cut to 64 characters; an empty query returns
        no results. The requester never appears in the results.
        """
        if not isinstance(query, str):
            return []
        normalized = query.strip()[:QUERY_MAX_LENGTH]
        if not normalized:
            return []
        users = await self._user_repo.search(
            normalized, exclude_user_id=requester_id, limit=self._result_limit
        )
        return [user.summary() for user in users if user.id != requester_id]

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        return await self._user_repo.get(user_id)
