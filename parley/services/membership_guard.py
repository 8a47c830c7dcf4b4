from __future__ import annotations

from parley.core.exceptions import AuthError, AuthFailure
from parley.interfaces.chat_repository import IChatRepository


async def assert_member(chat_repo: IChatRepository, chat_id: str, user_id: str) -> None:
    """Raise NOT_A_MEMBER unless a membership row exists for (chat_id, user_id)."""
    if not await chat_repo.is_member(chat_id, user_id):
        raise AuthError(AuthFailure.NOT_A_MEMBER, "You do not have access to this chat")
