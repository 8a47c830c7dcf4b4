"""
Connection-scoped session identity.

Every connection gets a ``SessionContext`` when it opens. A successful login
binds a user to the context for the rest of the connection's life and adds
the connection to that user's personal channel; there is no logout.
Unknown usernames are registered on first login.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from parley.core.exceptions import (
    AuthError,
    AuthFailure,
    ConflictError,
    StorageError,
    ValidationError,
)
from parley.core.logger import setup_logger
from parley.core.security import hash_password, verify_password
from parley.interfaces.user_repository import IUserRepository
from parley.models.enums import ConnectionState
from parley.models.user import UserAccount, UserCreate, UserSummary
from parley.services.broadcast_router import BroadcastRouter

logger = setup_logger(__name__)


def normalize_username(value: Optional[str], max_length: int = 64) -> str:
    if not value or not isinstance(value, str):
        return ""
    return value.strip()[:max_length]


@dataclass
class SessionContext:
    """Identity bound to one connection."""

    connection_id: str
    user: Optional[UserSummary] = None

    @property
    def state(self) -> ConnectionState:
        if self.user is None:
            return ConnectionState.UNAUTHENTICATED
        return ConnectionState.AUTHENTICATED


@dataclass(frozen=True)
class AuthResult:
    user: UserAccount
    is_new_account: bool


class SessionRegistry:
    def __init__(
        self,
        user_repo: IUserRepository,
        router: BroadcastRouter,
        username_max_length: int = 64,
        hash_iterations: Optional[int] = None,
    ):
        self._user_repo = user_repo
        self._router = router
        self._username_max_length = username_max_length
        self._hash_iterations = hash_iterations
        self._contexts: dict[str, SessionContext] = {}

    def open(self, connection_id: str) -> SessionContext:
        context = SessionContext(connection_id=connection_id)
        self._contexts[connection_id] = context
        return context

    async def close(self, connection_id: str) -> None:
        context = self._contexts.pop(connection_id, None)
        await self._router.unregister(connection_id)
        if context is not None and context.user is not None:
            if not await self._router.connections_for_user(context.user.id):
                logger.info("%s has no open connections left", context.user.username)

    def get(self, connection_id: str) -> Optional[SessionContext]:
        return self._contexts.get(connection_id)

    def require_user(self, connection_id: str) -> UserSummary:
        """Return the user bound to the connection or raise NOT_AUTHENTICATED."""
        context = self._contexts.get(connection_id)
        if context is None or context.user is None:
            raise AuthError(AuthFailure.NOT_AUTHENTICATED, "Not authenticated")
        return context.user

    async def authenticate(self, connection_id: str, username: str, password: str) -> AuthResult:
        context = self._contexts.get(connection_id) or self.open(connection_id)
        if context.user is not None:
            raise AuthError(AuthFailure.ALREADY_AUTHENTICATED, "Already logged in")

        username = normalize_username(username, self._username_max_length)
        if not username or not password:
            raise ValidationError("Invalid username or password")

        user = await self._user_repo.get_by_username(username)
        is_new_account = False
        if user is None:
            user, is_new_account = await self._register(username, password)

        if not is_new_account:
            valid = await asyncio.to_thread(verify_password, password, user.password_hash)
            if not valid:
                logger.info("Rejected login for %s on %s", username, connection_id)
                raise AuthError(AuthFailure.INVALID_CREDENTIALS, "Invalid password")

        context.user = user.summary()
        await self._router.bind_user(connection_id, user.id)
        logger.info(
            "%s %s on connection %s",
            "Registered" if is_new_account else "Logged in",
            username,
            connection_id,
        )
        return AuthResult(user=user, is_new_account=is_new_account)

    async def _register(self, username: str, password: str) -> tuple[UserAccount, bool]:
        if self._hash_iterations:
            password_hash = await asyncio.to_thread(hash_password, password, self._hash_iterations)
        else:
            password_hash = await asyncio.to_thread(hash_password, password)
        try:
            user = await self._user_repo.create(
                UserCreate(username=username, password_hash=password_hash)
            )
            return user, True
        except ConflictError:
            # Registered by a concurrent login; verify against that account
            user = await self._user_repo.get_by_username(username)
            if user is None:
                raise StorageError("Registration failed")
            return user, False
