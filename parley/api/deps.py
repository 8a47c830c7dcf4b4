"""
Dependency injection for API endpoints.

Every collaborator is built once per process by an ``lru_cache`` getter so
the WebSocket endpoint, the upload endpoint and the lifespan hook share the
same registry, router and repositories. Tests replace them through
``app.dependency_overrides`` or by clearing the caches.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from parley.core.config import Settings, get_settings
from parley.interfaces.chat_repository import IChatRepository
from parley.interfaces.message_repository import IMessageRepository
from parley.interfaces.storage_provider import IStorageProvider
from parley.interfaces.user_repository import IUserRepository
from parley.services.broadcast_router import BroadcastRouter
from parley.services.chat_service import ChatService
from parley.services.directory_service import DirectoryService
from parley.services.session_registry import SessionRegistry


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_user_repository() -> IUserRepository:
    """Get user repository instance."""
    from parley.infrastructure.local.user_repository import SqliteUserRepository
    return SqliteUserRepository()


@lru_cache()
def get_chat_repository() -> IChatRepository:
    """Get chat repository instance."""
    from parley.infrastructure.local.chat_repository import SqliteChatRepository
    return SqliteChatRepository()


@lru_cache()
def get_message_repository() -> IMessageRepository:
    """Get message repository instance."""
    from parley.infrastructure.local.message_repository import SqliteMessageRepository
    return SqliteMessageRepository()


@lru_cache()
def get_storage_provider() -> IStorageProvider:
    """Get storage provider instance."""
    from parley.infrastructure.local.storage_provider import LocalStorageProvider
    settings = get_settings()
    return LocalStorageProvider(settings.STORAGE_BASE_PATH)


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_broadcast_router() -> BroadcastRouter:
    return BroadcastRouter()


@lru_cache()
def get_session_registry() -> SessionRegistry:
    settings = get_settings()
    return SessionRegistry(
        get_user_repository(),
        get_broadcast_router(),
        username_max_length=settings.USERNAME_MAX_LENGTH,
        hash_iterations=settings.PASSWORD_HASH_ITERATIONS,
    )


@lru_cache()
def get_directory_service() -> DirectoryService:
    return DirectoryService(
        get_user_repository(),
        result_limit=get_settings().SEARCH_RESULT_LIMIT,
    )


@lru_cache()
def get_chat_service() -> ChatService:
    return ChatService(
        registry=get_session_registry(),
        router=get_broadcast_router(),
        directory=get_directory_service(),
        chat_repo=get_chat_repository(),
        message_repo=get_message_repository(),
        settings=get_settings(),
    )


def reset_dependencies() -> None:
    """Drop every cached collaborator (used when the engine is rebuilt)."""
    for getter in (
        get_user_repository,
        get_chat_repository,
        get_message_repository,
        get_storage_provider,
        get_broadcast_router,
        get_session_registry,
        get_directory_service,
        get_chat_service,
    ):
        getter.cache_clear()


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

AppSettings = Annotated[Settings, Depends(get_settings)]
StorageProvider = Annotated[IStorageProvider, Depends(get_storage_provider)]
Router = Annotated[BroadcastRouter, Depends(get_broadcast_router)]
Registry = Annotated[SessionRegistry, Depends(get_session_registry)]
Service = Annotated[ChatService, Depends(get_chat_service)]
