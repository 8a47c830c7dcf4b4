"""
Shared fixtures.

Each test gets its own file-backed SQLite database so that concurrent
sessions see one another's commits the way they do in production.
"""

import pytest

from parley.core.config import Settings, get_settings
from parley.core.security import hash_password
from parley.infrastructure.local.chat_repository import SqliteChatRepository
from parley.infrastructure.local.database import build_engine, get_session_factory, init_db
from parley.infrastructure.local.message_repository import SqliteMessageRepository
from parley.infrastructure.local.user_repository import SqliteUserRepository
from parley.models.user import UserCreate

TEST_HASH_ITERATIONS = 1_000


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'parley.db'}")
    monkeypatch.setenv("STORAGE_BASE_PATH", str(tmp_path / "uploads"))
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", str(TEST_HASH_ITERATIONS))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
async def session_factory(settings):
    engine = build_engine(settings.DATABASE_URL)
    await init_db(engine)
    yield get_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def user_repo(session_factory):
    return SqliteUserRepository(session_factory=session_factory)


@pytest.fixture
def chat_repo(session_factory):
    return SqliteChatRepository(session_factory=session_factory)


@pytest.fixture
def message_repo(session_factory):
    return SqliteMessageRepository(session_factory=session_factory)


@pytest.fixture
def make_user(user_repo):
    async def _make_user(username: str, password: str = "secret"):
        return await user_repo.create(
            UserCreate(
                username=username,
                password_hash=hash_password(password, TEST_HASH_ITERATIONS),
            )
        )

    return _make_user
