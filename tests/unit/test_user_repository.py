"""
Unit tests for User repository.
"""

import pytest

from parley.core.exceptions import ConflictError
from parley.models.user import UserCreate


@pytest.mark.asyncio
async def test_create_and_get_user(user_repo):
    """Test creating a user and reading it back by id and name."""
    created = await user_repo.create(UserCreate(username="alice", password_hash="x"))

    by_id = await user_repo.get(created.id)
    by_name = await user_repo.get_by_username("alice")

    assert by_id is not None and by_id.username == "alice"
    assert by_name is not None and by_name.id == created.id
    assert by_id.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_duplicate_username_conflicts(user_repo):
    """Test duplicate username conflicts."""
    await user_repo.create(UserCreate(username="alice", password_hash="x"))

    with pytest.raises(ConflictError):
        await user_repo.create(UserCreate(username="alice", password_hash="y"))


@pytest.mark.asyncio
async def test_get_missing_user(user_repo):
    """Test get missing user."""
    assert await user_repo.get("missing") is None
    assert await user_repo.get_by_username("nobody") is None


@pytest.mark.asyncio
async def test_search_is_case_insensitive_and_excludes_requester(user_repo, make_user):
    """Test search is case insensitive and excludes requester."""
    alice = await make_user("alice")
    await make_user("Alina")
    await make_user("bob")

    results = await user_repo.search("ALI", exclude_user_id=alice.id)

    assert [user.username for user in results] == ["Alina"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(user_repo, make_user):
    """Test search treats wildcards literally."""
    requester = await make_user("requester")
    await make_user("a_b")
    await make_user("axb")

    results = await user_repo.search("_", exclude_user_id=requester.id)

    assert [user.username for user in results] == ["a_b"]


@pytest.mark.asyncio
async def test_search_respects_limit(user_repo, make_user):
    """Test search respects limit."""
    requester = await make_user("requester")
    for i in range(5):
        await make_user(f"user{i}")

    results = await user_repo.search("user", exclude_user_id=requester.id, limit=3)

    assert [user.username for user in results] == ["user0", "user1", "user2"]
