"""
Unit tests for the membership guard.
"""

import pytest

from parley.core.exceptions import AuthError, AuthFailure
from parley.services.membership_guard import assert_member


@pytest.mark.asyncio
async def test_member_passes(chat_repo, make_user):
    """Test member passes."""
    alice = await make_user("alice")
    group = await chat_repo.create_group(alice.id, "Team")

    await assert_member(chat_repo, group.id, alice.id)


@pytest.mark.asyncio
async def test_non_member_is_denied(chat_repo, make_user):
    """Test non member is denied."""
    alice = await make_user("alice")
    bob = await make_user("bob")
    group = await chat_repo.create_group(alice.id, "Team")

    with pytest.raises(AuthError) as exc_info:
        await assert_member(chat_repo, group.id, bob.id)

    assert exc_info.value.reason == AuthFailure.NOT_A_MEMBER


@pytest.mark.asyncio
async def test_unknown_chat_is_denied(chat_repo, make_user):
    """Test unknown chat is denied."""
    alice = await make_user("alice")

    with pytest.raises(AuthError):
        await assert_member(chat_repo, "missing", alice.id)
