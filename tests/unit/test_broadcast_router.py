"""
Unit tests for BroadcastRouter.
"""

import json

import pytest

from parley.models.events import Delivery, ServerEvent, ServerEventName
from parley.services.broadcast_router import BroadcastRouter


def _event(payload) -> ServerEvent:
    return ServerEvent.of(ServerEventName.NEW_MESSAGE, payload)


def _drain(queue) -> list:
    items = []
    while not queue.empty():
        items.append(json.loads(queue.get_nowait()))
    return items


@pytest.mark.asyncio
async def test_user_channel_reaches_every_connection_of_the_user():
    """Test user channel reaches every connection of the user."""
    router = BroadcastRouter()
    phone = await router.register("phone")
    laptop = await router.register("laptop")
    other = await router.register("other")
    await router.bind_user("phone", "alice")
    await router.bind_user("laptop", "alice")
    await router.bind_user("other", "bob")

    await router.to_user("alice", _event("hi"))

    assert _drain(phone) == [{"event": "new_message", "data": "hi"}]
    assert _drain(laptop) == [{"event": "new_message", "data": "hi"}]
    assert _drain(other) == []
    assert await router.connections_for_user("alice") == {"phone", "laptop"}


@pytest.mark.asyncio
async def test_joining_a_chat_leaves_the_previous_one():
    """Test joining a chat leaves the previous one."""
    router = BroadcastRouter()
    queue = await router.register("conn")

    assert await router.join_chat("conn", "chat-1") is None
    assert await router.join_chat("conn", "chat-2") == "chat-1"
    await router.to_chat("chat-1", _event("old"))
    await router.to_chat("chat-2", _event("new"))

    assert [item["data"] for item in _drain(queue)] == ["new"]


@pytest.mark.asyncio
async def test_join_state_is_per_connection():
    """Test join state is per connection."""
    router = BroadcastRouter()
    first = await router.register("first")
    second = await router.register("second")
    await router.bind_user("first", "alice")
    await router.bind_user("second", "alice")
    await router.join_chat("first", "chat-1")

    await router.to_chat("chat-1", _event("m"))

    assert len(_drain(first)) == 1
    assert _drain(second) == []


@pytest.mark.asyncio
async def test_unregister_removes_connection_everywhere():
    """Test unregister removes connection everywhere."""
    router = BroadcastRouter()
    queue = await router.register("conn")
    await router.bind_user("conn", "alice")
    await router.join_chat("conn", "chat-1")

    await router.unregister("conn")
    await router.to_user("alice", _event("a"))
    await router.to_chat("chat-1", _event("b"))

    assert queue.empty()
    assert await router.connections_for_user("alice") == set()


@pytest.mark.asyncio
async def test_dispatch_preserves_order():
    """Test dispatch preserves order."""
    router = BroadcastRouter()
    queue = await router.register("conn")
    await router.bind_user("conn", "alice")
    await router.join_chat("conn", "chat-1")

    await router.dispatch(
        [
            Delivery.to_connection("conn", _event(1)),
            Delivery.to_chat("chat-1", _event(2)),
            Delivery.to_user("alice", _event(3)),
        ]
    )

    assert [item["data"] for item in _drain(queue)] == [1, 2, 3]


@pytest.mark.asyncio
async def test_publishing_to_unknown_targets_is_a_no_op():
    """Test publishing to unknown targets is a no-op."""
    router = BroadcastRouter()

    await router.to_connection("missing", _event("x"))
    await router.to_chat("missing", _event("x"))
    assert await router.join_chat("missing", "chat-1") is None
