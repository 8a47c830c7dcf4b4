"""
Unit tests for the wire protocol models.
"""

import json

import pytest

from parley.models.events import (
    AddMemberRequest,
    CreateChatRequest,
    Delivery,
    JoinChatRequest,
    LoginSuccessOut,
    RequestChatListRequest,
    RequestParseError,
    SearchUsersRequest,
    SendMessageRequest,
    ServerEvent,
    ServerEventName,
    parse_request,
)
from parley.models.enums import DeliveryTarget


def _frame(event, data=None) -> str:
    return json.dumps({"event": event, "data": data})


def test_parse_login():
    """Test parse login."""
    request = parse_request(_frame("login", {"username": "alice", "password": "pw"}))

    assert request.event == "login"
    assert request.data.username == "alice"


def test_parse_camel_case_payloads():
    """Test parse camel case payloads."""
    create = parse_request(_frame("create_chat", {"partnerId": "u2"}))
    group = parse_request(_frame("create_chat", {"isGroup": True, "groupName": "Team"}))
    send = parse_request(_frame("send_message", {"chatId": "c1", "attachmentRef": "/uploads/x"}))
    add = parse_request(_frame("add_member_request", {"chatId": "c1", "username": "bob"}))

    assert isinstance(create, CreateChatRequest) and create.data.partner_id == "u2"
    assert group.data.is_group is True and group.data.group_name == "Team"
    assert isinstance(send, SendMessageRequest) and send.data.attachment_ref == "/uploads/x"
    assert send.data.text is None
    assert isinstance(add, AddMemberRequest) and add.data.username == "bob"


def test_parse_bare_string_payloads():
    """Test parse bare string payloads."""
    search = parse_request(_frame("search_users", "ali"))
    join = parse_request(_frame("join_chat", "c1"))

    assert isinstance(search, SearchUsersRequest) and search.data.query == "ali"
    assert isinstance(join, JoinChatRequest) and join.data.chat_id == "c1"


def test_non_string_search_query_becomes_empty():
    """Test non string search query becomes empty."""
    assert parse_request(_frame("search_users", {"query": 42})).data.query == ""
    assert parse_request(_frame("search_users", 42)).data.query == ""
    assert parse_request(json.dumps({"event": "search_users"})).data.query == ""


def test_chat_list_request_needs_no_payload():
    """Test chat list request needs no payload."""
    request = parse_request(json.dumps({"event": "request_chat_list"}))

    assert isinstance(request, RequestChatListRequest)


def test_private_chat_requires_partner():
    """Test private chat requires partner."""
    with pytest.raises(RequestParseError) as exc_info:
        parse_request(_frame("create_chat", {}))

    assert exc_info.value.event == "create_chat"
    assert exc_info.value.code == "VALIDATION"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        json.dumps({"event": "shutdown_server"}),
        json.dumps({"data": {}}),
    ],
)
def test_malformed_frames(raw):
    """Test malformed frames."""
    with pytest.raises(RequestParseError):
        parse_request(raw)


def test_unknown_event_keeps_its_name():
    """Test unknown event keeps its name."""
    with pytest.raises(RequestParseError) as exc_info:
        parse_request(json.dumps({"event": "shutdown_server"}))

    assert exc_info.value.event == "shutdown_server"


def test_server_event_serializes_camel_case():
    """Test server event serializes camel case."""
    event = ServerEvent.of(
        ServerEventName.LOGIN_SUCCESS,
        LoginSuccessOut(user_id="u1", username="alice", is_new_account=True),
    )

    assert json.loads(event.to_json()) == {
        "event": "login_success",
        "data": {"userId": "u1", "username": "alice", "isNewAccount": True},
    }


def test_delivery_constructors():
    """Test delivery constructors."""
    event = ServerEvent.of(ServerEventName.SEARCH_RESULTS, [])

    assert Delivery.to_connection("c", event).target is DeliveryTarget.CONNECTION
    assert Delivery.to_user("u", event).target is DeliveryTarget.USER
    assert Delivery.to_chat("x", event).target is DeliveryTarget.CHAT
