"""
Integration tests for the WebSocket chat endpoint.
"""


def _login(ws, username: str, password: str = "pw") -> dict:
    ws.send_json({"event": "login", "data": {"username": username, "password": password}})
    success = ws.receive_json()
    assert success["event"] == "login_success"
    assert ws.receive_json()["event"] == "update_chat_list"
    return success["data"]


def _receive_until(ws, event: str) -> dict:
    while True:
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame["data"]


def test_health(client):
    """Test health."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_login_registers_new_account(client):
    """Test login registers new account."""
    with client.websocket_connect("/ws") as ws:
        user = _login(ws, "alice")

    assert user["username"] == "alice"
    assert user["isNewAccount"] is True


def test_malformed_frames_keep_the_connection_open(client):
    """Test malformed frames keep the connection open."""
    with client.websocket_connect("/ws") as ws:
        ws.send_text("this is not json")
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["code"] == "VALIDATION"

        ws.send_json({"event": "drop_tables", "data": {}})
        unknown = ws.receive_json()
        assert unknown["event"] == "error"
        assert unknown["data"]["event"] == "drop_tables"

        _login(ws, "alice")


def test_binary_frames_are_parsed_like_text(client):
    """Test that binary frames get an error event instead of dropping the socket."""
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\xff\x00\x01")
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["code"] == "VALIDATION"

        ws.send_bytes(b'{"event": "login", "data": {"username": "alice", "password": "pw"}}')
        assert ws.receive_json()["event"] == "login_success"


def test_unauthenticated_request(client):
    """Test unauthenticated request."""
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "search_users", "data": "bob"})
        error = ws.receive_json()

    assert error == {
        "event": "error",
        "data": {"event": "search_users", "code": "NOT_AUTHENTICATED", "message": "Not authenticated"},
    }


def test_private_chat_between_two_sockets(client):
    """Test private chat between two sockets."""
    with client.websocket_connect("/ws") as alice_ws, client.websocket_connect("/ws") as bob_ws:
        _login(alice_ws, "alice")
        bob = _login(bob_ws, "bob")

        alice_ws.send_json({"event": "search_users", "data": {"query": "b"}})
        assert _receive_until(alice_ws, "search_results") == [
            {"id": bob["userId"], "username": "bob"}
        ]

        alice_ws.send_json({"event": "create_chat", "data": {"partnerId": bob["userId"]}})
        opened = _receive_until(alice_ws, "open_chat_force")
        bob_list = _receive_until(bob_ws, "update_chat_list")
        assert opened["name"] == "bob"
        assert [c["name"] for c in bob_list] == ["alice"]

        alice_ws.send_json({"event": "join_chat", "data": {"chatId": opened["id"]}})
        bob_ws.send_json({"event": "join_chat", "data": opened["id"]})
        assert _receive_until(alice_ws, "chat_history")["messages"] == []
        assert _receive_until(bob_ws, "chat_history")["name"] == "alice"

        alice_ws.send_json(
            {"event": "send_message", "data": {"chatId": opened["id"], "text": "hi"}}
        )
        for ws in (alice_ws, bob_ws):
            message = _receive_until(ws, "new_message")
            assert message["text"] == "hi"
            assert message["senderName"] == "alice"


def test_second_socket_of_same_user_gets_personal_events(client):
    """Test second socket of same user gets personal events."""
    with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
        _login(first, "alice")
        user = _login(second, "alice")
        assert user["isNewAccount"] is False

        first.send_json({"event": "create_chat", "data": {"isGroup": True, "groupName": "Team"}})

        assert [c["name"] for c in _receive_until(second, "update_chat_list")] == ["Team"]


def test_wrong_password(client):
    """Test wrong password."""
    with client.websocket_connect("/ws") as ws:
        _login(ws, "alice", "right")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "login", "data": {"username": "alice", "password": "wrong"}})
        error = ws.receive_json()

    assert error["event"] == "login_error"
    assert error["data"]["code"] == "INVALID_CREDENTIALS"
