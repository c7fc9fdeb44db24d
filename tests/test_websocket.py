"""
End-to-end WebSocket tests against the FastAPI app with an in-memory hub.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from collabhub.core.auth import create_jwt
from collabhub.main import create_app


@pytest.fixture
def client(stack):
    stack.projects.add_project("p1", "Capstone", ["alice", "bob"])
    stack.users.add("alice", "Alice")
    stack.users.add("bob", "Bob")
    stack.users.add("carol", "Carol")
    app = create_app(hub=stack.hub)
    with patch("collabhub.core.auth.is_jwt_revoked", new=AsyncMock(return_value=False)):
        with TestClient(app) as test_client:
            yield test_client


def ws_url(user_id: str) -> str:
    token, _ = create_jwt(user_id)
    return f"/api/v1/ws?token={token}"


def sync(ws) -> None:
    """Round-trip a ping so every earlier frame from this socket is handled."""
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


class TestAuthentication:
    def test_missing_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/ws"):
                pass
        assert exc_info.value.code == 4001

    def test_invalid_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/v1/ws?token=garbage"):
                pass
        assert exc_info.value.code == 4001

    def test_inactive_user_is_rejected(self, client, stack):
        stack.users.inactive.add("alice")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(ws_url("alice")):
                pass
        assert exc_info.value.code == 4001
        assert not stack.hub.is_online("alice")


class TestRealtimeFlow:
    def test_message_reaches_room_member_and_notifies(self, client, stack):
        with client.websocket_connect(ws_url("alice")) as ws_a:
            sync(ws_a)
            with client.websocket_connect(ws_url("bob")) as ws_b:
                sync(ws_b)
                online = ws_a.receive_json()
                assert online["type"] == "presence.online"
                assert online["userId"] == "bob"

                ws_a.send_json({"type": "room.join", "projectId": "p1"})
                assert ws_a.receive_json() == {"type": "room.joined", "projectId": "p1"}
                ws_b.send_json({"type": "room.join", "projectId": "p1"})
                assert ws_b.receive_json() == {"type": "room.joined", "projectId": "p1"}
                assert ws_a.receive_json()["type"] == "room.memberJoined"

                ws_a.send_json({"type": "message.send", "projectId": "p1", "content": "hello"})

                delivered = ws_b.receive_json()
                assert delivered["type"] == "message.delivered"
                assert delivered["message"]["content"] == "hello"
                assert delivered["message"]["sender"]["firstName"] == "Alice"
                notification = ws_b.receive_json()
                assert notification["type"] == "notification.new"
                assert notification["notification"]["message"] == "Alice sent a message in Capstone"
                assert ws_a.receive_json()["type"] == "message.delivered"

            left = ws_a.receive_json()
            assert left["type"] == "room.memberLeft"
            assert left["projectId"] == "p1"
            assert left["user"]["id"] == "bob"
            offline = ws_a.receive_json()
            assert offline["type"] == "presence.offline"
            assert offline["userId"] == "bob"

        assert len(stack.chats.messages) == 1
        assert [n.recipient_id for n in stack.notifications.records] == ["bob"]
        assert not stack.hub.is_online("alice")
        assert stack.hub.rooms.members_of("p1") == set()

    def test_outsider_cannot_join_and_stays_connected(self, client, stack):
        with client.websocket_connect(ws_url("carol")) as ws_c:
            ws_c.send_json({"type": "room.join", "projectId": "p1"})
            error = ws_c.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "ACCESS_DENIED"
            sync(ws_c)

        assert stack.hub.rooms.members_of("p1") == set()

    def test_malformed_frame_gets_error(self, client):
        with client.websocket_connect(ws_url("alice")) as ws_a:
            ws_a.send_text("{oops")
            assert ws_a.receive_json()["code"] == "INVALID_FRAME"
            sync(ws_a)

    def test_binary_frames_are_parsed_or_rejected(self, client, stack):
        with client.websocket_connect(ws_url("alice")) as ws_a:
            ws_a.send_bytes(b"\xff\x00")
            assert ws_a.receive_json()["code"] == "INVALID_FRAME"
            ws_a.send_bytes(b'{"type": "ping"}')
            assert ws_a.receive_json() == {"type": "pong"}
            assert stack.hub.is_online("alice")
