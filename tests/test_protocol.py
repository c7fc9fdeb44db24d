"""
Wire protocol parsing and encoding tests.
"""

import json

import pytest

from collabhub.realtime.errors import InvalidFrame
from collabhub.realtime.protocol import (
    ErrorEvent,
    JoinRoom,
    MessageType,
    RequestMatch,
    SendMessage,
    UpdateProgress,
    UserSummary,
    encode,
    parse_command,
)


class TestParseCommand:
    def test_camel_case_payload(self):
        command = parse_command('{"type": "room.join", "projectId": "p1"}')
        assert isinstance(command, JoinRoom)
        assert command.project_id == "p1"

    def test_send_message_defaults(self):
        command = parse_command('{"type": "message.send", "projectId": "p1", "content": " hi "}')
        assert isinstance(command, SendMessage)
        assert command.content == "hi"
        assert command.message_type is MessageType.TEXT
        assert command.reply_to_message_id is None

    def test_send_message_with_reply(self):
        command = parse_command(json.dumps({
            "type": "message.send",
            "projectId": "p1",
            "content": "ok",
            "messageType": "file",
            "replyToMessageId": "m1",
        }))
        assert command.message_type is MessageType.FILE
        assert command.reply_to_message_id == "m1"

    def test_progress_bounds(self):
        command = parse_command('{"type": "project.progress", "projectId": "p1", "progress": 100}')
        assert isinstance(command, UpdateProgress)
        with pytest.raises(InvalidFrame):
            parse_command('{"type": "project.progress", "projectId": "p1", "progress": -1}')

    def test_match_request(self):
        command = parse_command('{"type": "match.request", "recipientId": "u2"}')
        assert isinstance(command, RequestMatch)
        assert command.project_id is None

    @pytest.mark.parametrize("raw", [
        "not json",
        "[]",
        '{"projectId": "p1"}',
        '{"type": "nope"}',
        '{"type": "room.join"}',
        '{"type": "room.join", "projectId": "   "}',
        '{"type": "message.send", "projectId": "p1", "content": ""}',
        '{"type": "message.send", "projectId": "p1", "content": "x", "messageType": "video"}',
    ])
    def test_invalid_frames(self, raw):
        with pytest.raises(InvalidFrame):
            parse_command(raw)

    def test_invalid_frame_names_the_field(self):
        with pytest.raises(InvalidFrame) as exc_info:
            parse_command('{"type": "room.join"}')
        assert "projectId" in exc_info.value.message or "project_id" in exc_info.value.message


class TestEncode:
    def test_error_event(self):
        payload = json.loads(encode(ErrorEvent(code="ACCESS_DENIED", message="no")))
        assert payload == {"type": "error", "code": "ACCESS_DENIED", "message": "no"}

    def test_user_summary_keys(self):
        user = UserSummary(id="u1", first_name="Ada", last_name="Lovelace")
        payload = json.loads(encode(user))
        assert payload["firstName"] == "Ada"
        assert payload["lastName"] == "Lovelace"
        assert user.display_name == "Ada Lovelace"
