"""
Session registry and room membership index tests.
"""

from collabhub.realtime import RoomMembershipIndex, SessionRegistry
from collabhub.realtime.protocol import UserSummary

from .fakes import FakeChannel


def _user(user_id: str) -> UserSummary:
    return UserSummary(id=user_id, first_name=user_id.title())


class TestSessionRegistry:
    def test_register_and_lookup(self):
        registry = SessionRegistry()
        channel = FakeChannel()
        session = registry.register("u1", channel, _user("u1"))

        assert session.user_id == "u1"
        assert registry.lookup("u1") is channel
        assert registry.is_online("u1")
        assert len(registry) == 1

    def test_lookup_unknown_user(self):
        registry = SessionRegistry()
        assert registry.lookup("ghost") is None
        assert registry.get("ghost") is None
        assert not registry.is_online("ghost")

    def test_register_overwrites_previous_session(self):
        registry = SessionRegistry()
        old, new = FakeChannel(), FakeChannel()
        registry.register("u1", old, _user("u1"))
        registry.register("u1", new, _user("u1"))

        assert registry.lookup("u1") is new
        assert len(registry) == 1

    def test_unregister_returns_channel(self):
        registry = SessionRegistry()
        channel = FakeChannel()
        registry.register("u1", channel, _user("u1"))

        assert registry.unregister("u1") is channel
        assert registry.lookup("u1") is None

    def test_unregister_unknown_is_noop(self):
        registry = SessionRegistry()
        assert registry.unregister("ghost") is None

    def test_unregister_superseded_channel_keeps_new_session(self):
        registry = SessionRegistry()
        old, new = FakeChannel(), FakeChannel()
        registry.register("u1", old, _user("u1"))
        registry.register("u1", new, _user("u1"))

        assert registry.unregister("u1", old) is None
        assert registry.lookup("u1") is new

    def test_summary_falls_back_to_bare_id(self):
        registry = SessionRegistry()
        registry.register("u1", FakeChannel(), _user("u1"))

        assert registry.summary("u1").first_name == "U1"
        assert registry.summary("ghost").id == "ghost"

    def test_list_all_is_a_snapshot(self):
        registry = SessionRegistry()
        registry.register("u1", FakeChannel(), _user("u1"))
        snapshot = registry.list_all()
        registry.register("u2", FakeChannel(), _user("u2"))

        assert [s.user_id for s in snapshot] == ["u1"]
        assert {s.user_id for s in registry.list_all()} == {"u1", "u2"}

    def test_session_to_dict_uses_camel_case(self):
        registry = SessionRegistry()
        channel = FakeChannel("c-1")
        session = registry.register("u1", channel, _user("u1"))

        data = session.to_dict()
        assert data["userId"] == "u1"
        assert data["channelId"] == "c-1"
        assert data["user"]["firstName"] == "U1"


class TestRoomMembershipIndex:
    def test_join_is_idempotent(self):
        rooms = RoomMembershipIndex()

        assert rooms.join("p1", "u1") is True
        assert rooms.join("p1", "u1") is False
        assert rooms.members_of("p1") == {"u1"}

    def test_last_call_decides_membership(self):
        sequences = [
            ["join"],
            ["join", "join", "join"],
            ["join", "leave"],
            ["leave", "leave", "join"],
            ["join", "leave", "join", "join"],
            ["join", "join", "leave", "leave"],
        ]
        for calls in sequences:
            rooms = RoomMembershipIndex()
            for call in calls:
                getattr(rooms, call)("p1", "u1")
            expected = {"u1"} if calls[-1] == "join" else set()
            assert rooms.members_of("p1") == expected, calls
            assert rooms.rooms_of("u1") == ({"p1"} if expected else set()), calls

    def test_leave_when_absent_is_noop(self):
        rooms = RoomMembershipIndex()
        assert rooms.leave("p1", "u1") is False
        assert rooms.members_of("p1") == set()

    def test_leave_removes_membership(self):
        rooms = RoomMembershipIndex()
        rooms.join("p1", "u1")
        rooms.join("p1", "u2")

        assert rooms.leave("p1", "u1") is True
        assert rooms.members_of("p1") == {"u2"}
        assert rooms.rooms_of("u1") == set()

    def test_leave_all_returns_affected_rooms(self):
        rooms = RoomMembershipIndex()
        rooms.join("p1", "u1")
        rooms.join("p2", "u1")
        rooms.join("p2", "u2")

        assert rooms.leave_all("u1") == ["p1", "p2"]
        assert rooms.rooms_of("u1") == set()
        assert rooms.members_of("p1") == set()
        assert rooms.members_of("p2") == {"u2"}

    def test_leave_all_for_unknown_user(self):
        rooms = RoomMembershipIndex()
        assert rooms.leave_all("ghost") == []

    def test_members_of_returns_copy(self):
        rooms = RoomMembershipIndex()
        rooms.join("p1", "u1")
        members = rooms.members_of("p1")
        members.add("intruder")

        assert rooms.members_of("p1") == {"u1"}

    def test_reverse_map_stays_consistent(self):
        rooms = RoomMembershipIndex()
        rooms.join("p1", "u1")
        rooms.join("p2", "u1")
        rooms.leave("p1", "u1")

        assert rooms.rooms_of("u1") == {"p2"}
        assert rooms.is_member("p2", "u1")
        assert not rooms.is_member("p1", "u1")
        assert rooms.joined_at("p2", "u1") is not None
        assert rooms.joined_at("p1", "u1") is None
