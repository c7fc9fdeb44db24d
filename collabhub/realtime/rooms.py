"""
Room membership index: which users are subscribed to each project room.

Process-local derived state. It records "this user's connection currently
receives this room's live events", never whether the user is really on the
project team; that lives in the project store.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone


class RoomMembershipIndex:
    """project_id -> set of user_id, with the reverse mapping kept in step."""

    def __init__(self) -> None:
        self._members: dict[str, set[str]] = {}
        self._rooms_by_user: dict[str, set[str]] = {}
        self._joined_at: dict[tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    def join(self, project_id: str, user_id: str) -> bool:
        """Add a membership. Idempotent; returns True only if it was new."""
        with self._lock:
            members = self._members.setdefault(project_id, set())
            if user_id in members:
                return False
            members.add(user_id)
            self._rooms_by_user.setdefault(user_id, set()).add(project_id)
            self._joined_at[(project_id, user_id)] = datetime.now(timezone.utc)
            return True

    def leave(self, project_id: str, user_id: str) -> bool:
        """Remove a membership. No-op when absent; returns True if one was removed."""
        with self._lock:
            return self._remove(project_id, user_id)

    def leave_all(self, user_id: str) -> list[str]:
        """Remove user_id from every room. Returns the rooms that were affected."""
        with self._lock:
            rooms = sorted(self._rooms_by_user.get(user_id, ()))
            for project_id in rooms:
                self._remove(project_id, user_id)
            return rooms

    def members_of(self, project_id: str) -> set[str]:
        with self._lock:
            return set(self._members.get(project_id, ()))

    def is_member(self, project_id: str, user_id: str) -> bool:
        return user_id in self._members.get(project_id, ())

    def rooms_of(self, user_id: str) -> set[str]:
        with self._lock:
            return set(self._rooms_by_user.get(user_id, ()))

    def joined_at(self, project_id: str, user_id: str) -> datetime | None:
        return self._joined_at.get((project_id, user_id))

    def _remove(self, project_id: str, user_id: str) -> bool:
        members = self._members.get(project_id)
        if not members or user_id not in members:
            return False
        members.discard(user_id)
        if not members:
            del self._members[project_id]
        rooms = self._rooms_by_user.get(user_id)
        if rooms is not None:
            rooms.discard(project_id)
            if not rooms:
                del self._rooms_by_user[user_id]
        self._joined_at.pop((project_id, user_id), None)
        return True
