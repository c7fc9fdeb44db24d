"""
Session registry: which users hold a live realtime connection.

At most one session per user is addressable at a time. A newer connection
for the same user replaces the mapping; the older transport is not closed
here, routing simply treats the latest connection as authoritative.

Every operation is a total function over the mapping and never raises.
Mutations are guarded by a lock so the registry can be shared between
connection handlers regardless of how the runtime schedules them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from .protocol import UserSummary


class ChannelHandle(Protocol):
    """Opaque address of one live connection."""

    @property
    def id(self) -> str: ...

    async def send(self, payload: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


@dataclass(frozen=True)
class Session:
    """One live realtime connection."""

    user_id: str
    channel: ChannelHandle
    user: UserSummary
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "channelId": self.channel.id,
            "connectedAt": self.connected_at.isoformat(),
            "user": self.user.model_dump(by_alias=True),
        }


class SessionRegistry:
    """Maps user_id to the session currently addressable for that user."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, channel: ChannelHandle, user: UserSummary) -> Session:
        """Store a session for user_id, overwriting any previous mapping."""
        session = Session(user_id=user_id, channel=channel, user=user)
        with self._lock:
            self._sessions[user_id] = session
        return session

    def unregister(self, user_id: str, channel: ChannelHandle | None = None) -> ChannelHandle | None:
        """
        Remove the session for user_id and return its channel.

        When ``channel`` is given, the mapping is only removed if it still
        points at that channel, so a superseded connection closing late does
        not evict its replacement. Returns None when nothing was removed.
        """
        with self._lock:
            current = self._sessions.get(user_id)
            if current is None:
                return None
            if channel is not None and current.channel is not channel:
                return None
            del self._sessions[user_id]
        return current.channel

    def lookup(self, user_id: str) -> ChannelHandle | None:
        session = self._sessions.get(user_id)
        return session.channel if session else None

    def get(self, user_id: str) -> Session | None:
        return self._sessions.get(user_id)

    def summary(self, user_id: str) -> UserSummary:
        """The connected user's summary, or a bare one carrying only the id."""
        session = self._sessions.get(user_id)
        if session is not None:
            return session.user
        return UserSummary(id=user_id, first_name="")

    def is_online(self, user_id: str) -> bool:
        return user_id in self._sessions

    def list_all(self) -> list[Session]:
        """Snapshot for diagnostics; only current at the instant of the read."""
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)
