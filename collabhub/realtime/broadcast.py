"""
Best-effort delivery of outbound events to live connections.

Sends never wait for recipient acknowledgement and never raise: a failed
send to one recipient is logged and the rest of the batch continues.
"""

from __future__ import annotations

from typing import Iterable

import structlog

from .protocol import Frame, encode
from .registry import ChannelHandle, SessionRegistry
from .rooms import RoomMembershipIndex

log = structlog.get_logger()


class Broadcaster:
    def __init__(self, registry: SessionRegistry, rooms: RoomMembershipIndex):
        self._registry = registry
        self._rooms = rooms

    async def deliver(self, channel: ChannelHandle, event: Frame | str) -> bool:
        """Send one event to one channel. Returns False if the send failed."""
        payload = event if isinstance(event, str) else encode(event)
        try:
            await channel.send(payload)
        except Exception as exc:
            log.warning("broadcast.delivery_failed", channel_id=channel.id, error=str(exc))
            return False
        return True

    async def send_to_user(self, user_id: str, event: Frame) -> bool:
        """Deliver to the user's current session. False if offline or unreachable."""
        channel = self._registry.lookup(user_id)
        if channel is None:
            return False
        return await self.deliver(channel, event)

    async def send_to_users(self, user_ids: Iterable[str], event: Frame) -> list[str]:
        """Deliver to each user with a live session. Returns the users reached."""
        payload = encode(event)
        reached = []
        for user_id in user_ids:
            channel = self._registry.lookup(user_id)
            if channel is None:
                continue
            if await self.deliver(channel, payload):
                reached.append(user_id)
        return reached

    async def send_to_room(
        self,
        project_id: str,
        event: Frame,
        exclude_user: str | None = None,
    ) -> list[str]:
        """Deliver to the room's current subscribers, optionally skipping one user."""
        members = sorted(
            user_id
            for user_id in self._rooms.members_of(project_id)
            if user_id != exclude_user
        )
        return await self.send_to_users(members, event)

    async def send_to_all(self, event: Frame, exclude_user: str | None = None) -> list[str]:
        """Deliver to every live session, optionally skipping one user."""
        user_ids = [
            session.user_id
            for session in self._registry.list_all()
            if session.user_id != exclude_user
        ]
        return await self.send_to_users(user_ids, event)
