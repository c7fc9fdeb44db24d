"""
Presence coordinator.

Drives the per-session lifecycle::

    Disconnected -> Connected -> {RoomMember(project_id)}* -> Disconnected

Registering a session announces the user as online to everyone else;
joining a room is authorized against the project store first and announced
only to that room; disconnecting cascades through every room the user was
subscribed to before the global offline announcement.
"""

from __future__ import annotations

import structlog

from .broadcast import Broadcaster
from .errors import AccessDenied
from .ports import Authorization
from .protocol import MemberJoined, MemberLeft, PresenceOffline, PresenceOnline, UserSummary
from .registry import ChannelHandle, Session, SessionRegistry
from .rooms import RoomMembershipIndex

log = structlog.get_logger()


class PresenceCoordinator:
    def __init__(
        self,
        registry: SessionRegistry,
        rooms: RoomMembershipIndex,
        broadcaster: Broadcaster,
        authorization: Authorization,
    ):
        self._registry = registry
        self._rooms = rooms
        self._broadcaster = broadcaster
        self._authorization = authorization

    async def on_connect(self, user: UserSummary, channel: ChannelHandle) -> Session:
        """Register the session and announce the user to every other session."""
        previous = self._registry.get(user.id)
        session = self._registry.register(user.id, channel, user)
        if previous is not None:
            log.info(
                "presence.session_replaced",
                user_id=user.id,
                previous_channel=previous.channel.id,
                channel=channel.id,
            )
        log.info("presence.online", user_id=user.id, online=len(self._registry))

        await self._broadcaster.send_to_all(
            PresenceOnline(user_id=user.id, user=user),
            exclude_user=user.id,
        )
        return session

    async def join_room(self, user_id: str, project_id: str) -> bool:
        """
        Subscribe user_id to a project room.

        Raises AccessDenied when the user is neither an active team member
        nor an admin, and ProjectNotFound when the project does not exist;
        in both cases the index is left untouched. Joining twice is a no-op.
        Returns True when a new membership was created.
        """
        user = self._registry.summary(user_id)
        allowed = await self._authorization.is_active_member_or_admin(project_id, user_id)
        if not allowed:
            log.info("presence.join_denied", user_id=user_id, project_id=project_id)
            raise AccessDenied()

        if not self._rooms.join(project_id, user_id):
            return False

        log.info(
            "presence.room_joined",
            user_id=user_id,
            project_id=project_id,
            members=len(self._rooms.members_of(project_id)),
        )
        await self._broadcaster.send_to_room(
            project_id,
            MemberJoined(project_id=project_id, user=user),
            exclude_user=user_id,
        )
        return True

    async def leave_room(self, user_id: str, project_id: str) -> bool:
        """Unsubscribe user_id. No authorization needed; leaving when absent is a no-op."""
        if not self._rooms.leave(project_id, user_id):
            return False

        log.info("presence.room_left", user_id=user_id, project_id=project_id)
        await self._broadcaster.send_to_room(
            project_id,
            MemberLeft(project_id=project_id, user=self._registry.summary(user_id)),
        )
        return True

    async def on_disconnect(
        self, user_id: str, channel: ChannelHandle | None = None
    ) -> list[str] | None:
        """
        Tear down a session: leave every room, then announce offline.

        With ``channel`` given, a connection that was superseded by a newer
        one still registered for the same user is ignored and None is
        returned; the newer connection keeps the user's rooms and online
        status. Otherwise returns the rooms the user was removed from.

        Memberships left behind with no registered session are still torn
        down, but no offline presence is announced for a user who was not
        online.
        """
        session = self._registry.get(user_id)
        if channel is not None and session is not None and session.channel is not channel:
            log.info("presence.stale_disconnect", user_id=user_id, channel=channel.id)
            return None
        if session is not None:
            self._registry.unregister(user_id)

        user = session.user if session is not None else UserSummary(id=user_id, first_name="")
        rooms = self._rooms.leave_all(user_id)
        for project_id in rooms:
            await self._broadcaster.send_to_room(
                project_id,
                MemberLeft(project_id=project_id, user=user),
            )

        if session is None:
            if rooms:
                log.info("presence.orphaned_rooms_cleared", user_id=user_id, rooms_left=len(rooms))
            return rooms

        log.info("presence.offline", user_id=user_id, rooms_left=len(rooms), online=len(self._registry))
        await self._broadcaster.send_to_all(
            PresenceOffline(user_id=user_id),
            exclude_user=user_id,
        )
        return rooms
