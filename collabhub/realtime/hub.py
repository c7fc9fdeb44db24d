"""
Realtime hub: wires the registry, room index, presence coordinator and
message relay together and dispatches inbound commands per connection.

One hub exists per process. It is built in ``create_app()`` and passed by
reference to the WebSocket endpoint; tests build their own around fakes.
"""

from __future__ import annotations

import structlog

from .broadcast import Broadcaster
from .errors import RealtimeError, SessionSuperseded
from .ports import Authorization, ChatStore, NotificationStore, ProjectStore, UserDirectory
from .presence import PresenceCoordinator
from .protocol import (
    AnnouncePresence,
    CompleteTask,
    ErrorEvent,
    Frame,
    InboundCommand,
    JoinRoom,
    LeaveRoom,
    MatchRequested,
    Ping,
    Pong,
    RequestMatch,
    RoomJoined,
    RoomLeft,
    SendMessage,
    StartTyping,
    StopTyping,
    UpdateProgress,
    UserSummary,
    parse_command,
)
from .registry import ChannelHandle, Session, SessionRegistry
from .relay import MessageRelay
from .rooms import RoomMembershipIndex

log = structlog.get_logger()


class RealtimeHub:
    def __init__(
        self,
        authorization: Authorization,
        projects: ProjectStore,
        chats: ChatStore,
        notifications: NotificationStore,
        users: UserDirectory,
        *,
        max_message_length: int = 1000,
        registry: SessionRegistry | None = None,
        rooms: RoomMembershipIndex | None = None,
    ):
        self.registry = registry or SessionRegistry()
        self.rooms = rooms or RoomMembershipIndex()
        self.users = users
        self.broadcaster = Broadcaster(self.registry, self.rooms)
        self.presence = PresenceCoordinator(
            self.registry, self.rooms, self.broadcaster, authorization
        )
        self.relay = MessageRelay(
            self.registry,
            self.rooms,
            self.broadcaster,
            authorization,
            projects,
            chats,
            notifications,
            max_message_length=max_message_length,
        )

    # --- Connection lifecycle ---

    async def connect(self, user: UserSummary, channel: ChannelHandle) -> Session:
        return await self.presence.on_connect(user, channel)

    async def disconnect(self, user_id: str, channel: ChannelHandle | None = None) -> None:
        rooms = await self.presence.on_disconnect(user_id, channel)
        if rooms is not None:
            self.relay.clear_typing(user_id)

    # --- Dispatch ---

    async def handle_frame(self, session: Session, raw: str | bytes) -> None:
        """Parse and dispatch one raw inbound frame from session's connection."""
        try:
            command = parse_command(raw)
        except RealtimeError as exc:
            await self._reject(session, exc)
            return
        await self.dispatch(session, command)

    async def dispatch(self, session: Session, command: InboundCommand) -> None:
        """
        Handle one command. Rejections are answered on the originating
        connection only and never close it.
        """
        try:
            await self._handle(session, command)
        except RealtimeError as exc:
            await self._reject(session, exc)
        except Exception:
            log.exception("hub.command_failed", user_id=session.user_id, command=command.type)
            await self.broadcaster.deliver(
                session.channel,
                ErrorEvent(code="INTERNAL_ERROR", message="Failed to process request"),
            )

    async def _handle(self, session: Session, command: InboundCommand) -> None:
        user_id = session.user_id

        if isinstance(command, Ping):
            await self.broadcaster.deliver(session.channel, Pong())
            return

        if isinstance(command, JoinRoom):
            if self.registry.lookup(user_id) is not session.channel:
                raise SessionSuperseded()
            await self.presence.join_room(user_id, command.project_id)
            await self.broadcaster.deliver(session.channel, RoomJoined(project_id=command.project_id))
            return

        if isinstance(command, LeaveRoom):
            if await self.presence.leave_room(user_id, command.project_id):
                self.relay.clear_typing(user_id, command.project_id)
            await self.broadcaster.deliver(session.channel, RoomLeft(project_id=command.project_id))
            return

        if isinstance(command, SendMessage):
            await self.relay.send(
                user_id,
                command.project_id,
                command.content,
                message_type=command.message_type,
                reply_to_message_id=command.reply_to_message_id,
            )
            return

        if isinstance(command, (StartTyping, StopTyping)):
            await self.relay.typing(user_id, command.project_id, isinstance(command, StartTyping))
            return

        if isinstance(command, AnnouncePresence):
            await self.users.touch_last_active(user_id)
            return

        if isinstance(command, UpdateProgress):
            await self.relay.update_progress(user_id, command.project_id, command.progress)
            return

        if isinstance(command, CompleteTask):
            await self.relay.complete_task(user_id, command.project_id, command.task_id)
            return

        if isinstance(command, RequestMatch):
            await self.request_match(session, command)
            return

    async def request_match(self, session: Session, command: RequestMatch) -> bool:
        """Push a match request straight to the recipient if they are online."""
        reached = await self.emit_to_user(
            command.recipient_id,
            MatchRequested(
                requester=session.user,
                project_id=command.project_id,
                message=command.message,
            ),
        )
        log.info(
            "hub.match_requested",
            user_id=session.user_id,
            recipient_id=command.recipient_id,
            delivered=reached,
        )
        return reached

    async def _reject(self, session: Session, exc: RealtimeError) -> None:
        log.info("hub.command_rejected", user_id=session.user_id, code=exc.code, reason=exc.message)
        await self.broadcaster.deliver(session.channel, ErrorEvent(code=exc.code, message=exc.message))

    # --- Helpers for the rest of the application ---

    def connected_users(self) -> list[Session]:
        return self.registry.list_all()

    def is_online(self, user_id: str) -> bool:
        return self.registry.is_online(user_id)

    async def emit_to_user(self, user_id: str, event: Frame) -> bool:
        return await self.broadcaster.send_to_user(user_id, event)

    async def emit_to_project(self, project_id: str, event: Frame) -> list[str]:
        return await self.broadcaster.send_to_room(project_id, event)
