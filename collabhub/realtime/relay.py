"""
Message relay: persist, fan out, notify.

``send`` runs four steps in order:

1. Authorization: the sender must be subscribed to the room and still be an
   active team member (or admin) at the time of sending.
2. Persist through the chat store. Nothing is fanned out unless this step
   succeeds; a failure is reported to the sender only.
3. Fan out the persisted message to every room subscriber with a live
   session. Unreachable subscribers are skipped.
4. Create a notification for every active team member except the sender,
   whether or not they are connected, and push a realtime notification to
   those who are. Failures are isolated per member.

Project progress and task completion follow the same persist-then-broadcast
order. Typing indicators are broadcast-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from .broadcast import Broadcaster
from .errors import AccessDenied, InvalidFrame, PersistenceFailed, RealtimeError, TaskNotFound
from .ports import (
    Authorization,
    ChatStore,
    NotificationDraft,
    NotificationStore,
    OutboundMessage,
    PersistedMessage,
    ProjectStore,
    TaskRecord,
)
from .protocol import (
    DeliveredMessage,
    MessageDelivered,
    MessageType,
    NotificationNew,
    NotificationPayload,
    ProjectUpdated,
    TaskCompleted,
    TaskSummary,
    TypingStarted,
    TypingStopped,
    UserSummary,
)
from .registry import SessionRegistry
from .rooms import RoomMembershipIndex

log = structlog.get_logger()

MESSAGE_NOTIFICATION_TYPE = "message_received"
MESSAGE_NOTIFICATION_TITLE = "New Message"
NOTIFICATION_MESSAGE_MAX = 500


@dataclass
class RelayResult:
    message: PersistedMessage
    delivered_to: list[str] = field(default_factory=list)
    notified: list[str] = field(default_factory=list)


class MessageRelay:
    def __init__(
        self,
        registry: SessionRegistry,
        rooms: RoomMembershipIndex,
        broadcaster: Broadcaster,
        authorization: Authorization,
        projects: ProjectStore,
        chats: ChatStore,
        notifications: NotificationStore,
        max_message_length: int = 1000,
    ):
        self._registry = registry
        self._rooms = rooms
        self._broadcaster = broadcaster
        self._authorization = authorization
        self._projects = projects
        self._chats = chats
        self._notifications = notifications
        self._max_message_length = max_message_length
        self._typing: set[tuple[str, str]] = set()

    # --- Chat messages ---

    async def send(
        self,
        sender_id: str,
        project_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to_message_id: str | None = None,
    ) -> RelayResult:
        sender = self._registry.summary(sender_id)

        if not self._rooms.is_member(project_id, sender_id):
            log.info("relay.send_denied", user_id=sender_id, project_id=project_id, reason="not_in_room")
            raise AccessDenied("Join the project room before sending messages")
        if not await self._authorization.is_active_member_or_admin(project_id, sender_id):
            log.info("relay.send_denied", user_id=sender_id, project_id=project_id, reason="not_a_member")
            raise AccessDenied()

        content = content.strip()
        if not content or len(content) > self._max_message_length:
            raise InvalidFrame(
                f"Message content must be between 1 and {self._max_message_length} characters"
            )

        outbound = OutboundMessage(
            project_id=project_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            reply_to_message_id=reply_to_message_id,
        )
        try:
            persisted = await self._chats.append_message(project_id, outbound)
        except RealtimeError:
            raise
        except Exception as exc:
            log.error("relay.persist_failed", user_id=sender_id, project_id=project_id, error=str(exc))
            raise PersistenceFailed() from exc

        event = MessageDelivered(
            project_id=project_id,
            message=DeliveredMessage(
                id=persisted.id,
                project_id=project_id,
                sender=sender,
                content=persisted.content,
                message_type=persisted.message_type,
                reply_to_message_id=persisted.reply_to_message_id,
                created_at=persisted.created_at,
            ),
        )
        delivered = await self._broadcaster.send_to_room(project_id, event)
        log.info(
            "relay.message_delivered",
            message_id=persisted.id,
            project_id=project_id,
            recipients=len(delivered),
        )

        notified = await self._notify_team(persisted, sender)
        return RelayResult(message=persisted, delivered_to=delivered, notified=notified)

    async def _notify_team(self, message: PersistedMessage, sender: UserSummary) -> list[str]:
        try:
            project = await self._projects.get_project(message.project_id)
            members = await self._projects.get_active_team_members(message.project_id)
        except Exception as exc:
            log.warning("relay.team_lookup_failed", project_id=message.project_id, error=str(exc))
            return []

        project_title = project.title if project else "your project"
        sender_name = sender.first_name or "A teammate"
        text = f"{sender_name} sent a message in {project_title}"[:NOTIFICATION_MESSAGE_MAX]

        notified = []
        for member_id in members:
            if member_id == message.sender_id:
                continue
            draft = NotificationDraft(
                recipient_id=member_id,
                sender_id=message.sender_id,
                type=MESSAGE_NOTIFICATION_TYPE,
                title=MESSAGE_NOTIFICATION_TITLE,
                message=text,
                project_id=message.project_id,
                priority="low",
                category="social",
            )
            try:
                record = await self._notifications.create(draft)
            except Exception as exc:
                log.warning(
                    "relay.notification_failed",
                    recipient_id=member_id,
                    project_id=message.project_id,
                    error=str(exc),
                )
                continue

            notified.append(member_id)
            await self._broadcaster.send_to_user(
                member_id,
                NotificationNew(
                    notification=NotificationPayload(
                        id=record.id,
                        type=record.type,
                        title=record.title,
                        message=record.message,
                        project_id=record.project_id,
                    )
                ),
            )
        return notified

    # --- Typing indicators ---

    async def typing(self, user_id: str, project_id: str, active: bool) -> bool:
        """Relay a typing flag to the rest of the room. Ignored outside the room."""
        if not self._rooms.is_member(project_id, user_id):
            log.debug("relay.typing_ignored", user_id=user_id, project_id=project_id)
            return False

        key = (project_id, user_id)
        user = self._registry.summary(user_id)
        if active:
            self._typing.add(key)
            event = TypingStarted(project_id=project_id, user=user)
        else:
            self._typing.discard(key)
            event = TypingStopped(project_id=project_id, user=user)

        await self._broadcaster.send_to_room(project_id, event, exclude_user=user_id)
        return True

    def is_typing(self, project_id: str, user_id: str) -> bool:
        return (project_id, user_id) in self._typing

    def clear_typing(self, user_id: str, project_id: str | None = None) -> None:
        self._typing = {
            (room, user)
            for room, user in self._typing
            if user != user_id or (project_id is not None and room != project_id)
        }

    # --- Project activity ---

    async def update_progress(self, user_id: str, project_id: str, progress: int) -> None:
        if not await self._authorization.can_manage_project(project_id, user_id):
            log.info("relay.progress_denied", user_id=user_id, project_id=project_id)
            raise AccessDenied()

        try:
            await self._projects.update_progress(project_id, progress)
        except RealtimeError:
            raise
        except Exception as exc:
            log.error("relay.progress_persist_failed", project_id=project_id, error=str(exc))
            raise PersistenceFailed("Failed to update project progress") from exc

        await self._broadcaster.send_to_room(
            project_id,
            ProjectUpdated(
                project_id=project_id,
                progress=progress,
                updated_by=self._registry.summary(user_id),
            ),
        )

    async def complete_task(self, user_id: str, project_id: str, task_id: str) -> TaskRecord:
        if not await self._authorization.is_active_member_or_admin(project_id, user_id):
            log.info("relay.task_denied", user_id=user_id, project_id=project_id)
            raise AccessDenied()

        try:
            task = await self._projects.complete_task(project_id, task_id)
        except RealtimeError:
            raise
        except Exception as exc:
            log.error("relay.task_persist_failed", project_id=project_id, task_id=task_id, error=str(exc))
            raise PersistenceFailed("Failed to complete task") from exc
        if task is None:
            raise TaskNotFound()

        await self._broadcaster.send_to_room(
            project_id,
            TaskCompleted(
                project_id=project_id,
                task_id=task.id,
                task=TaskSummary(
                    id=task.id,
                    title=task.title,
                    status=task.status,
                    completed_at=task.completed_at,
                ),
                completed_by=self._registry.summary(user_id),
            ),
        )
        return task
