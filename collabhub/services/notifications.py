"""Notification store."""

from __future__ import annotations

from collabhub.core.database import SessionFactory, session_scope
from collabhub.models import Notification, parse_uuid
from collabhub.realtime.ports import NotificationDraft, NotificationRecord

TITLE_MAX = 100
MESSAGE_MAX = 500


class SqlNotificationStore:
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def create(self, notification: NotificationDraft) -> NotificationRecord:
        recipient_id = parse_uuid(notification.recipient_id)
        if recipient_id is None:
            raise ValueError(f"Invalid recipient id: {notification.recipient_id!r}")

        async with session_scope(self._session_factory) as session:
            row = Notification(
                recipient_id=recipient_id,
                sender_id=parse_uuid(notification.sender_id),
                type=notification.type,
                title=notification.title[:TITLE_MAX],
                message=notification.message[:MESSAGE_MAX],
                project_id=parse_uuid(notification.project_id),
                priority=notification.priority,
                category=notification.category,
            )
            session.add(row)
            await session.flush()

            return NotificationRecord(
                id=str(row.id),
                recipient_id=str(row.recipient_id),
                type=row.type,
                title=row.title,
                message=row.message,
                created_at=row.created_at,
                project_id=str(row.project_id) if row.project_id else None,
            )
