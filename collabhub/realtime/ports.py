"""
Collaborator interfaces consumed by the realtime core.

The realtime layer never touches storage directly. Authorization, projects,
chat history, notifications and user profiles are reached through these
narrow async protocols; ``collabhub.services`` provides the SQL-backed
implementations and tests provide in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from .protocol import MessageType, UserSummary


@dataclass(frozen=True)
class ProjectRecord:
    id: str
    title: str
    creator_id: str


@dataclass(frozen=True)
class TaskRecord:
    id: str
    project_id: str
    title: str
    status: str
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class OutboundMessage:
    """Chat content ready for relay, before persistence."""

    project_id: str
    sender_id: str
    content: str
    message_type: MessageType = MessageType.TEXT
    reply_to_message_id: Optional[str] = None


@dataclass(frozen=True)
class PersistedMessage:
    id: str
    project_id: str
    sender_id: str
    content: str
    message_type: MessageType
    created_at: datetime
    reply_to_message_id: Optional[str] = None


@dataclass(frozen=True)
class NotificationDraft:
    recipient_id: str
    type: str
    title: str
    message: str
    sender_id: Optional[str] = None
    project_id: Optional[str] = None
    priority: str = "medium"
    category: str = "social"


@dataclass(frozen=True)
class NotificationRecord:
    id: str
    recipient_id: str
    type: str
    title: str
    message: str
    created_at: datetime
    project_id: Optional[str] = None


class Authorization(Protocol):
    async def is_active_member_or_admin(self, project_id: str, user_id: str) -> bool:
        """True for active team members and admins. Raises ProjectNotFound."""
        ...

    async def can_manage_project(self, project_id: str, user_id: str) -> bool:
        """True for the creator, active team members and admins. Raises ProjectNotFound."""
        ...


class ProjectStore(Protocol):
    async def get_project(self, project_id: str) -> ProjectRecord | None: ...

    async def get_active_team_members(self, project_id: str) -> list[str]: ...

    async def update_progress(self, project_id: str, progress: int) -> None: ...

    async def complete_task(self, project_id: str, task_id: str) -> TaskRecord | None: ...


class ChatStore(Protocol):
    async def append_message(self, project_id: str, message: OutboundMessage) -> PersistedMessage:
        """Persist a message, creating the project's chat record on first use."""
        ...


class NotificationStore(Protocol):
    async def create(self, notification: NotificationDraft) -> NotificationRecord: ...


class UserDirectory(Protocol):
    async def get_active_user(self, user_id: str) -> UserSummary | None:
        """Summary of an existing user whose account is active, else None."""
        ...

    async def touch_last_active(self, user_id: str) -> None: ...
