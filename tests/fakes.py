"""
In-memory stand-ins for connections and collaborator ports.
"""

from __future__ import annotations

import itertools
import json
from dataclasses import replace
from datetime import datetime, timezone

from collabhub.realtime import RealtimeHub
from collabhub.realtime.errors import ProjectNotFound
from collabhub.realtime.ports import (
    NotificationDraft,
    NotificationRecord,
    OutboundMessage,
    PersistedMessage,
    ProjectRecord,
    TaskRecord,
)
from collabhub.realtime.protocol import UserSummary

_ids = itertools.count(1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeChannel:
    """Records every payload sent to it; can be told to fail."""

    def __init__(self, name: str = "", fail: bool = False):
        self._id = name or f"chan-{next(_ids)}"
        self.fail = fail
        self.sent: list[str] = []
        self.closed: tuple[int, str] | None = None

    @property
    def id(self) -> str:
        return self._id

    async def send(self, payload: str) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = (code, reason)

    @property
    def events(self) -> list[dict]:
        return [json.loads(p) for p in self.sent]

    def of_type(self, event_type: str) -> list[dict]:
        return [e for e in self.events if e["type"] == event_type]

    def clear(self) -> None:
        self.sent.clear()


class FakeProjectStore:
    """Authorization and ProjectStore over plain dicts."""

    def __init__(self):
        self.projects: dict[str, ProjectRecord] = {}
        self.members: dict[str, list[str]] = {}
        self.admins: set[str] = set()
        self.tasks: dict[str, TaskRecord] = {}
        self.progress: dict[str, int] = {}
        self.fail_team_lookup = False
        self.fail_progress = False

    def add_project(self, project_id: str, title: str, members: list[str], creator_id: str | None = None):
        self.projects[project_id] = ProjectRecord(
            id=project_id, title=title, creator_id=creator_id or (members[0] if members else "")
        )
        self.members[project_id] = list(members)

    def add_task(self, project_id: str, task_id: str, title: str = "Write report"):
        self.tasks[task_id] = TaskRecord(id=task_id, project_id=project_id, title=title, status="todo")

    def remove_member(self, project_id: str, user_id: str):
        self.members[project_id].remove(user_id)

    def _require(self, project_id: str) -> ProjectRecord:
        project = self.projects.get(project_id)
        if project is None:
            raise ProjectNotFound()
        return project

    async def is_active_member_or_admin(self, project_id: str, user_id: str) -> bool:
        self._require(project_id)
        return user_id in self.admins or user_id in self.members.get(project_id, [])

    async def can_manage_project(self, project_id: str, user_id: str) -> bool:
        project = self._require(project_id)
        if project.creator_id == user_id:
            return True
        return await self.is_active_member_or_admin(project_id, user_id)

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        return self.projects.get(project_id)

    async def get_active_team_members(self, project_id: str) -> list[str]:
        if self.fail_team_lookup:
            raise RuntimeError("database unavailable")
        return list(self.members.get(project_id, []))

    async def update_progress(self, project_id: str, progress: int) -> None:
        if self.fail_progress:
            raise RuntimeError("database unavailable")
        self._require(project_id)
        self.progress[project_id] = progress

    async def complete_task(self, project_id: str, task_id: str) -> TaskRecord | None:
        self._require(project_id)
        task = self.tasks.get(task_id)
        if task is None or task.project_id != project_id:
            return None
        task = replace(task, status="completed", completed_at=_now())
        self.tasks[task_id] = task
        return task


class FakeChatStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[PersistedMessage] = []

    async def append_message(self, project_id: str, message: OutboundMessage) -> PersistedMessage:
        if self.fail:
            raise RuntimeError("insert failed")
        persisted = PersistedMessage(
            id=f"msg-{next(_ids)}",
            project_id=project_id,
            sender_id=message.sender_id,
            content=message.content,
            message_type=message.message_type,
            created_at=_now(),
            reply_to_message_id=message.reply_to_message_id,
        )
        self.messages.append(persisted)
        return persisted


class FakeNotificationStore:
    def __init__(self):
        self.fail_for: set[str] = set()
        self.records: list[NotificationRecord] = []
        self.drafts: list[NotificationDraft] = []

    async def create(self, notification: NotificationDraft) -> NotificationRecord:
        if notification.recipient_id in self.fail_for:
            raise RuntimeError("insert failed")
        self.drafts.append(notification)
        record = NotificationRecord(
            id=f"ntf-{next(_ids)}",
            recipient_id=notification.recipient_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            created_at=_now(),
            project_id=notification.project_id,
        )
        self.records.append(record)
        return record

    def for_recipient(self, user_id: str) -> list[NotificationRecord]:
        return [r for r in self.records if r.recipient_id == user_id]


class FakeUserDirectory:
    def __init__(self):
        self.users: dict[str, UserSummary] = {}
        self.inactive: set[str] = set()
        self.touched: list[str] = []

    def add(self, user_id: str, first_name: str, last_name: str = "") -> UserSummary:
        user = UserSummary(id=user_id, first_name=first_name, last_name=last_name)
        self.users[user_id] = user
        return user

    async def get_active_user(self, user_id: str) -> UserSummary | None:
        if user_id in self.inactive:
            return None
        return self.users.get(user_id)

    async def touch_last_active(self, user_id: str) -> None:
        self.touched.append(user_id)


class Stack:
    """A hub wired to fresh fakes, with direct access to each fake."""

    def __init__(self, max_message_length: int = 1000):
        self.projects = FakeProjectStore()
        self.chats = FakeChatStore()
        self.notifications = FakeNotificationStore()
        self.users = FakeUserDirectory()
        self.hub = RealtimeHub(
            authorization=self.projects,
            projects=self.projects,
            chats=self.chats,
            notifications=self.notifications,
            users=self.users,
            max_message_length=max_message_length,
        )

    async def connect(self, user_id: str, first_name: str | None = None, channel: FakeChannel | None = None):
        user = self.users.users.get(user_id) or self.users.add(user_id, first_name or user_id.title())
        channel = channel or FakeChannel(f"{user_id}-chan")
        session = await self.hub.connect(user, channel)
        return session, channel
