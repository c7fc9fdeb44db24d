"""
Realtime wire protocol.

Frames are JSON objects tagged by ``type``. Inbound frames are parsed into a
discriminated union of commands; outbound events are serialized with
camelCase keys (``projectId``) while Python code uses snake_case.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .errors import InvalidFrame


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Frame(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    SYSTEM = "system"
    NOTIFICATION = "notification"


class UserSummary(Frame):
    """Minimal public view of a user attached to presence and room events."""

    id: str
    first_name: str
    last_name: str = ""
    avatar: Optional[str] = None
    availability: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


Identifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ---------------------------------------------------------------------------
# Inbound commands (client -> server)
# ---------------------------------------------------------------------------


class JoinRoom(Frame):
    type: Literal["room.join"] = "room.join"
    project_id: Identifier


class LeaveRoom(Frame):
    type: Literal["room.leave"] = "room.leave"
    project_id: Identifier


class SendMessage(Frame):
    type: Literal["message.send"] = "message.send"
    project_id: Identifier
    content: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    message_type: MessageType = MessageType.TEXT
    reply_to_message_id: Optional[str] = None


class StartTyping(Frame):
    type: Literal["typing.start"] = "typing.start"
    project_id: Identifier


class StopTyping(Frame):
    type: Literal["typing.stop"] = "typing.stop"
    project_id: Identifier


class Ping(Frame):
    type: Literal["ping"] = "ping"


class AnnouncePresence(Frame):
    type: Literal["presence.announce"] = "presence.announce"


class UpdateProgress(Frame):
    type: Literal["project.progress"] = "project.progress"
    project_id: Identifier
    progress: int = Field(ge=0, le=100)


class CompleteTask(Frame):
    type: Literal["project.taskComplete"] = "project.taskComplete"
    project_id: Identifier
    task_id: Identifier


class RequestMatch(Frame):
    type: Literal["match.request"] = "match.request"
    recipient_id: Identifier
    project_id: Optional[str] = None
    message: Optional[str] = Field(default=None, max_length=500)


InboundCommand = Annotated[
    Union[
        JoinRoom,
        LeaveRoom,
        SendMessage,
        StartTyping,
        StopTyping,
        Ping,
        AnnouncePresence,
        UpdateProgress,
        CompleteTask,
        RequestMatch,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundCommand] = TypeAdapter(InboundCommand)


def parse_command(raw: str | bytes) -> InboundCommand:
    """Parse one inbound frame. Raises InvalidFrame on bad JSON or payload."""
    try:
        return _inbound_adapter.validate_json(raw)
    except ValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error.get("loc", ()))
        detail = f"{location}: {error['msg']}" if location else error["msg"]
        raise InvalidFrame(detail) from exc


# ---------------------------------------------------------------------------
# Outbound events (server -> client)
# ---------------------------------------------------------------------------


class DeliveredMessage(Frame):
    id: str
    project_id: str
    sender: UserSummary
    content: str
    message_type: MessageType
    reply_to_message_id: Optional[str] = None
    created_at: datetime


class PresenceOnline(Frame):
    type: Literal["presence.online"] = "presence.online"
    user_id: str
    user: Optional[UserSummary] = None


class PresenceOffline(Frame):
    type: Literal["presence.offline"] = "presence.offline"
    user_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class RoomJoined(Frame):
    type: Literal["room.joined"] = "room.joined"
    project_id: str


class RoomLeft(Frame):
    type: Literal["room.left"] = "room.left"
    project_id: str


class MemberJoined(Frame):
    type: Literal["room.memberJoined"] = "room.memberJoined"
    project_id: str
    user: UserSummary
    timestamp: datetime = Field(default_factory=_utcnow)


class MemberLeft(Frame):
    type: Literal["room.memberLeft"] = "room.memberLeft"
    project_id: str
    user: UserSummary
    timestamp: datetime = Field(default_factory=_utcnow)


class MessageDelivered(Frame):
    type: Literal["message.delivered"] = "message.delivered"
    project_id: str
    message: DeliveredMessage


class TypingStarted(Frame):
    type: Literal["typing.start"] = "typing.start"
    project_id: str
    user: UserSummary


class TypingStopped(Frame):
    type: Literal["typing.stop"] = "typing.stop"
    project_id: str
    user: UserSummary


class NotificationPayload(Frame):
    id: Optional[str] = None
    type: str
    title: str
    message: str
    project_id: Optional[str] = None


class NotificationNew(Frame):
    type: Literal["notification.new"] = "notification.new"
    notification: NotificationPayload


class ProjectUpdated(Frame):
    type: Literal["project.updated"] = "project.updated"
    project_id: str
    update_type: str = "progress"
    progress: int
    updated_by: UserSummary
    timestamp: datetime = Field(default_factory=_utcnow)


class TaskSummary(Frame):
    id: str
    title: str
    status: str
    completed_at: Optional[datetime] = None


class TaskCompleted(Frame):
    type: Literal["project.taskCompleted"] = "project.taskCompleted"
    project_id: str
    task_id: str
    task: TaskSummary
    completed_by: UserSummary
    timestamp: datetime = Field(default_factory=_utcnow)


class MatchRequested(Frame):
    type: Literal["match.request"] = "match.request"
    requester: UserSummary
    project_id: Optional[str] = None
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class Pong(Frame):
    type: Literal["pong"] = "pong"


class ErrorEvent(Frame):
    type: Literal["error"] = "error"
    code: str
    message: str


OutboundEvent = Union[
    PresenceOnline,
    PresenceOffline,
    RoomJoined,
    RoomLeft,
    MemberJoined,
    MemberLeft,
    MessageDelivered,
    TypingStarted,
    TypingStopped,
    NotificationNew,
    ProjectUpdated,
    TaskCompleted,
    MatchRequested,
    Pong,
    ErrorEvent,
]


def encode(event: Frame) -> str:
    """Serialize an outbound event to its JSON wire form."""
    return event.model_dump_json(by_alias=True)
