"""Notification model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Notification(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    recipient_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    sender_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    type: str = Field(nullable=False)  # e.g. message_received, project_update
    title: str = Field(nullable=False, max_length=100)
    message: str = Field(nullable=False, max_length=500)
    project_id: Optional[uuid.UUID] = Field(default=None, foreign_key="projects.id", index=True)
    priority: str = Field(default="medium", nullable=False)  # low | medium | high | critical
    category: str = Field(default="social", nullable=False)  # social | project | system | urgent
    is_read: bool = Field(default=False, nullable=False)
