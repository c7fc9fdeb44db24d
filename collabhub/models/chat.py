"""Project chat models: one chat per project, created on its first message."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Chat(UUIDMixin, SQLModel, table=True):
    __tablename__ = "chats"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, unique=True, index=True)
    last_message_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class ChatMessage(UUIDMixin, SQLModel, table=True):
    __tablename__ = "chat_messages"

    chat_id: uuid.UUID = Field(foreign_key="chats.id", nullable=False, index=True)
    sender_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    content: str = Field(nullable=False, max_length=1000)
    message_type: str = Field(default="text", nullable=False)  # text | file | system | notification
    reply_to_id: Optional[uuid.UUID] = Field(default=None, foreign_key="chat_messages.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_type=sa.DateTime(timezone=True),
    )
