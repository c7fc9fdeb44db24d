"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, unique=True, index=True)
    first_name: str = Field(nullable=False)
    last_name: str = Field(nullable=False)
    avatar: Optional[str] = None
    availability: str = Field(default="available", nullable=False)  # available | busy | unavailable | looking
    status: str = Field(default="active", nullable=False)  # active | inactive | suspended
    is_admin: bool = Field(default=False, nullable=False)
    last_active: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
