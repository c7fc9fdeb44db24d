"""User directory: public summaries and last-active tracking."""

from __future__ import annotations

from collabhub.core.database import SessionFactory, session_scope
from collabhub.models import User, parse_uuid, utcnow
from collabhub.realtime.protocol import UserSummary


def to_summary(user: User) -> UserSummary:
    return UserSummary(
        id=str(user.id),
        first_name=user.first_name,
        last_name=user.last_name,
        avatar=user.avatar,
        availability=user.availability,
    )


class SqlUserDirectory:
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def get_active_user(self, user_id: str) -> UserSummary | None:
        uid = parse_uuid(user_id)
        if uid is None:
            return None
        async with session_scope(self._session_factory) as session:
            user = await session.get(User, uid)
            if user is None or user.status != "active":
                return None
            return to_summary(user)

    async def touch_last_active(self, user_id: str) -> None:
        uid = parse_uuid(user_id)
        if uid is None:
            return
        async with session_scope(self._session_factory) as session:
            user = await session.get(User, uid)
            if user is not None:
                user.last_active = utcnow()
                session.add(user)
