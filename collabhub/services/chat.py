"""Chat store: appends project chat messages, creating the chat on first use."""

from __future__ import annotations

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from collabhub.core.database import SessionFactory, session_scope
from collabhub.models import Chat, ChatMessage, parse_uuid
from collabhub.realtime.errors import ProjectNotFound
from collabhub.realtime.ports import OutboundMessage, PersistedMessage
from collabhub.realtime.protocol import MessageType

log = structlog.get_logger()


class SqlChatStore:
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def append_message(self, project_id: str, message: OutboundMessage) -> PersistedMessage:
        try:
            return await self._append(project_id, message)
        except IntegrityError:
            # Concurrent first messages race on the unique chats.project_id.
            log.info("chat.create_race", project_id=project_id)
            return await self._append(project_id, message)

    async def _append(self, project_id: str, message: OutboundMessage) -> PersistedMessage:
        pid = parse_uuid(project_id)
        sender_id = parse_uuid(message.sender_id)
        if pid is None or sender_id is None:
            raise ProjectNotFound()

        async with session_scope(self._session_factory) as session:
            result = await session.execute(select(Chat).where(Chat.project_id == pid))
            chat = result.scalar_one_or_none()
            if chat is None:
                chat = Chat(project_id=pid)
                session.add(chat)
                await session.flush()
                log.info("chat.created", project_id=project_id, chat_id=str(chat.id))

            row = ChatMessage(
                chat_id=chat.id,
                sender_id=sender_id,
                content=message.content,
                message_type=message.message_type.value,
                reply_to_id=parse_uuid(message.reply_to_message_id),
            )
            chat.last_message_at = row.created_at
            session.add(row)
            session.add(chat)
            await session.flush()

            return PersistedMessage(
                id=str(row.id),
                project_id=project_id,
                sender_id=message.sender_id,
                content=row.content,
                message_type=MessageType(row.message_type),
                created_at=row.created_at,
                reply_to_message_id=str(row.reply_to_id) if row.reply_to_id else None,
            )
