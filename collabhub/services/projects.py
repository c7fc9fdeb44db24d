"""
Project store and authorization backed by the projects tables.

Team membership is the source of truth for who may join a project room:
active ``project_members`` rows and admins pass, everyone else is denied.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from collabhub.core.database import SessionFactory, session_scope
from collabhub.models import Project, ProjectMember, ProjectTask, User, parse_uuid, utcnow
from collabhub.realtime.errors import ProjectNotFound
from collabhub.realtime.ports import ProjectRecord, TaskRecord

log = structlog.get_logger()

ACTIVE = "active"


class SqlProjectStore:
    """Implements both the Authorization and ProjectStore ports."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    # --- Authorization ---

    async def is_active_member_or_admin(self, project_id: str, user_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            project = await self._load_project(session, project_id)
            if await self._is_admin(session, user_id):
                return True
            return await self._is_active_member(session, project.id, user_id)

    async def can_manage_project(self, project_id: str, user_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            project = await self._load_project(session, project_id)
            if str(project.creator_id) == str(user_id):
                return True
            if await self._is_admin(session, user_id):
                return True
            return await self._is_active_member(session, project.id, user_id)

    # --- ProjectStore ---

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        pid = parse_uuid(project_id)
        if pid is None:
            return None
        async with session_scope(self._session_factory) as session:
            project = await session.get(Project, pid)
            if project is None:
                return None
            return ProjectRecord(
                id=str(project.id),
                title=project.title,
                creator_id=str(project.creator_id),
            )

    async def get_active_team_members(self, project_id: str) -> list[str]:
        pid = parse_uuid(project_id)
        if pid is None:
            return []
        async with session_scope(self._session_factory) as session:
            stmt = (
                select(ProjectMember.user_id)
                .where(ProjectMember.project_id == pid, ProjectMember.status == ACTIVE)
                .order_by(ProjectMember.joined_at)
            )
            result = await session.execute(stmt)
            return [str(user_id) for user_id in result.scalars().all()]

    async def update_progress(self, project_id: str, progress: int) -> None:
        async with session_scope(self._session_factory) as session:
            project = await self._load_project(session, project_id)
            project.progress = max(0, min(100, progress))
            project.updated_at = utcnow()
            session.add(project)
        log.info("projects.progress_updated", project_id=project_id, progress=progress)

    async def complete_task(self, project_id: str, task_id: str) -> TaskRecord | None:
        tid = parse_uuid(task_id)
        async with session_scope(self._session_factory) as session:
            project = await self._load_project(session, project_id)
            task = await session.get(ProjectTask, tid) if tid else None
            if task is None or task.project_id != project.id:
                return None

            task.status = "completed"
            task.completed_at = utcnow()
            session.add(task)
            return TaskRecord(
                id=str(task.id),
                project_id=str(project.id),
                title=task.title,
                status=task.status,
                completed_at=task.completed_at,
            )

    # --- Helpers ---

    async def _load_project(self, session: AsyncSession, project_id: str) -> Project:
        pid = parse_uuid(project_id)
        project = await session.get(Project, pid) if pid else None
        if project is None:
            raise ProjectNotFound()
        return project

    async def _is_admin(self, session: AsyncSession, user_id: str) -> bool:
        uid = parse_uuid(user_id)
        if uid is None:
            return False
        user = await session.get(User, uid)
        return bool(user and user.is_admin)

    async def _is_active_member(
        self, session: AsyncSession, project_id: uuid.UUID, user_id: str
    ) -> bool:
        uid = parse_uuid(user_id)
        if uid is None:
            return False
        member = await session.get(ProjectMember, (project_id, uid))
        return member is not None and member.status == ACTIVE
