"""
Realtime error taxonomy.

Every error carries a stable wire ``code``; the connection dispatcher turns
them into ``error`` frames for the originating connection only.
"""

from __future__ import annotations


class RealtimeError(Exception):
    """Base class for recoverable realtime failures."""

    code = "REALTIME_ERROR"
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessDenied(RealtimeError):
    code = "ACCESS_DENIED"
    default_message = "Access denied to project"


class ProjectNotFound(RealtimeError):
    code = "PROJECT_NOT_FOUND"
    default_message = "Project not found"


class TaskNotFound(RealtimeError):
    code = "TASK_NOT_FOUND"
    default_message = "Task not found"


class PersistenceFailed(RealtimeError):
    code = "PERSISTENCE_FAILED"
    default_message = "Failed to send message"


class InvalidFrame(RealtimeError):
    code = "INVALID_FRAME"
    default_message = "Could not parse frame"


class SessionSuperseded(RealtimeError):
    code = "SESSION_SUPERSEDED"
    default_message = "Connection replaced by a newer session"
