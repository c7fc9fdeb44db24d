# SQLModel definitions, imported here to ensure metadata is populated.
from .base import UUIDMixin, TimestampMixin, parse_uuid, utcnow  # noqa: F401
from .user import User  # noqa: F401
from .project import Project, ProjectMember, ProjectTask  # noqa: F401
from .chat import Chat, ChatMessage  # noqa: F401
from .notification import Notification  # noqa: F401
