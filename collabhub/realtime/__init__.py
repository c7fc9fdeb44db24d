"""
Realtime presence, project rooms and chat relay.

- SessionRegistry: which users are connected and through which channel
- RoomMembershipIndex: which users are subscribed to each project room
- PresenceCoordinator: online/offline and room join/leave side effects
- MessageRelay: persist, fan out and notify for chat and project events
- RealtimeHub: wiring plus per-connection command dispatch
"""

from .hub import RealtimeHub
from .presence import PresenceCoordinator
from .registry import Session, SessionRegistry
from .relay import MessageRelay, RelayResult
from .rooms import RoomMembershipIndex

__all__ = [
    "MessageRelay",
    "PresenceCoordinator",
    "RealtimeHub",
    "RelayResult",
    "RoomMembershipIndex",
    "Session",
    "SessionRegistry",
]
