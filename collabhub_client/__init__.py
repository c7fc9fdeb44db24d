"""
CollabHub realtime client.

Keeps a WebSocket connection to the CollabHub server alive across
transport failures and dispatches inbound events to registered handlers.
"""

__version__ = "0.1.0"

from .config import ClientConfig, ReconnectConfig, load_config
from .connection import AuthenticationError, RealtimeClient, ReconnectExhausted

__all__ = [
    "AuthenticationError",
    "ClientConfig",
    "RealtimeClient",
    "ReconnectConfig",
    "ReconnectExhausted",
    "load_config",
]
