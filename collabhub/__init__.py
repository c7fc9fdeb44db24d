"""
CollabHub realtime server.

Presence, project rooms and chat relay for student project teams.
"""

__version__ = "0.1.0"
