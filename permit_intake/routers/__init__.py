"""
HTTP API routers.
"""

from permit_intake.routers import ably, applications, auth, sessions, voice

__all__ = ["ably", "applications", "auth", "sessions", "voice"]
