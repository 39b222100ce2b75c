"""
Registry of voice sessions with a call currently in progress.

The registry is owned by the media stream manager and holds only ephemeral
per-call state: the relay channel name, the call SID and a cached copy of the
form data. Durable form data lives in the session store. Entries leave the
registry when the call completes or disconnects, or when they have been idle
longer than the TTL.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class ActiveSession:
    session_id: str
    channel_name: str
    call_sid: Optional[str] = None
    form_data: Dict[str, str] = field(default_factory=dict)
    last_touched: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_touched = time.monotonic()


class ActiveSessionRegistry:
    """
    Tracks sessions bound to a live call, keyed by session id.

    This class provides methods to add, retrieve, update and remove active
    sessions during the call lifecycle, and to evict entries whose call
    never reported a disconnect.
    """

    def __init__(self, ttl_seconds: float = 3600):
        """Initialize an empty registry with the given idle TTL."""
        self.ttl_seconds = ttl_seconds
        self.active_sessions: Dict[str, ActiveSession] = {}

    def add_session(
        self,
        session_id: str,
        channel_name: str,
        call_sid: Optional[str] = None,
        form_data: Optional[Dict[str, str]] = None,
    ) -> ActiveSession:
        """
        Add a session to the registry, replacing any stale entry for the same id.

        Args:
            session_id: Session bound to the call
            channel_name: Relay channel for the session
            call_sid: Twilio call SID, if known
            form_data: Field values already collected for the session
        """
        self.evict_expired()
        entry = ActiveSession(
            session_id=session_id,
            channel_name=channel_name,
            call_sid=call_sid,
            form_data=dict(form_data or {}),
        )
        self.active_sessions[session_id] = entry
        return entry

    def get_session(self, session_id: str) -> Optional[ActiveSession]:
        return self.active_sessions.get(session_id)

    def set_field(self, session_id: str, field_name: str, value: str) -> bool:
        """Record a field value for an active session; False if it is not registered."""
        entry = self.active_sessions.get(session_id)
        if entry is None:
            return False
        entry.form_data[field_name] = value
        entry.touch()
        return True

    def remove_session(self, session_id: str) -> None:
        self.active_sessions.pop(session_id, None)

    def evict_expired(self, now: Optional[float] = None) -> int:
        """
        Drop entries idle for longer than the TTL.

        Returns:
            Number of entries evicted
        """
        now = time.monotonic() if now is None else now
        expired = [
            session_id
            for session_id, entry in self.active_sessions.items()
            if now - entry.last_touched > self.ttl_seconds
        ]
        for session_id in expired:
            del self.active_sessions[session_id]
        return len(expired)

    def get_all_sessions(self) -> Dict[str, ActiveSession]:
        return self.active_sessions
