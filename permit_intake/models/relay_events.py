"""
Pydantic models for the events published on a session's relay channel.

Three kinds of event travel on ``session:<id>``:
- field-update: a field was collected by the voice agent or corrected by hand
- session-complete: an application record exists; carries its tracking id
- session-error: the session cannot continue

Events are fire-and-forget; timestamps are epoch milliseconds.
"""

import time
from typing import Optional

from pydantic import BaseModel, Field

from permit_intake.config.constants import SESSION_CHANNEL_PREFIX


def now_ms() -> int:
    return int(time.time() * 1000)


class RelayEvent(BaseModel):
    """Base model for relay payloads."""

    timestamp: int = Field(default_factory=now_ms, description="Epoch milliseconds")


class FieldUpdateEvent(RelayEvent):
    field: str
    value: str
    source: Optional[str] = Field(
        None, description="'manual' for edits from the mobile view, unset for voice"
    )


class SessionCompleteEvent(RelayEvent):
    trackingId: str


class SessionErrorEvent(RelayEvent):
    error: str


def session_channel_name(session_id: str) -> str:
    """Relay channel for a session."""
    return f"{SESSION_CHANNEL_PREFIX}{session_id}"

