"""
State of the mobile live view for one session.

The view starts ``connecting``, moves to ``waiting`` once subscribed, to
``active`` on the first field update, and ends in ``complete`` or ``error``.
Terminal states ignore any further events.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from permit_intake.config.constants import (
    APPLICATION_FIELDS,
    EVENT_FIELD_UPDATE,
    EVENT_SESSION_COMPLETE,
    EVENT_SESSION_ERROR,
)


class LiveViewState(str, Enum):
    CONNECTING = "connecting"
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATES = {LiveViewState.COMPLETE, LiveViewState.ERROR}


@dataclass
class LiveSessionView:
    session_id: str
    state: LiveViewState = LiveViewState.CONNECTING
    form_data: Dict[str, str] = field(default_factory=dict)
    tracking_id: Optional[str] = None
    error: Optional[str] = None
    last_updated_field: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def mark_subscribed(self) -> None:
        if self.state == LiveViewState.CONNECTING:
            self.state = LiveViewState.ACTIVE if self.form_data else LiveViewState.WAITING

    def apply(self, event_name: str, data: Dict[str, Any]) -> bool:
        """
        Merge a relay event into the view.

        Field updates are last-write-wins per field, whoever sent them.

        Returns:
            True if the event changed the view
        """
        if self.terminal:
            return False

        if event_name == EVENT_FIELD_UPDATE:
            name = data.get("field")
            if name not in APPLICATION_FIELDS:
                return False
            self.form_data[name] = data.get("value")
            self.last_updated_field = name
            self.state = LiveViewState.ACTIVE
            return True

        if event_name == EVENT_SESSION_COMPLETE:
            self.tracking_id = data.get("trackingId")
            self.state = LiveViewState.COMPLETE
            return True

        if event_name == EVENT_SESSION_ERROR:
            self.error = data.get("error")
            self.state = LiveViewState.ERROR
            return True

        return False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "state": self.state.value,
            "formData": dict(self.form_data),
            "trackingId": self.tracking_id,
            "error": self.error,
        }
