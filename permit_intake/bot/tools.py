"""
Agent instructions, tool schemas and the tool bridge for voice calls.

The agent collects the application conversationally and calls two tools:
``updateField`` whenever the caller confirms a value and
``submitApplication`` once everything has been confirmed. The bridge
validates each call, writes accepted values through to the session store and
publishes them on the session's relay channel so the mobile view follows
along.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from permit_intake.config.constants import APPLICATION_FIELDS, ESTABLISHMENT_TYPES, LOGGER_NAME
from permit_intake.exceptions import ConflictError, NotFoundError, StoreError
from permit_intake.models.active_sessions import ActiveSessionRegistry
from permit_intake.models.schemas import (
    ApplicationPayload,
    SessionStatus,
    SubmissionChannel,
    flatten_validation_errors,
)
from permit_intake.services.relay import RelayPublisher
from permit_intake.stores import ApplicationStore, SessionStore
from permit_intake.validation import validate_field

logger = logging.getLogger(LOGGER_NAME)

ALREADY_SUBMITTED = "The application has already been submitted. No further changes can be made."
SESSION_MISSING = "Error: this call's session no longer exists."

AGENT_INSTRUCTIONS = f"""You are a friendly assistant helping a caller apply for a food establishment permit.

Collect the following information, one item at a time:
1. Establishment name
2. Street address
3. Establishment phone number (10 digits)
4. Establishment email
5. Owner name
6. Owner phone number (10 digits)
7. Owner email
8. Establishment type (one of: {", ".join(ESTABLISHMENT_TYPES)})
9. Planned opening date (today or later, sent as YYYY-MM-DD)

Rules:
- Read each value back to the caller and confirm it before calling updateField.
- Spell out email addresses letter by letter when confirming.
- If updateField reports an error, explain it and ask again.
- The caller may be watching a form on their phone and can correct values there.
- When every field is confirmed, call submitApplication and read the tracking ID back slowly.
- Keep responses short; this is a phone call."""

TOOL_DEFINITIONS = [
    {
        "type": "function",
        "name": "updateField",
        "description": "Record a confirmed value for one field of the permit application.",
        "parameters": {
            "type": "object",
            "properties": {
                "field": {
                    "type": "string",
                    "enum": APPLICATION_FIELDS,
                    "description": "The application field being set",
                },
                "value": {
                    "type": "string",
                    "description": "The value the caller confirmed",
                },
            },
            "required": ["field", "value"],
        },
    },
    {
        "type": "function",
        "name": "submitApplication",
        "description": "Submit the application once every field has been confirmed.",
        "parameters": {
            "type": "object",
            "properties": {
                "trackingId": {
                    "type": "string",
                    "description": "Unused; the tracking ID is assigned on submission",
                },
            },
            "required": [],
        },
    },
]


class VoiceToolBridge:
    """Executes the agent's tool calls for one voice session."""

    def __init__(
        self,
        session_id: str,
        session_factory: Callable[[], Session],
        relay: RelayPublisher,
        registry: Optional[ActiveSessionRegistry] = None,
    ):
        self.session_id = session_id
        self.session_factory = session_factory
        self.relay = relay
        self.registry = registry
        self.tracking_id: Optional[str] = None
        self.tools: Dict[str, Callable[..., Any]] = {
            "updateField": self.update_field,
            "submitApplication": self.submit_application,
        }

    @property
    def completed(self) -> bool:
        return self.tracking_id is not None

    async def dispatch(self, name: str, arguments: Optional[str]) -> str:
        """
        Run a tool call and return its output for the agent.

        Args:
            name: Tool name from the function call event
            arguments: JSON-encoded arguments

        Returns:
            Text the agent reads to decide what to say next
        """
        tool = self.tools.get(name)
        if tool is None:
            logger.warning(f"Agent called unknown tool: {name}")
            return f"Unknown tool: {name}"

        try:
            kwargs = json.loads(arguments) if arguments else {}
        except json.JSONDecodeError:
            logger.warning(f"Invalid arguments for {name}: {arguments!r}")
            return "The tool arguments were not valid JSON. Please try again."
        if not isinstance(kwargs, dict):
            return "The tool arguments must be an object. Please try again."

        logger.info(f"Tool call {name} for session {self.session_id}: {kwargs}")
        return await tool(**kwargs)

    async def update_field(self, field: str = "", value: Any = None, **_: Any) -> str:
        if self.completed:
            return ALREADY_SUBMITTED

        result = validate_field(field, "" if value is None else str(value))
        if not result.is_valid:
            logger.info(f"Rejected {field} for session {self.session_id}: {result.error}")
            return f"Error: {result.error}. Please ask the caller for {field} again."

        try:
            with self.session_factory() as db:
                sessions = SessionStore(db)
                row = sessions.get_session(self.session_id)
                if row is None:
                    return SESSION_MISSING
                if row.status != SessionStatus.ACTIVE.value:
                    logger.warning(f"Refused {field} update for {row.status} session {self.session_id}")
                    return ALREADY_SUBMITTED
                sessions.update_session_field(self.session_id, field, result.normalized_value)
        except StoreError as e:
            logger.error(f"Failed to save {field} for session {self.session_id}: {e}")
            return f"Error: {field} could not be saved. Please try again."

        if self.registry is not None:
            self.registry.set_field(self.session_id, field, result.normalized_value)

        await self.relay.publish_field_update(self.session_id, field, result.normalized_value)
        return f"Updated {field} to {result.normalized_value}."

    async def submit_application(self, trackingId: Optional[str] = None, **_: Any) -> str:
        """
        Create the voice application from the session's confirmed fields.

        A tracking id suggested by the agent is ignored; the store assigns one.
        """
        if self.completed:
            return f"The application was already submitted. The tracking ID is {self.tracking_id}."
        if trackingId:
            logger.debug(f"Ignoring agent-supplied tracking id {trackingId}")

        try:
            with self.session_factory() as db:
                form_data = SessionStore(db).get_form_data(self.session_id)
                if form_data is None:
                    return SESSION_MISSING

                try:
                    payload = ApplicationPayload(**form_data)
                except ValidationError as e:
                    errors = flatten_validation_errors(e)["fieldErrors"]
                    problems = "; ".join(
                        f"{name}: {', '.join(messages)}" for name, messages in errors.items()
                    )
                    logger.info(f"Submission incomplete for session {self.session_id}: {problems}")
                    return f"The application cannot be submitted yet. {problems}"

                application = ApplicationStore(db).complete_session(
                    self.session_id,
                    payload,
                    channel=SubmissionChannel.VOICE,
                    raw_data={"sessionId": self.session_id, "formData": form_data},
                )
        except NotFoundError:
            return SESSION_MISSING
        except ConflictError as e:
            logger.warning(f"Refused voice submission for session {self.session_id}: {e.message}")
            return ALREADY_SUBMITTED
        except StoreError as e:
            logger.error(f"Failed to submit application for session {self.session_id}: {e}")
            await self.relay.publish_session_error(
                self.session_id, "The application could not be submitted"
            )
            return "Error: the application could not be submitted. Please apologize to the caller."

        self.tracking_id = application.tracking_id
        await self.relay.publish_session_complete(self.session_id, self.tracking_id)
        if self.registry is not None:
            self.registry.remove_session(self.session_id)
        return (
            f"Application submitted successfully. The tracking ID is {self.tracking_id}. "
            "Read it back to the caller."
        )
