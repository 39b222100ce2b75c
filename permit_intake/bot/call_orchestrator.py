"""
Per-call orchestration between a Twilio media stream and the voice agent.

One ``CallOrchestrator`` exists per telephony WebSocket. It binds the call to
a session on the first stream start, opens the agent conversation, forwards
caller audio to the agent and agent audio back to Twilio, and executes the
agent's tool calls through ``VoiceToolBridge``.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Callable, Dict, Optional, Set

from fastapi import WebSocket
from sqlalchemy.orm import Session

from permit_intake.bot.realtime_api import RealtimeAgentClient
from permit_intake.bot.tools import AGENT_INSTRUCTIONS, TOOL_DEFINITIONS, VoiceToolBridge
from permit_intake.config.constants import LOGGER_NAME, STREAM_PARAM_SESSION_ID
from permit_intake.config.settings import Settings
from permit_intake.models.active_sessions import ActiveSessionRegistry
from permit_intake.models.relay_events import session_channel_name
from permit_intake.models.schemas import SessionStatus
from permit_intake.models.twilio_schemas import ClearMessage, OutboundMediaMessage, StreamStartMessage
from permit_intake.services.relay import RelayPublisher
from permit_intake.services.telephony import TwilioService
from permit_intake.stores import SessionStore

logger = logging.getLogger(LOGGER_NAME)

SESSION_START_ERROR = "The voice session could not be started"
SESSION_LOST_ERROR = "The call was disconnected"


class CallState(str, Enum):
    AWAITING_STREAM_START = "awaiting_stream_start"
    SESSION_BOUND = "session_bound"
    ACTIVE = "active"
    COMPLETED = "completed"
    DISCONNECTED = "disconnected"


ALLOWED_TRANSITIONS: Dict[CallState, Set[CallState]] = {
    CallState.AWAITING_STREAM_START: {CallState.SESSION_BOUND, CallState.DISCONNECTED},
    CallState.SESSION_BOUND: {CallState.ACTIVE, CallState.COMPLETED, CallState.DISCONNECTED},
    CallState.ACTIVE: {CallState.COMPLETED, CallState.DISCONNECTED},
    CallState.COMPLETED: set(),
    CallState.DISCONNECTED: set(),
}


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
        return True
    except (TypeError, ValueError):
        return False


class CallOrchestrator:
    """
    Drives one call through its lifecycle.

    States move forward only:
    AWAITING_STREAM_START -> SESSION_BOUND -> ACTIVE -> COMPLETED | DISCONNECTED.
    Any state before COMPLETED may also drop straight to DISCONNECTED.
    """

    def __init__(
        self,
        websocket: WebSocket,
        registry: ActiveSessionRegistry,
        relay: RelayPublisher,
        session_factory: Callable[[], Session],
        settings: Settings,
        twilio: TwilioService,
        client_factory: Callable[[str, str], RealtimeAgentClient] = RealtimeAgentClient,
    ):
        self.websocket = websocket
        self.registry = registry
        self.relay = relay
        self.session_factory = session_factory
        self.settings = settings
        self.twilio = twilio
        self.client_factory = client_factory

        self.state = CallState.AWAITING_STREAM_START
        self.session_id: Optional[str] = None
        self.stream_sid: Optional[str] = None
        self.call_sid: Optional[str] = None
        self.client: Optional[RealtimeAgentClient] = None
        self.tools: Optional[VoiceToolBridge] = None
        self._response_task: Optional[asyncio.Task] = None
        self._torn_down = False

    def _transition(self, new_state: CallState) -> bool:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            logger.warning(f"Ignoring transition {self.state.value} -> {new_state.value}")
            return False
        logger.info(f"Call {self.call_sid or '-'}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        return True

    def _resolve_session(self, requested_id: Optional[str]) -> Dict[str, str]:
        """
        Bind to the requested session, creating it when it does not exist yet.

        A session that is no longer active is never reopened; the call gets a
        fresh session for the same phone number instead.

        Returns:
            Form data already collected for the session
        """
        with self.session_factory() as db:
            store = SessionStore(db)
            row = store.get_session(requested_id) if requested_id and _is_uuid(requested_id) else None
            if row is not None and row.status != SessionStatus.ACTIVE.value:
                logger.warning(f"Session {row.id} is {row.status}; starting a new session for call {self.call_sid}")
                row = store.create_session(phone_number=row.phone_number)
            elif row is None:
                new_id = requested_id if requested_id and _is_uuid(requested_id) else None
                row = store.create_session(session_id=new_id)
                logger.info(f"Created session {row.id} for call {self.call_sid}")
            self.session_id = row.id
            return dict(row.form_data or {})

    async def bind(self, message: StreamStartMessage) -> bool:
        """
        Bind the call to its session and start the agent conversation.

        Only the first stream start is honored; later ones are ignored.

        Returns:
            True if the agent conversation started
        """
        if self.state != CallState.AWAITING_STREAM_START:
            logger.warning(f"Duplicate stream start for call {self.call_sid} ignored")
            return False

        self.stream_sid = message.streamSid or message.start.streamSid
        self.call_sid = message.start.callSid
        self._transition(CallState.SESSION_BOUND)

        try:
            form_data = self._resolve_session(message.start.customParameters.get(STREAM_PARAM_SESSION_ID))
            entry = self.registry.add_session(
                self.session_id,
                channel_name=session_channel_name(self.session_id),
                call_sid=self.call_sid,
                form_data=form_data,
            )
            self.tools = VoiceToolBridge(self.session_id, self.session_factory, self.relay, self.registry)

            if not self.settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY environment variable not set")

            client = self.client_factory(self.settings.openai_api_key, self.settings.openai_realtime_model)
            self.client = client
            if not await client.connect():
                raise ConnectionError("Failed to connect to OpenAI Realtime API")

            await client.configure_session(AGENT_INSTRUCTIONS, TOOL_DEFINITIONS, self.settings.openai_realtime_voice)
            await client.request_response()

            self._response_task = asyncio.create_task(self._handle_agent_events())
            logger.info(f"Call {self.call_sid} bound to session {self.session_id} ({entry.channel_name})")
            return True
        except Exception as e:
            logger.error(f"Failed to start voice session for call {self.call_sid}: {e}", exc_info=True)
            await self._fail_initialization()
            return False

    async def _fail_initialization(self) -> None:
        self._transition(CallState.DISCONNECTED)
        if self.session_id:
            await self.relay.publish_session_error(self.session_id, SESSION_START_ERROR)
        await self.twilio.hangup_with_apology(self.call_sid)
        await self._teardown(cancel_task=True)
        await self._close_stream()

    async def _close_stream(self) -> None:
        try:
            await self.websocket.close()
        except Exception as e:
            logger.debug(f"Media stream already closed: {e}")

    async def handle_media(self, payload: str) -> None:
        """Forward a caller audio frame to the agent."""
        if self.state not in (CallState.SESSION_BOUND, CallState.ACTIVE) or self.client is None:
            return
        await self.client.send_audio(payload)

    async def handle_stop(self) -> None:
        logger.info(f"Media stream stopped for call {self.call_sid}")
        await self.disconnect()

    async def _send_to_twilio(self, message) -> None:
        await self.websocket.send_text(message.model_dump_json())

    async def _handle_agent_events(self) -> None:
        """Pump agent events to Twilio until the agent connection ends."""
        try:
            async for event in self.client.events():
                event_type = event.get("type")

                if event_type == "response.audio.delta":
                    delta = event.get("delta")
                    if delta and self.stream_sid:
                        await self._send_to_twilio(OutboundMediaMessage.from_delta(self.stream_sid, delta))

                elif event_type == "input_audio_buffer.speech_started":
                    # Caller barged in; drop audio Twilio has buffered
                    if self.stream_sid:
                        await self._send_to_twilio(ClearMessage(streamSid=self.stream_sid))

                elif event_type == "response.function_call_arguments.done":
                    await self._handle_tool_call(event)

                elif event_type == "error":
                    logger.error(f"Agent error for call {self.call_sid}: {event.get('error')}")

                else:
                    logger.debug(f"Unhandled agent event: {event_type}")
        except asyncio.CancelledError:
            logger.debug(f"Agent event pump cancelled for call {self.call_sid}")
            return
        except Exception as e:
            logger.error(f"Error handling agent events for call {self.call_sid}: {e}", exc_info=True)

        if self.state in (CallState.SESSION_BOUND, CallState.ACTIVE):
            logger.warning(f"Agent connection ended mid-call for call {self.call_sid}")
            self._transition(CallState.DISCONNECTED)
            await self._teardown(cancel_task=False)
            await self._close_stream()

    async def _handle_tool_call(self, event: Dict) -> None:
        if self.state == CallState.SESSION_BOUND:
            self._transition(CallState.ACTIVE)

        name = event.get("name", "")
        output = await self.tools.dispatch(name, event.get("arguments"))
        await self.client.send_tool_result(event.get("call_id", ""), output)

        if self.tools.completed and self.state != CallState.COMPLETED:
            self._transition(CallState.COMPLETED)

    async def disconnect(self) -> None:
        """
        Tear down the call.

        Collected fields stay in the session store and the session status is
        left unchanged, so the caller can resume from the mobile view.
        """
        if self.state not in (CallState.COMPLETED, CallState.DISCONNECTED):
            self._transition(CallState.DISCONNECTED)
        await self._teardown(cancel_task=True)

    async def _teardown(self, cancel_task: bool) -> None:
        if self._torn_down:
            return
        self._torn_down = True

        task = self._response_task
        if cancel_task and task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self.client is not None:
            await self.client.close()

        if self.session_id:
            self.registry.remove_session(self.session_id)
        logger.info(f"Call {self.call_sid} torn down in state {self.state.value}")
