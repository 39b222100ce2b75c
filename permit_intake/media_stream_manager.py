"""
WebSocket connection manager for Twilio Media Streams.

Accepts the telephony WebSocket opened by ``<Connect><Stream>``, routes each
stream event to its handler and guarantees the call is torn down when the
stream ends, whatever the reason.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from permit_intake.bot.call_orchestrator import CallOrchestrator
from permit_intake.bot.realtime_api import RealtimeAgentClient
from permit_intake.config.constants import (
    LOGGER_NAME,
    STREAM_EVENT_CONNECTED,
    STREAM_EVENT_MARK,
    STREAM_EVENT_MEDIA,
    STREAM_EVENT_START,
    STREAM_EVENT_STOP,
)
from permit_intake.config.settings import Settings, get_settings
from permit_intake.database import SessionLocal
from permit_intake.handlers.media_stream_handlers import (
    handle_connected,
    handle_mark,
    handle_media,
    handle_stream_start,
    handle_stream_stop,
)
from permit_intake.models.active_sessions import ActiveSessionRegistry
from permit_intake.services.relay import RelayPublisher, relay
from permit_intake.services.telephony import TwilioService

logger = logging.getLogger(LOGGER_NAME)

HandlerFunc = Callable[[Dict[str, Any], CallOrchestrator], Awaitable[bool]]


class MediaStreamManager:
    """Manages telephony WebSocket connections and routes stream events to handlers.

    One ``CallOrchestrator`` is created per connection; the active session
    registry is shared by all calls.
    """

    def __init__(
        self,
        registry: Optional[ActiveSessionRegistry] = None,
        relay_publisher: Optional[RelayPublisher] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        settings_provider: Callable[[], Settings] = get_settings,
        client_factory: Callable[[str, str], RealtimeAgentClient] = RealtimeAgentClient,
    ):
        self.settings_provider = settings_provider
        self.registry = registry or ActiveSessionRegistry(settings_provider().session_ttl_seconds)
        self.relay = relay_publisher or relay
        self.session_factory = session_factory
        self.client_factory = client_factory

        self.handlers: Dict[str, HandlerFunc] = {
            STREAM_EVENT_CONNECTED: handle_connected,
            STREAM_EVENT_START: handle_stream_start,
            STREAM_EVENT_MEDIA: handle_media,
            STREAM_EVENT_MARK: handle_mark,
            STREAM_EVENT_STOP: handle_stream_stop,
        }

    def create_orchestrator(self, websocket: WebSocket) -> CallOrchestrator:
        settings = self.settings_provider()
        return CallOrchestrator(
            websocket,
            registry=self.registry,
            relay=self.relay,
            session_factory=self.session_factory,
            settings=settings,
            twilio=TwilioService(settings),
            client_factory=self.client_factory,
        )

    async def handle_websocket(self, websocket: WebSocket):
        """Handle a media stream connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        The loop ends on a ``stop`` event, on client disconnect or when the
        voice session fails to start; the orchestrator is always torn down.
        """
        await websocket.accept()
        logger.info("Media stream WebSocket connection established")
        orchestrator = self.create_orchestrator(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON on media stream: {data[:100]}")
                    continue

                event = message.get("event")

                # Fast path for audio frames
                if event == STREAM_EVENT_MEDIA:
                    await handle_media(message, orchestrator)
                    continue

                logger.info(f"Received media stream event: {event}")
                handler = self.handlers.get(event)
                if handler is None:
                    logger.warning(f"Unhandled media stream event: {event}")
                    continue

                if not await handler(message, orchestrator):
                    break

        except WebSocketDisconnect:
            logger.info("Media stream disconnected by client")
        except Exception as e:
            logger.error(f"Error in media stream connection: {e}", exc_info=True)
        finally:
            await orchestrator.disconnect()
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Media stream WebSocket already closed: {e}")
            logger.info("Media stream WebSocket connection closed")

    @property
    def active_calls(self) -> int:
        return len(self.registry.get_all_sessions())
