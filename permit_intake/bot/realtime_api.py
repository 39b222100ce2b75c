import asyncio
import json
import logging
import time
import traceback
from typing import Any, AsyncIterator, Dict, List

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from permit_intake.config.constants import LOGGER_NAME, REALTIME_AUDIO_FORMAT

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio deltas
WS_PING_INTERVAL = 5  # seconds between pings


class RealtimeAgentClient:
    """
    Client for one OpenAI Realtime API conversation over WebSocket.

    The client configures the session with the agent's instructions and
    tools, forwards caller audio, and exposes the server events as an async
    iterator. A dropped connection is not re-established; the call ends.
    """

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self.ws = None
        self._connection_active = False
        self._is_closing = False
        logger.info(f"RealtimeAgentClient initialized with model: {model}")

    @property
    def connected(self) -> bool:
        return self._connection_active and self.ws is not None

    async def connect(self) -> bool:
        """
        Connect to the OpenAI Realtime WebSocket endpoint.

        Returns:
            bool: True if connection was successful, False otherwise
        """
        if self._is_closing:
            logger.warning("Cannot connect - client is closing")
            return False

        url = f"wss://api.openai.com/v1/realtime?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
            logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")
            self._connection_active = True
            logger.info("Successfully connected to OpenAI Realtime API")
            return True
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)")
            self._connection_active = False
            return False
        except Exception as e:
            logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
            logger.debug(f"Connection error details: {traceback.format_exc()}")
            self._connection_active = False
            return False

    async def send_event(self, event: Dict[str, Any]) -> bool:
        """
        Send a client event as JSON.

        Returns:
            bool: True if the event was sent, False otherwise
        """
        if not self.connected:
            logger.warning(f"Cannot send {event.get('type')} - connection not active")
            return False

        try:
            await asyncio.wait_for(self.ws.send(json.dumps(event)), timeout=SEND_TIMEOUT)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timeout while sending {event.get('type')}")
            return False
        except ConnectionClosed as e:
            logger.warning(f"Connection closed while sending {event.get('type')}: {e}")
            self._connection_active = False
            return False

    async def configure_session(
        self, instructions: str, tools: List[Dict[str, Any]], voice: str
    ) -> bool:
        """Set instructions, tools, voice and the telephony audio format."""
        return await self.send_event(
            {
                "type": "session.update",
                "session": {
                    "turn_detection": {"type": "server_vad"},
                    "input_audio_format": REALTIME_AUDIO_FORMAT,
                    "output_audio_format": REALTIME_AUDIO_FORMAT,
                    "voice": voice,
                    "instructions": instructions,
                    "modalities": ["text", "audio"],
                    "tools": tools,
                    "tool_choice": "auto",
                },
            }
        )

    async def send_audio(self, audio_b64: str) -> bool:
        """Append base64 caller audio to the input buffer."""
        return await self.send_event({"type": "input_audio_buffer.append", "audio": audio_b64})

    async def request_response(self) -> bool:
        return await self.send_event({"type": "response.create"})

    async def send_tool_result(self, call_id: str, output: str) -> bool:
        """Return a tool call's output to the model and let it continue speaking."""
        sent = await self.send_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "function_call_output",
                    "call_id": call_id,
                    "output": output,
                },
            }
        )
        if not sent:
            return False
        return await self.request_response()

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield server events until the connection closes.

        Non-JSON frames are logged and skipped.
        """
        if self.ws is None:
            logger.error("WebSocket not initialized for event stream")
            return

        try:
            async for message in self.ws:
                try:
                    yield json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON: {str(message)[:100]}...")
        except ConnectionClosedOK:
            logger.info("WebSocket connection closed normally")
        except ConnectionClosed as e:
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")
        finally:
            self._connection_active = False

    async def close(self) -> None:
        """Close the WebSocket connection."""
        logger.info("Closing OpenAI Realtime client")
        self._is_closing = True
        self._connection_active = False
        if self.ws:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing OpenAI WebSocket: {e}")
            self.ws = None
