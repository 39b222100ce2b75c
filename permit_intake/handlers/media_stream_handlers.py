"""
Handles Twilio Media Streams events for one call.

Each handler validates its message and hands it to the call's
``CallOrchestrator``. Handlers return True when the stream should keep
reading and False when it should end.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from permit_intake.bot.call_orchestrator import CallOrchestrator, CallState
from permit_intake.config.constants import LOGGER_NAME
from permit_intake.models.twilio_schemas import StreamMediaMessage, StreamStartMessage, StreamStopMessage

logger = logging.getLogger(LOGGER_NAME)


async def handle_connected(message: Dict[str, Any], orchestrator: CallOrchestrator) -> bool:
    logger.info(f"Media stream connected (protocol {message.get('protocol')})")
    return True


async def handle_stream_start(message: Dict[str, Any], orchestrator: CallOrchestrator) -> bool:
    """
    Bind the call to its session and start the agent.

    Returns:
        False if the voice session could not be started
    """
    try:
        start = StreamStartMessage(**message)
    except ValidationError as e:
        logger.error(f"Invalid start message: {e}")
        return True

    logger.info(f"Media stream started: stream {start.start.streamSid}, call {start.start.callSid}")
    if await orchestrator.bind(start):
        return True
    # A rejected duplicate leaves the first binding running
    return orchestrator.state != CallState.DISCONNECTED


async def handle_media(message: Dict[str, Any], orchestrator: CallOrchestrator) -> bool:
    try:
        media = StreamMediaMessage(**message)
    except ValidationError as e:
        logger.warning(f"Invalid media message: {e}")
        return True

    await orchestrator.handle_media(media.media.payload)
    return True


async def handle_mark(message: Dict[str, Any], orchestrator: CallOrchestrator) -> bool:
    logger.debug(f"Playback mark reached: {message.get('mark', {}).get('name')}")
    return True


async def handle_stream_stop(message: Dict[str, Any], orchestrator: CallOrchestrator) -> bool:
    try:
        StreamStopMessage(**message)
    except ValidationError as e:
        logger.warning(f"Invalid stop message: {e}")

    await orchestrator.handle_stop()
    return False
