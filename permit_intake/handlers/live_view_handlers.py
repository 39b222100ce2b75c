"""
Mobile live view WebSocket.

The view subscribes to the session's relay channel, receives a snapshot of
the persisted form data, then one frame per relay event until the session
completes or fails, or the client goes away.
"""

import asyncio
import logging
from typing import Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from sqlalchemy.orm import Session

from permit_intake.config.constants import LOGGER_NAME
from permit_intake.exceptions import StoreError
from permit_intake.models.live_view import LiveSessionView, LiveViewState
from permit_intake.models.relay_events import session_channel_name
from permit_intake.models.schemas import SessionStatus
from permit_intake.services.relay import RelayPublisher
from permit_intake.stores import ApplicationStore, SessionStore

logger = logging.getLogger(LOGGER_NAME)

SESSION_NOT_FOUND_CLOSE_CODE = 4404


def load_view(session_id: str, session_factory: Callable[[], Session]) -> Optional[LiveSessionView]:
    """Build the initial view from the stored session, or None if it does not exist."""
    with session_factory() as db:
        row = SessionStore(db).get_session(session_id)
        if row is None:
            return None

        view = LiveSessionView(session_id=session_id, form_data=dict(row.form_data or {}))
        if row.status == SessionStatus.COMPLETED.value:
            applications = ApplicationStore(db).get_applications_by_session(session_id)
            view.state = LiveViewState.COMPLETE
            view.tracking_id = applications[0].tracking_id if applications else None
        return view


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def handle_live_view(
    websocket: WebSocket,
    session_id: str,
    relay: RelayPublisher,
    session_factory: Callable[[], Session],
) -> None:
    await websocket.accept()

    try:
        view = load_view(session_id, session_factory)
    except StoreError as e:
        logger.error(f"Failed to load session {session_id} for live view: {e}")
        await websocket.send_json({"type": "error", "error": "Failed to load session"})
        await websocket.close(code=1011)
        return

    if view is None:
        logger.info(f"Live view requested for unknown session {session_id}")
        await websocket.send_json({"type": "error", "error": "Session not found"})
        await websocket.close(code=SESSION_NOT_FOUND_CLOSE_CODE)
        return

    channel_name = session_channel_name(session_id)
    queue = relay.hub.subscribe(channel_name)
    view.mark_subscribed()
    receiver = None
    logger.info(f"Live view subscribed to {channel_name}")

    try:
        await websocket.send_json({"type": "state", **view.snapshot()})
        if view.terminal:
            return

        receiver = asyncio.create_task(_wait_for_disconnect(websocket))
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                logger.info(f"Live view client for {session_id} disconnected")
                return

            message = getter.result()
            if view.apply(message["name"], message["data"]):
                await websocket.send_json(
                    {
                        "type": "event",
                        "name": message["name"],
                        "data": message["data"],
                        "state": view.state.value,
                    }
                )
            if view.terminal:
                return
    except WebSocketDisconnect:
        logger.info(f"Live view client for {session_id} disconnected")
    finally:
        relay.hub.unsubscribe(channel_name, queue)
        if receiver is not None and not receiver.done():
            receiver.cancel()
        if websocket.client_state != WebSocketState.DISCONNECTED:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Live view WebSocket already closed: {e}")
