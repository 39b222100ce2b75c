import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocket, WebSocketDisconnect

from permit_intake.bot.call_orchestrator import CallState
from permit_intake.config.settings import Settings
from permit_intake.media_stream_manager import MediaStreamManager
from permit_intake.models.active_sessions import ActiveSessionRegistry


def frames(*messages):
    return [json.dumps(m) for m in messages]


START = {
    "event": "start",
    "streamSid": "MZ123",
    "start": {"streamSid": "MZ123", "callSid": "CA123", "customParameters": {"sessionId": "abc"}},
}
MEDIA = {"event": "media", "streamSid": "MZ123", "media": {"payload": "AAAA", "track": "inbound"}}
STOP = {"event": "stop", "streamSid": "MZ123"}


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.state = CallState.SESSION_BOUND
    orchestrator.bind = AsyncMock(return_value=True)
    orchestrator.handle_media = AsyncMock()
    orchestrator.handle_stop = AsyncMock()
    orchestrator.disconnect = AsyncMock()
    return orchestrator


@pytest.fixture
def manager(orchestrator, relay_publisher, session_factory):
    manager = MediaStreamManager(
        registry=ActiveSessionRegistry(),
        relay_publisher=relay_publisher,
        session_factory=session_factory,
        settings_provider=lambda: Settings(),
    )
    manager.create_orchestrator = MagicMock(return_value=orchestrator)
    return manager


def test_manager_initialization(relay_publisher):
    manager = MediaStreamManager(relay_publisher=relay_publisher, settings_provider=lambda: Settings())
    assert set(manager.handlers) == {"connected", "start", "media", "mark", "stop"}
    assert manager.registry.ttl_seconds == 3600
    assert manager.active_calls == 0


@pytest.mark.asyncio
async def test_full_stream_lifecycle(manager, orchestrator):
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = frames({"event": "connected", "protocol": "Call"}, START, MEDIA, STOP)

    await manager.handle_websocket(websocket)

    websocket.accept.assert_awaited_once()
    bound = orchestrator.bind.call_args.args[0]
    assert bound.start.customParameters == {"sessionId": "abc"}
    orchestrator.handle_media.assert_awaited_once_with("AAAA")
    orchestrator.handle_stop.assert_awaited_once()
    orchestrator.disconnect.assert_awaited_once()
    websocket.close.assert_awaited()


@pytest.mark.asyncio
async def test_client_disconnect_tears_down_call(manager, orchestrator):
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = frames(START, MEDIA) + [WebSocketDisconnect()]

    await manager.handle_websocket(websocket)

    orchestrator.disconnect.assert_awaited_once()
    orchestrator.handle_stop.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_start_ends_stream(manager, orchestrator):
    orchestrator.bind.return_value = False
    orchestrator.state = CallState.DISCONNECTED
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = frames(START, MEDIA)

    await manager.handle_websocket(websocket)

    orchestrator.handle_media.assert_not_awaited()
    orchestrator.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_invalid_frames_are_skipped(manager, orchestrator):
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = [
        "not json",
        json.dumps({"event": "dtmf", "dtmf": {"digit": "1"}}),
        json.dumps({"event": "start", "streamSid": "MZ123"}),
        json.dumps(STOP),
    ]

    await manager.handle_websocket(websocket)

    orchestrator.bind.assert_not_awaited()
    orchestrator.handle_stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_error_still_disconnects(manager, orchestrator):
    orchestrator.handle_media.side_effect = RuntimeError("boom")
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = frames(START, MEDIA)

    await manager.handle_websocket(websocket)

    orchestrator.disconnect.assert_awaited_once()


def test_create_orchestrator_uses_shared_registry(relay_publisher, session_factory):
    manager = MediaStreamManager(
        relay_publisher=relay_publisher,
        session_factory=session_factory,
        settings_provider=lambda: Settings(openai_api_key="sk-test"),
    )
    websocket = AsyncMock(spec=WebSocket)

    first = manager.create_orchestrator(websocket)
    second = manager.create_orchestrator(websocket)

    assert first is not second
    assert first.registry is second.registry is manager.registry
    assert first.settings.openai_api_key == "sk-test"
    assert first.state == CallState.AWAITING_STREAM_START
