"""
FastAPI server for the food establishment permit intake service.

One process serves the web form API, the admin listing, the mobile live view
WebSocket and the Twilio voice gateway: the inbound-call webhook answers with
TwiML that opens a media stream back to ``/media-stream`` on this same
server, where each call is bridged to the voice agent.
"""

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Depends, FastAPI, WebSocket
from sqlalchemy.orm import Session

from permit_intake.config.logging_config import configure_logging
from permit_intake.config.settings import get_settings
from permit_intake.database import get_session_factory, init_db
from permit_intake.handlers.live_view_handlers import handle_live_view
from permit_intake.media_stream_manager import MediaStreamManager
from permit_intake.routers import ably, applications, auth, sessions, voice
from permit_intake.routers.errors import register_exception_handlers
from permit_intake.services.relay import RelayPublisher, get_relay, relay

# Configure logging
logger = configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database initialized")
    yield
    await relay.close()


# Create FastAPI application
app = FastAPI(
    title="Food Permit Intake",
    description="Food establishment permit applications by web form, voice call and mobile live view",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(sessions.router)
app.include_router(applications.router)
app.include_router(ably.router)
app.include_router(voice.router)
app.include_router(auth.router)

# Create media stream manager
media_stream_manager = MediaStreamManager()


@app.websocket("/media-stream")
async def media_stream_endpoint(websocket: WebSocket):
    """WebSocket endpoint for Twilio Media Streams.

    Twilio connects here after ``/api/voice/incoming`` answers a call. The
    stream's ``start`` event carries the session id as a custom parameter;
    audio then flows both ways until ``stop`` or disconnect.
    """
    await media_stream_manager.handle_websocket(websocket)


@app.websocket("/ws/session/{session_id}")
async def live_view_endpoint(
    websocket: WebSocket,
    session_id: str,
    relay_publisher: RelayPublisher = Depends(get_relay),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """WebSocket endpoint for the mobile live view of one session."""
    await handle_live_view(websocket, session_id, relay_publisher, session_factory)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Which integrations are configured and how many calls are in progress.
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(settings.openai_api_key),
        "twilio_configured": settings.twilio_configured,
        "ably_api_key_configured": bool(settings.ably_api_key),
        "braintrust_api_key_configured": bool(settings.braintrust_api_key),
        "active_calls": media_stream_manager.active_calls,
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "Food Permit Intake",
        "description": "Food establishment permit applications by web form, voice call and mobile live view",
        "version": "1.0.0",
        "endpoints": {
            "/api/session": "Create and update voice/mobile sessions",
            "/api/applications": "Create, list and fetch applications",
            "/api/applications/submit": "External system submissions",
            "/api/ably/token": "Scoped relay token for the mobile view",
            "/api/voice/start": "Start a voice session and text the caller",
            "/api/voice/incoming": "Twilio inbound call webhook",
            "/api/auth/check-password": "Page password check",
            "/media-stream": "WebSocket endpoint for Twilio Media Streams",
            "/ws/session/{id}": "WebSocket endpoint for the mobile live view",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        websocket_ping_interval=5,
        websocket_max_size=16777216,  # 16MB - large enough for audio frames
        websocket_ping_timeout=20,
        http="h11",
    )
