"""
Voice API

POST /api/voice/start     - Create a session and text the caller the session link
POST /api/voice/incoming  - Twilio webhook for inbound calls; answers with TwiML
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, Response, status
from sqlalchemy.orm import Session
from twilio.base.exceptions import TwilioRestException

from permit_intake.config.constants import LOGGER_NAME
from permit_intake.config.settings import get_settings
from permit_intake.database import get_db
from permit_intake.models.db_models import SessionDB
from permit_intake.models.schemas import SessionStatus, StartVoiceRequest
from permit_intake.routers.errors import error_response
from permit_intake.services.telephony import (
    TwilioService,
    build_error_twiml,
    build_session_sms,
    build_stream_twiml,
    get_twilio_service,
    to_e164,
)
from permit_intake.stores import SessionStore

logger = logging.getLogger(LOGGER_NAME)

router = APIRouter(prefix="/api/voice", tags=["Voice"])

MEDIA_STREAM_PATH = "/media-stream"
DEFAULT_CALLBACK_NUMBER = "(509) 555-1234"
TWIML_MEDIA_TYPE = "application/xml"


def resolve_call_session(store: SessionStore, session_id: Optional[str], caller: Optional[str]) -> SessionDB:
    """
    Pick the session an inbound call belongs to.

    An explicit active session id wins, then the caller's most recent
    active session; otherwise a new session is created for the caller.
    """
    if session_id and session_id != "new":
        row = store.get_session(session_id)
        if row is not None and row.status == SessionStatus.ACTIVE.value:
            return row
        if row is None:
            logger.warning(f"Incoming call referenced unknown session {session_id}")
        else:
            logger.warning(f"Incoming call referenced {row.status} session {session_id}")

    phone = (to_e164(caller) or caller) if caller else None
    if phone:
        row = store.get_session_by_phone(phone, status=SessionStatus.ACTIVE)
        if row is not None:
            logger.info(f"Matched call from {phone} to session {row.id}")
            return row

    return store.create_session(phone_number=phone)


def media_stream_url(request: Request) -> str:
    base_url = get_settings().public_base_url
    if base_url:
        base_url = base_url.rstrip("/")
        if base_url.startswith("https://"):
            return "wss://" + base_url[len("https://"):] + MEDIA_STREAM_PATH
        if base_url.startswith("http://"):
            return "ws://" + base_url[len("http://"):] + MEDIA_STREAM_PATH
        return base_url + MEDIA_STREAM_PATH

    host = request.headers.get("host", "localhost:8000")
    scheme = "ws" if "localhost" in host or host.startswith("127.") else "wss"
    return f"{scheme}://{host}{MEDIA_STREAM_PATH}"


def _twiml(body, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(content=str(body), status_code=status_code, media_type=TWIML_MEDIA_TYPE)


@router.post("/start")
async def start_voice_session(
    request: Request,
    body: StartVoiceRequest,
    db: Session = Depends(get_db),
    twilio: TwilioService = Depends(get_twilio_service),
):
    """
    Create a session for a caller and text them the live view link.

    SMS failures are logged only; the session is still usable by calling in.
    """
    if not body.phoneNumber:
        return error_response(status.HTTP_400_BAD_REQUEST, "Phone number is required")

    phone = to_e164(body.phoneNumber)
    if phone is None:
        return error_response(
            status.HTTP_400_BAD_REQUEST, "Please provide a valid 10-digit US phone number"
        )

    row = SessionStore(db).create_session(phone_number=phone)

    settings = get_settings()
    base_url = (
        settings.public_base_url
        or request.headers.get("origin")
        or str(request.base_url)
    ).rstrip("/")
    session_url = f"{base_url}/session/{row.id}"
    message = build_session_sms(session_url, settings.twilio_phone_number or DEFAULT_CALLBACK_NUMBER)

    try:
        await twilio.send_sms(phone, message)
        logger.info(f"SMS sent to {phone} for session {row.id}")
    except TwilioRestException as e:
        logger.error(f"Failed to send SMS to {phone}: {e}")

    return {"success": True, "sessionId": row.id, "channelName": row.channel_name}


@router.post("/incoming")
async def incoming_call(
    request: Request,
    sessionId: Optional[str] = None,
    From: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    try:
        row = resolve_call_session(SessionStore(db), sessionId, From)
        stream_url = media_stream_url(request)
        logger.info(f"Incoming call from {From}: session {row.id}, stream {stream_url}")
        return _twiml(build_stream_twiml(stream_url, row.id))
    except Exception as e:
        logger.error(f"Error handling incoming call: {e}", exc_info=True)
        return _twiml(build_error_twiml(), status.HTTP_500_INTERNAL_SERVER_ERROR)
