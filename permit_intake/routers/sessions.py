"""
Session API

POST /api/session                 - Create a session for voice + mobile sync
GET  /api/session/{id}            - Session with the form data collected so far
POST /api/session/{id}/update     - Manual correction of one field from the mobile view
POST /api/session/{id}/complete   - Finalize the session into an application
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from permit_intake.config.constants import LOGGER_NAME, SOURCE_MANUAL
from permit_intake.database import get_db
from permit_intake.exceptions import ConflictError, NotFoundError, StoreError
from permit_intake.models.schemas import (
    ApplicationPayload,
    ApplicationRecord,
    CreateSessionRequest,
    FieldUpdateRequest,
    SessionRecord,
    SessionStatus,
    SubmissionChannel,
)
from permit_intake.routers.errors import field_error_response
from permit_intake.services.relay import RelayPublisher, get_relay
from permit_intake.stores import ApplicationStore, SessionStore
from permit_intake.validation import validate_field

logger = logging.getLogger(LOGGER_NAME)

router = APIRouter(prefix="/api/session", tags=["Sessions"])


def _get_active_session(store: SessionStore, session_id: str):
    row = store.get_session(session_id)
    if row is None:
        raise NotFoundError("Session not found")
    if row.status != SessionStatus.ACTIVE.value:
        raise ConflictError(f"Session is {row.status}")
    return row


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(request: CreateSessionRequest, db: Session = Depends(get_db)):
    row = SessionStore(db).create_session(phone_number=request.phoneNumber)
    return {
        "success": True,
        "session": {
            "id": row.id,
            "channelName": row.channel_name,
            "status": row.status,
            "createdAt": row.created_at,
        },
    }


@router.get("/{session_id}")
async def get_session(session_id: str, db: Session = Depends(get_db)):
    row = SessionStore(db).get_session(session_id)
    if row is None:
        raise NotFoundError("Session not found")
    return {"success": True, "session": SessionRecord.from_db(row)}


@router.post("/{session_id}/update")
async def update_session_field(
    session_id: str,
    request: FieldUpdateRequest,
    db: Session = Depends(get_db),
    relay: RelayPublisher = Depends(get_relay),
):
    """
    Validate and save one field, then broadcast it tagged as a manual edit.

    The relay publish is best-effort; the saved value is authoritative.
    """
    store = SessionStore(db)
    _get_active_session(store, session_id)

    result = validate_field(request.field, request.value)
    if not result.is_valid:
        return field_error_response(request.field, result.error)

    store.update_session_field(session_id, request.field, result.normalized_value)
    await relay.publish_field_update(
        session_id, request.field, result.normalized_value, source=SOURCE_MANUAL
    )
    logger.info(f"Session {session_id}: updated {request.field} (manual)")

    return {"success": True, "field": request.field, "value": result.normalized_value}


@router.post("/{session_id}/complete")
async def complete_session(
    session_id: str,
    payload: ApplicationPayload,
    db: Session = Depends(get_db),
    relay: RelayPublisher = Depends(get_relay),
):
    _get_active_session(SessionStore(db), session_id)

    try:
        application = ApplicationStore(db).complete_session(
            session_id, payload, channel=SubmissionChannel.VOICE_MOBILE
        )
    except StoreError:
        await relay.publish_session_error(session_id, "Failed to complete application")
        raise

    await relay.publish_session_complete(session_id, application.tracking_id)
    logger.info(f"Session {session_id} completed. Tracking ID: {application.tracking_id}")

    return {
        "success": True,
        "trackingId": application.tracking_id,
        "application": ApplicationRecord.from_db(application),
    }

