"""
Relay token API

POST /api/ably/token - Issue a token scoped to one session's channel

The token only allows subscribe and presence on ``session:<id>``, so the
mobile view never holds the provider's API key or publish rights.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from permit_intake.config.constants import LOGGER_NAME
from permit_intake.database import get_db
from permit_intake.exceptions import NotFoundError
from permit_intake.models.schemas import TokenRequestBody
from permit_intake.services.tokens import TokenIssuer, get_token_issuer
from permit_intake.stores import SessionStore

logger = logging.getLogger(LOGGER_NAME)

router = APIRouter(prefix="/api/ably", tags=["Relay"])


@router.post("/token")
async def create_token(
    request: TokenRequestBody,
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    if SessionStore(db).get_session(request.sessionId) is None:
        raise NotFoundError("Session not found")

    token = await issuer.issue(request.sessionId)
    return {"success": True, **token}
