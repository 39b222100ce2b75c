"""
Shared-secret page password check

POST /api/auth/check-password
"""

import hmac

from fastapi import APIRouter, status

from permit_intake.config.settings import get_settings
from permit_intake.models.schemas import PasswordCheckRequest
from permit_intake.routers.errors import error_response

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/check-password")
async def check_password(request: PasswordCheckRequest):
    if not request.password:
        return error_response(status.HTTP_400_BAD_REQUEST, "Password is required")

    expected = get_settings().page_password
    if not expected:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Authentication not configured")

    if not hmac.compare_digest(request.password.encode(), expected.encode()):
        return error_response(status.HTTP_401_UNAUTHORIZED, "Incorrect password")

    return {"success": True}
