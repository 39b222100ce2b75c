"""
JSON error bodies for the HTTP API.

Validation failures use ``{"error", "details": {"fieldErrors", "formErrors"}}``;
every other failure uses ``{"error"}`` plus an optional ``message`` carrying
the underlying cause for debugging.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from permit_intake.config.constants import LOGGER_NAME
from permit_intake.exceptions import ConflictError, NotFoundError, StoreError
from permit_intake.models.schemas import flatten_validation_errors

logger = logging.getLogger(LOGGER_NAME)


def validation_error_response(details: Dict[str, Any], message: Optional[str] = None) -> JSONResponse:
    content = {"error": "Validation failed", "details": details}
    if message:
        content["message"] = message
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


def field_error_response(field: str, error: str) -> JSONResponse:
    return validation_error_response({"fieldErrors": {field: [error]}, "formErrors": []})


def error_response(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if message:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    logger.info(f"Validation failed for {request.method} {request.url.path}")
    return validation_error_response(flatten_validation_errors(exc.errors()))


async def handle_not_found(request: Request, exc: NotFoundError):
    return error_response(status.HTTP_404_NOT_FOUND, exc.message)


async def handle_conflict(request: Request, exc: ConflictError):
    return error_response(status.HTTP_409_CONFLICT, exc.message)


async def handle_store_error(request: Request, exc: StoreError):
    logger.error(f"{exc.message} ({request.method} {request.url.path}): {exc.cause}")
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        exc.message,
        str(exc.cause) if exc.cause else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(NotFoundError, handle_not_found)
    app.add_exception_handler(ConflictError, handle_conflict)
    app.add_exception_handler(StoreError, handle_store_error)
