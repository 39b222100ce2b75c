"""
Exception types shared by the stores and the HTTP layer.

Routers raise these and the application's exception handlers turn them into
JSON error bodies: ``StoreError`` -> 500, ``NotFoundError`` -> 404,
``ConflictError`` -> 409.
"""

from typing import Optional


class StoreError(Exception):
    """A session or application store operation failed.

    The message is the generic "Failed to ..." text returned to callers;
    the original exception is kept on ``cause`` for logging.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class NotFoundError(Exception):
    """A record referenced by id does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message)
        self.message = message


class ConflictError(Exception):
    """The record exists but is not in a state that allows the operation."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
