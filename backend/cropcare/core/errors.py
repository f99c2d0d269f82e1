"""Domain error taxonomy and their HTTP mapping."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cropcare.core.context import get_request_id

logger = logging.getLogger(__name__)


class CropCareError(Exception):
    """Base class for errors raised by the plan services."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CropCareError):
    """Bad caller input: unparseable dates, non-positive area, empty crop."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class AuthError(CropCareError):
    """No authenticated caller for a user-scoped operation."""

    status_code = status.HTTP_401_UNAUTHORIZED


class OracleError(CropCareError):
    """Plan generation by the oracle failed. Always recovered by the heuristic builder."""

    status_code = status.HTTP_502_BAD_GATEWAY


class StorageError(CropCareError):
    """Persistence unavailable or a write failed; the operation was rolled back."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class NotFoundError(CropCareError):
    """Query against an unknown plan id."""

    status_code = status.HTTP_404_NOT_FOUND


async def _handle_cropcare_error(request: Request, exc: CropCareError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "X-User-Id"} if isinstance(exc, AuthError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "request_id": request_id or ""},
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CropCareError, _handle_cropcare_error)  # type: ignore[arg-type]
