"""Custom FastAPI middleware."""
from __future__ import annotations

from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cropcare.core.context import bind_request_context, reset_request_context

MAX_REQUEST_ID_LENGTH = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id (echoed back as X-Request-Id) and bind the caller for logging."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:  # type: ignore[override]
        incoming = (request.headers.get("X-Request-Id") or "").strip()
        request_id = incoming[:MAX_REQUEST_ID_LENGTH] or str(uuid4())
        request.state.request_id = request_id

        tokens = bind_request_context(request_id, request.headers.get("X-User-Id"))
        try:
            response = await call_next(request)
        finally:
            reset_request_context(tokens)

        response.headers["X-Request-Id"] = request_id
        return response
