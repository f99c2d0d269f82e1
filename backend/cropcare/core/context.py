"""Per-request context utilities."""
from __future__ import annotations

from contextvars import ContextVar, Token
from typing import Optional, Tuple

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[str | None] = ContextVar("user_id", default=None)

ContextTokens = Tuple[Token, Token]


def bind_request_context(request_id: str, user_id: Optional[str]) -> ContextTokens:
    """Attach the request and caller ids for logs and traces until reset."""
    return request_id_ctx_var.set(request_id), user_id_ctx_var.set(user_id)


def reset_request_context(tokens: ContextTokens) -> None:
    request_token, user_token = tokens
    user_id_ctx_var.reset(user_token)
    request_id_ctx_var.reset(request_token)


def get_request_id() -> str | None:
    return request_id_ctx_var.get()


def get_user_id() -> str | None:
    """Caller id as sent by the gateway; not validated here."""
    return user_id_ctx_var.get()
