"""Request-scoped dependencies shared by the plan routes."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Header

from cropcare.core.errors import AuthError
from cropcare.services.plan_oracle import PlanOracle, get_plan_oracle


def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> UUID:
    """The gateway injects the authenticated caller as X-User-Id."""
    if not x_user_id:
        raise AuthError("Missing X-User-Id header.")
    try:
        return UUID(x_user_id.strip())
    except ValueError:
        raise AuthError("X-User-Id must be a UUID.")


def get_oracle() -> Optional[PlanOracle]:
    return get_plan_oracle()
