"""Opik client lifecycle for plan tracing."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from opik import Opik

from cropcare.core.config import settings

logger = logging.getLogger(__name__)

_state_lock = Lock()
_client: Optional[Opik] = None
_resolved = False


def _build_client() -> Optional[Opik]:
    if not settings.opik_enabled:
        logger.debug("Opik disabled; plan traces and metrics are dropped.")
        return None
    if not settings.opik_api_key:
        logger.warning("OPIK_ENABLED is true but OPIK_API_KEY is missing; plan traces stay local.")
        return None
    try:
        return Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
    except Exception as exc:  # pragma: no cover - network/SDK failure
        logger.warning("Failed to initialize Opik, plan tracing disabled: %s", exc)
        return None


def init_opik() -> Optional[Opik]:
    """Resolve the Opik client once per process; later calls return the cached outcome."""
    global _client, _resolved

    with _state_lock:
        if not _resolved:
            _client = _build_client()
            _resolved = True
            if _client is not None:
                logger.info("Opik enabled (project=%s).", settings.opik_project)
        return _client


def get_opik_client() -> Optional[Opik]:
    if _resolved:
        return _client
    return init_opik()


def reset_opik_client() -> None:
    """Forget the cached outcome so the next call re-reads settings."""
    global _client, _resolved

    with _state_lock:
        _client = None
        _resolved = False
