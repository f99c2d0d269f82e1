"""Tracing utilities wrapping Opik."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from cropcare.core.context import get_request_id, get_user_id
from cropcare.observability import client as opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def _trace_metadata(metadata: Optional[Dict[str, Any]], plan_id: Optional[str]) -> Dict[str, Any]:
    merged = dict(metadata or {})
    ambient = {"plan_id": plan_id, "user_id": get_user_id(), "request_id": get_request_id()}
    for key, value in ambient.items():
        if value:
            merged.setdefault(key, value)
    return merged


def _start(name: str, metadata: Dict[str, Any]) -> Optional["Trace"]:
    client = opik_client.get_opik_client()
    if client is None:
        return None
    try:
        return client.trace(name=name, metadata=metadata or None)
    except Exception as exc:  # pragma: no cover - SDK guard
        logger.debug("Unable to start Opik trace %s: %s", name, exc)
        return None


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    plan_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Open an Opik trace around a plan operation.

    The plan id plus the request and caller ids from the request context are
    merged into the metadata. Yields None when Opik is off.
    """
    opik_trace = _start(name, _trace_metadata(metadata, plan_id))
    if opik_trace is None:
        yield None
        return

    try:
        yield opik_trace
    except Exception as exc:
        try:
            opik_trace.update(error_info={"message": str(exc), "type": type(exc).__name__})
        except Exception:  # pragma: no cover
            logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        try:
            opik_trace.end()
        except Exception:  # pragma: no cover
            logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)
