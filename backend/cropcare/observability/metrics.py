"""Counters and latencies for plan operations, recorded as Opik traces."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Iterator, Optional

from cropcare.observability import client as opik_client

logger = logging.getLogger(__name__)

METRIC_PREFIX = "metric:"


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    client = opik_client.get_opik_client()
    if client is None:
        return

    payload: Dict[str, Any] = {**(metadata or {}), "value": value}
    try:
        client.trace(name=f"{METRIC_PREFIX}{name}", metadata=payload).end()
    except Exception as exc:  # pragma: no cover - SDK guard
        logger.debug("Unable to record metric %s: %s", name, exc)


@contextmanager
def timed(name: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Record `<name>.latency_ms` for the wrapped block, whether it raises or not."""
    started = perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (perf_counter() - started) * 1000
        log_metric(f"{name}.latency_ms", round(elapsed_ms, 3), metadata=metadata)
