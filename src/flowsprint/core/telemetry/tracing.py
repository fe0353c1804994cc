from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any

_TRACE_EVENTS: deque[dict[str, Any]] = deque(maxlen=500)
_TRACE_LOCK = threading.Lock()


@dataclass(slots=True)
class RouteTraceContext:
    request_id: str
    kind: str


def trace_event(logger, ctx: RouteTraceContext, event: str, status: str, extra: dict[str, Any] | None = None) -> None:
    payload = {
        "request_id": ctx.request_id,
        "kind": ctx.kind,
        "status": status,
    }
    if extra:
        payload.update(extra)
    with _TRACE_LOCK:
        _TRACE_EVENTS.append({"event": event, **payload})
    if status == "error":
        logger.warning(event, **payload)
    else:
        logger.info(event, **payload)


def recent_traces(request_id: str | None = None, limit: int = 20) -> list[dict[str, Any]]:
    with _TRACE_LOCK:
        items = list(_TRACE_EVENTS)
    if request_id is not None:
        items = [i for i in items if i.get("request_id") == request_id]
    return items[-limit:]
