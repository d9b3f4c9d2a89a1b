from __future__ import annotations
import json
import logging
import time
from typing import Any, Callable
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Attributes a route may set on request.state to have them reported
_STATE_KEYS = ("drew_state", "drew_next_state", "drew_event", "clarify_attempts")


def json_logger_middleware() -> Callable:
    """Return a Starlette middleware callable that logs a JSON line per request.

    Lines go to the ``drew.logging`` logger at INFO. Each carries method, path,
    status, latency_ms, and whatever dispatch outcome the route left on
    request.state (drew_state, drew_next_state, drew_event, clarify_attempts).
    """

    async def _middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
        start = time.perf_counter()
        status = 500
        try:
            response: Response = await call_next(request)
            status = response.status_code
        finally:
            s = getattr(request, "state", None)
            payload = {
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "latency_ms": round((time.perf_counter() - start) * 1000.0, 2),
            }
            payload.update({k: getattr(s, k) for k in _STATE_KEYS if s is not None and hasattr(s, k)})
            logger.info(json.dumps(payload, default=str))
        return response

    return _middleware
