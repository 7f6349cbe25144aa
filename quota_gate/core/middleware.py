"""Request correlation middleware.

Every response carries a correlation id under the configured header. A
caller-supplied id is reused only when it is short and made of safe
characters; anything else is replaced by a fresh UUID so client input never
lands verbatim in log lines. Completion of each request is logged with its
status and duration while the id is still bound to the logging context.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from fastapi import Request, Response

from quota_gate.core.config import settings
from quota_gate.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

MAX_REQUEST_ID_LENGTH = 128
DURATION_HEADER = "X-Request-Duration-ms"

_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._:\-]+")


def resolve_request_id(candidate: str | None) -> str:
    """Return ``candidate`` when it is a usable correlation id, else a new UUID4."""
    if (
        candidate
        and len(candidate) <= MAX_REQUEST_ID_LENGTH
        and _SAFE_REQUEST_ID.fullmatch(candidate)
    ):
        return candidate
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    header_name = settings.log.request_id_header
    request_id = resolve_request_id(request.headers.get(header_name))
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{elapsed_ms:.2f}")
    return response
