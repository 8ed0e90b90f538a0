"""HTTP middleware for request correlation and rate limit headers.

The middleware:
- Accepts the incoming X-Request-ID header (name configurable) or generates a UUID
- Stores request_id in contextvars for log correlation during the request
- Echoes request_id and the request duration in the response headers
- Adds X-RateLimit-* headers when a rate limit dependency admitted the request

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id
from app.core.rate_limit import RESULT_STATE_ATTR, rate_limit_headers


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a correlation id and quota headers for every request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with X-Request-ID,
            X-Request-Duration-ms and, for rate limited routes that admitted
            the request, X-RateLimit-Limit/Remaining/Reset headers.

    Example:
        >>> # Headers: {"X-Request-ID": "req-abc-123"}
        >>> # Response includes:
        >>> # {"X-Request-ID": "req-abc-123", "X-Request-Duration-ms": "0.42"}
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")

    result = getattr(request.state, RESULT_STATE_ATTR, None)
    if result is not None and settings.app.rate_limit_include_headers:
        for name, value in rate_limit_headers(result).items():
            response.headers.setdefault(name, value)

    return response
