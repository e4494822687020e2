"""
Global slowapi rate limiter.

Imported by auth/router.py for per-endpoint limits.  Mounted onto app.state in
main.py so slowapi middleware can find it; main.py also applies the
``rate_limit_enabled`` setting and installs ``rate_limit_exceeded_handler``.

Storage: in-memory by default; set RATE_LIMIT_STORAGE_URI (e.g. a redis:// URL)
to share counters across workers.
"""
import os

from fastapi import Request, status
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.middleware.error_handler import error_response

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """429 in the standard error envelope, keeping slowapi's rate-limit headers."""
    response = error_response(
        request,
        status.HTTP_429_TOO_MANY_REQUESTS,
        "rate_limited",
        f"Rate limit exceeded: {exc.detail}",
    )
    return request.app.state.limiter._inject_headers(
        response, getattr(request.state, "view_rate_limit", None)
    )
