"""
Rate limiting for guest endpoints using slowapi.

Guests are unauthenticated, so the limit key is the guest identity header
when present and the client IP otherwise.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)


def guest_or_ip_key(request: Request) -> str:
    """Limit per guest id, falling back to the remote address."""
    guest_id = request.headers.get("X-Guest-Id")
    if guest_id and guest_id.isdigit():
        return f"guest:{guest_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=guest_or_ip_key, enabled=settings.rate_limit_enabled)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns a JSON response with retry information.
    """
    logger.warning("Rate limit exceeded", key=guest_or_ip_key(request), path=request.url.path)
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Try again later.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(exc.detail)},
    )
