from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.config import settings

SESSION_HEADER = "X-Session-ID"


def get_session_key(request: Request) -> str:
    """Rate-limit key for a conversation; clients without a session fall back to IP"""
    return request.headers.get(SESSION_HEADER) or get_remote_address(request)


def create_rate_limiter() -> Limiter:
    """Create and configure rate limiter"""
    key_func = get_remote_address if settings.rate_limit_by_ip else get_session_key
    return Limiter(
        key_func=key_func,
        default_limits=[f"{settings.max_requests_per_minute}/minute"],
        enabled=settings.enable_rate_limiting,
    )


def apply_rate_limiting(app) -> Limiter:
    """Attach the limiter to the FastAPI app; disabled limiters pass every request"""
    limiter = create_rate_limiter()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    return limiter
