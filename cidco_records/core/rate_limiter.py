"""
Rate Limiting for CIDCO Records API
===================================
Uses slowapi keyed on the client address. Everything gets the default
limit; the credential endpoints get tighter ones:
- /login: 5 req/min (brute force protection)
- /forgot-password: 3 req/min
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from cidco_records.core.config import settings
from cidco_records.core.logging_config import logger


LOGIN_LIMIT = "5/minute"
PASSWORD_RESET_LIMIT = "3/minute"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Render rate limit errors in the API's error shape"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_remote_address(request)} on {request.url.path}: {exc.detail}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests. Please slow down.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
        headers={"Retry-After": "60"},
    )
