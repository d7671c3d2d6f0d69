from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi.responses import JSONResponse
from fastapi import Request

from payportal.config import settings

# Global limiter instance for the app
limiter = Limiter(key_func=get_remote_address, default_limits=[], enabled=settings.rate_limit_enabled)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "RateLimitExceeded",
            "message": "Too many requests, please try again later.",
            "data": {"limit": str(exc.detail)},
        },
    )
