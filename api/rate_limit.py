# api/rate_limit.py
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

load_dotenv()
CHECK_RATE_LIMIT = os.getenv("CHECK_RATE_LIMIT", "30/minute")

limiter = Limiter(key_func=get_remote_address)


async def rate_limit_exceeded(request: Request, exc: RateLimitExceeded):
    """Answer throttled clients with the same error shape as other API errors."""
    return JSONResponse(
        {"detail": f"Too many availability checks ({exc.detail}), try again later"},
        status_code=429,
    )


def register_rate_limit(app: FastAPI):
    """
    Attach the per-client request limiter to the FastAPI app.

    This throttles API clients only; the per-source cooldown that protects
    the scraped sites lives in the availability core.
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)
