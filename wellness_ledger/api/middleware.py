"""API middleware for rate limiting, CORS and request metrics"""
import logging
import re
from typing import Callable
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from wellness_ledger import config
from wellness_ledger.observability.metrics import http_requests_total

logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

_USER_SEGMENT = re.compile(r"/users/[^/]+")


def setup_cors(app):
    """Configure CORS middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(f"CORS configured for origins: {config.CORS_ORIGINS}")


def setup_rate_limiting(app):
    """Configure rate limiting"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.info("Rate limiting configured")


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Count requests by method, normalized endpoint and status"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        endpoint = _USER_SEGMENT.sub("/users/{uid}", request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            http_requests_total.labels(method=request.method, endpoint=endpoint, status="500").inc()
            raise
        http_requests_total.labels(method=request.method, endpoint=endpoint, status=str(response.status_code)).inc()
        return response
