"""
FastAPI middleware for correlation ID propagation and request logging.
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fivec.core.logging import correlation_context, get_logger, log_business_event

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Bind a correlation ID to every request and echo it in the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())[:8]
        user_id = request.headers.get("X-User-ID")

        with correlation_context(correlation_id=correlation_id, user_id=user_id):
            logger.info("Request started", method=request.method, path=request.url.path)
            start_time = time.time()

            response = await call_next(request)

            processing_time_ms = round((time.time() - start_time) * 1000, 2)
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                processing_time_ms=processing_time_ms,
            )
            log_business_event(
                "http_request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                processing_time_ms=processing_time_ms,
            )

            response.headers["X-Correlation-ID"] = correlation_id
            return response
