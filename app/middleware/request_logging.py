"""
Request Logging Middleware

- Assigns a unique request_id to every request
- Resets tenant / host context (filled in by CustomDomainMiddleware)
- Logs request start & end with timing
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.logging_config import (
    generate_request_id,
    host_ctx,
    request_id_ctx,
    tenant_ctx,
)

logger = logging.getLogger("storefront.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # Generate & set request ID
        rid = request.headers.get("x-request-id") or generate_request_id()
        request_id_ctx.set(rid)
        tenant_ctx.set("-")
        host_ctx.set("-")

        method = request.method
        path = request.url.path
        host = request.headers.get("host", "-")

        logger.info("→ %s %s%s", method, host, path)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            logger.exception("✗ %s %s%s — %.1fms (unhandled exception)", method, host, path, elapsed)
            raise

        elapsed = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = rid

        logger.info(
            "← %s %s%s — %d — %.1fms",
            method, host, path, response.status_code, elapsed,
        )
        return response
