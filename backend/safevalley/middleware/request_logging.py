"""Request logging middleware for tracing and debugging."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from safevalley.config import settings
from safevalley.core.auth import get_client_ip


logger = logging.getLogger("api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Assigns each request an ID and logs method, path, status and duration.

    The ID is stored on ``request.state.request_id`` so error responses,
    audit entries and the ``AuthContext`` can all refer to it, and is
    returned to the client as ``X-Request-ID``.
    """

    # Paths logged at debug level only
    QUIET_PATHS = {"/health", "/api/v1/health", "/api/v1/health/db"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        if not settings.log_requests:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.time()
        method = request.method
        path = request.url.path
        is_quiet_path = path in self.QUIET_PATHS

        if not is_quiet_path:
            logger.info(f"[{request_id}] --> {method} {path} from {get_client_ip(request)}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] <-- 500 {method} {path} ({duration_ms:.2f}ms) ERROR: {e}"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id

        log_message = f"[{request_id}] <-- {response.status_code} {method} {path} ({duration_ms:.2f}ms)"
        if response.status_code >= 500:
            logger.error(log_message)
        elif response.status_code >= 400:
            logger.warning(log_message)
        elif not is_quiet_path:
            logger.info(log_message)
        else:
            logger.debug(log_message)

        return response


def setup_logging():
    """Configure logging for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    for name in ("api.requests", "api.audit", "api.errors", "safevalley"):
        logging.getLogger(name).setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
