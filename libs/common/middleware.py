"""Request context middleware: request ids and access logs."""

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the logging context and echo it on the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER),
            path=request.url.path,
            method=request.method,
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
            if request.url.path not in QUIET_PATHS:
                logger.log(
                    logging.WARNING if response.status_code >= 400 else logging.INFO,
                    "%s %s -> %d",
                    request.method,
                    request.url.path,
                    response.status_code,
                    extra={
                        "extra_fields": {
                            "status_code": response.status_code,
                            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                        }
                    },
                )
        finally:
            clear_request_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def add_request_context(app: FastAPI) -> None:
    """Configure logging and install RequestContextMiddleware on ``app``."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
