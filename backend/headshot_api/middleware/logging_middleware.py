"""Middleware for logging HTTP requests and responses."""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from headshot_common.core.request_context import RequestContext
from headshot_common.utils.utils import get_logger

logger = get_logger()

# Bodies of these paths carry payment data and signatures
_UNLOGGED_BODY_PATHS = ("/api/v1/billing/webhook",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.
    Logs request details, response status, and timing information.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        ctx = RequestContext.get_or_none()
        req_logger = logger.bind(request_id=ctx.request_id) if ctx else logger

        client_host = request.client.host if request.client else "unknown"
        request_path = request.url.path
        request_method = request.method

        log_data = {
            "type": "request_started",
            "client_ip": client_host,
            "method": request_method,
            "path": request_path,
            "query_params": str(request.query_params),
        }
        if request_method in ("POST", "PUT", "PATCH") and not request_path.startswith(_UNLOGGED_BODY_PATHS):
            log_data["content_length"] = request.headers.get("content-length")

        # GET requests are mostly dashboard polling
        if request_method == "GET":
            req_logger.debug(f"Request started: {request_method} {request_path}", **log_data)
        else:
            req_logger.info(f"Request started: {request_method} {request_path}", **log_data)

        start_time = time.time()

        try:
            response: Response = await call_next(request)
        except Exception as e:
            req_logger.error(
                f"Request failed: {request_method} {request_path}",
                type="request_failed",
                method=request_method,
                path=request_path,
                error=str(e),
                process_time_ms=int(round((time.time() - start_time) * 1000, 2)),
                exc_info=True,
            )
            raise

        response_log_data = {
            "type": "request_completed",
            "method": request_method,
            "path": request_path,
            "status_code": response.status_code,
            "process_time_ms": int(round((time.time() - start_time) * 1000, 2)),
        }
        if response.status_code >= 500:
            req_logger.error(f"Request completed: {request_method} {request_path} - {response.status_code}", **response_log_data)
        elif request_method == "GET" and 200 <= response.status_code < 300:
            req_logger.debug(f"Request completed: {request_method} {request_path} - {response.status_code}", **response_log_data)
        else:
            req_logger.info(f"Request completed: {request_method} {request_path} - {response.status_code}", **response_log_data)
        return response
