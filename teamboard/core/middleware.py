import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from teamboard.logs.server_log import api_logger
from teamboard.logs.debug_log import debug_logger

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request once with its status and timing.

    A caller-supplied ``X-Request-ID`` is reused, otherwise one is generated;
    either way it is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"

        debug_logger.log_request(request)

        try:
            response = await call_next(request)
        except Exception as e:
            debug_logger.log_exception(f"[{request_id}] Error while processing {method} {path}")
            api_logger.error(f"[{request_id}] {method} {path} failed: {e}")
            raise

        process_time = time.perf_counter() - start_time
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.3f}"

        api_logger.info(
            f"[{request_id}] {method} {path} | "
            f"Status: {response.status_code} | "
            f"Client: {client_host} | "
            f"Process Time: {process_time:.3f}s"
        )
        debug_logger.log_response(response, process_time)

        return response
