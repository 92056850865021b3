"""Request logging middleware.

One log line per request: method, path, status, latency and request id.
The id comes from an incoming X-Request-ID header when it looks sane (so a
caller's trace id carries through), otherwise a fresh `req_` id is minted.
It is stored on request.state for the ApiResponse envelope and echoed back
in the X-Request-ID response header.

    INFO    [POST] /api/v1/exchange → 200 (612ms) req_a1b2c3d4e5f6
    WARNING [GET] /api/v1/accounts → 503 (3ms) req_0f9e8d7c6b5a
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.fx_common.response import new_request_id

logger = logging.getLogger("fx.request")

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def incoming_request_id(request: Request) -> str | None:
    value = request.headers.get(REQUEST_ID_HEADER)
    if value and _VALID_REQUEST_ID.match(value):
        return value
    return None


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = incoming_request_id(request) or new_request_id()
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
