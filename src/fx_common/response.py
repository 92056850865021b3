"""ApiResponse — the envelope every endpoint answers with.

    {"code": 0, "message": "success", "data": ..., "timestamp": "...", "request_id": "req_..."}

`code` is 0 on success and the AppError code otherwise. `data` is null on
errors except a declined exchange, which carries its ExchangeResult.
When a request is passed, the envelope reuses the id RequestLogMiddleware
assigned, so the log line and the response body can be matched up.
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request

from src.fx_common.datetime_utils import utc_now


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    request_id: str = Field(default_factory=new_request_id)


def _request_id(request: Request | None) -> str:
    if request is None:
        return new_request_id()
    return getattr(request.state, "request_id", None) or new_request_id()


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    return ApiResponse(data=data, request_id=_request_id(request))


def error_response(
    code: int, message: str, data: Any = None, request: Request | None = None
) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=data, request_id=_request_id(request))
