"""Unified API response envelope.

All API endpoints return this format:
{
    "success": true,
    "message": "success",
    "data": { ... },      // null on error
    "error": null,        // {"code", "kind", "details"} on error
    "timestamp": "...",
    "request_id": "..."
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    code: str
    kind: str
    details: dict[str, Any] = Field(default_factory=dict)


class ApiResponse(BaseModel):
    success: bool = True
    message: str = "success"
    data: Any = None
    error: ErrorBody | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None, message: str = "success") -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data)


def error_response(
    code: str,
    kind: str,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> ApiResponse:
    resp = ApiResponse(
        success=False,
        message=message,
        data=None,
        error=ErrorBody(code=code, kind=kind, details=details or {}),
    )
    if request_id:
        resp.request_id = request_id
    return resp
