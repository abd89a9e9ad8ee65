"""
API response envelopes.

Success: ``{"success": true, "data": ..., "metadata": {...}}``
Error:   ``{"success": false, "error": ..., "code": "..."}``
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi import Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..core.exceptions import ErrorCode


def success_response(
    data: Any, request_id: Optional[str] = None, version: str = "1.0"
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": True,
        "data": jsonable_encoder(data, by_alias=True, exclude_none=True),
    }
    if request_id is not None:
        body["metadata"] = {
            "requestId": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": version,
        }
    return body


def error_response(
    error: Any, code: ErrorCode = ErrorCode.INTERNAL_ERROR
) -> Dict[str, Any]:
    return {"success": False, "error": error, "code": code.value}


def create_response(
    status_code: int,
    data: Any,
    request_id: Optional[str] = None,
    version: str = "1.0",
    headers: Optional[Mapping[str, str]] = None,
) -> Response:
    """Wrap ``data`` in the success envelope; 204 responses carry no body"""
    if status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status_code, headers=dict(headers or {}))
    return JSONResponse(
        status_code=status_code,
        content=success_response(data, request_id, version),
        headers=dict(headers or {}),
    )


def create_error_response(
    status_code: int,
    error: Any,
    code: ErrorCode,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(error, code),
        headers=dict(headers or {}),
    )
