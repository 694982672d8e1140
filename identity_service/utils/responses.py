"""
API Response Helpers
Uniform success and error envelopes for every endpoint
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException, Request


def _request_id(request: Optional[Request]) -> str:
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    return str(uuid.uuid4())


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_response(data: Any, request: Optional[Request] = None) -> dict:
    """Wrap data in the success envelope"""
    return {
        "success": True,
        "data": data,
        "request_id": _request_id(request),
        "timestamp": _timestamp()
    }


def error_body(code: str, message: str, details: Any = None, request: Optional[Request] = None) -> dict:
    """Build the error envelope"""
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details
        },
        "request_id": _request_id(request),
        "timestamp": _timestamp()
    }


def api_error(status_code: int, code: str, message: str, details: Any = None, headers: Optional[dict] = None) -> HTTPException:
    """
    HTTPException carrying a machine-readable error code

    The global exception handler renders the detail dict as the error
    envelope.
    """
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": message, "details": details},
        headers=headers
    )


def default_error_code(status_code: int) -> str:
    """Error code for HTTPExceptions raised with a plain string detail"""
    return {
        400: "BAD_REQUEST",
        401: "AUTHENTICATION_REQUIRED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }.get(status_code, "INTERNAL_ERROR")


# Service-layer error codes -> HTTP status
SERVICE_ERROR_STATUS = {
    "VALIDATION_ERROR": 400,
    "NOT_FOUND": 404,
    "CLIENT_NOT_FOUND": 404,
    "CONTEXT_NOT_FOUND": 404,
    "ASSIGNMENT_NOT_FOUND": 404,
    "SESSION_NOT_FOUND": 404,
    "EMAIL_EXISTS": 409,
    "PROTECTED_ASSIGNMENT": 409,
    "NO_PERMANENT_CONTEXT": 409,
    "DATABASE_ERROR": 500,
    "CLIENT_ID_GENERATION_FAILED": 500,
    "TOKEN_GENERATION_FAILED": 500,
}


def service_error(result: dict) -> HTTPException:
    """HTTPException for a failed service result dict"""
    code = result.get("error_code", "INTERNAL_ERROR")
    return api_error(SERVICE_ERROR_STATUS.get(code, 500), code, result.get("error", "Request failed"))
