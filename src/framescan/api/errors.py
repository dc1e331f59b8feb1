"""FrameScan API error handling.

Every error response uses one envelope:
    {"code": str, "message": str, "details": dict | None, "request_id": str}

Global exception handlers:
- ScanError subclasses: mapped to their HTTP status and code
- FrameScanHttpError: application errors raised by routes
- HTTPException / RequestValidationError: framework errors
- pydantic ValidationError: invalid domain/modality combinations from the service
- Exception: catch-all (fail closed, no stack traces)
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from framescan.pipeline.errors import (
    ContentRejected,
    InsufficientCredits,
    ProviderFailure,
    ScanError,
    ScanThrottled,
)

logger = logging.getLogger(__name__)

SCAN_ERROR_STATUS: dict[type[ScanError], int] = {
    ContentRejected: 422,
    InsufficientCredits: 402,
    ProviderFailure: 502,
    ScanThrottled: 429,
}

HTTP_STATUS_TO_CODE: dict[int, str] = {
    400: "BAD_REQUEST",
    402: "INSUFFICIENT_CREDITS",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "UNPROCESSABLE_ENTITY",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
}


class ErrorResponse(BaseModel):
    """Error envelope schema."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


class FrameScanHttpError(Exception):
    """Application-level HTTP error with a structured envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def _get_request_id(request: Request) -> str:
    header_id = request.headers.get("X-Request-Id")
    if header_id:
        return header_id
    return str(uuid.uuid4())


def make_error_response(
    request: Request,
    *,
    code: str,
    message: str,
    http_status: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build the error envelope response with an X-Request-Id header."""
    request_id = _get_request_id(request)
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "details": details,
        "request_id": request_id,
    }
    response = JSONResponse(status_code=http_status, content=body)
    response.headers["X-Request-Id"] = request_id
    return response


async def scan_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ScanError)

    status = SCAN_ERROR_STATUS.get(type(exc), 500)
    details: dict[str, Any] = dict(exc.details())
    if exc.advisories:
        details["advisories"] = [a.model_dump(mode="json") for a in exc.advisories]
    return make_error_response(
        request,
        code=exc.code,
        message=exc.user_message,
        http_status=status,
        details=details or None,
    )


async def framescan_http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, FrameScanHttpError)

    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)

    return make_error_response(
        request,
        code=HTTP_STATUS_TO_CODE.get(exc.status_code, "ERROR"),
        message=str(exc.detail) if exc.detail else f"HTTP {exc.status_code}",
        http_status=exc.status_code,
    )


def _safe_errors(errors: list[Any]) -> list[dict[str, Any]]:
    safe: list[dict[str, Any]] = []
    for error in errors:
        loc = error.get("loc", ())
        safe_loc = [str(part) for part in loc if part not in ("body", "query", "path")]
        safe.append(
            {
                "field": ".".join(safe_loc) if safe_loc else "request",
                "message": error.get("msg", "Validation error"),
            }
        )
    return safe


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map request validation errors without exposing raw validation internals."""
    assert isinstance(exc, RequestValidationError | ValidationError)

    safe_details = _safe_errors(list(exc.errors()))
    return make_error_response(
        request,
        code="REQUEST_VALIDATION_FAILED",
        message="Request validation failed",
        http_status=422,
        details={"errors": safe_details} if safe_details else None,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fail closed: 500 with a generic message, exception logged server-side."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)
    return make_error_response(
        request,
        code="INTERNAL_ERROR",
        message="An internal error occurred",
        http_status=500,
    )
