"""Domain error taxonomy and the JSON error envelope.

The engine raises these; handlers registered in ``main.create_app`` turn them
into ``{"error": {"code", "message", "details"}}`` responses.
"""

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


logger = logging.getLogger("rentdesk.errors")


class AppError(Exception):
    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code


class ValidationError(AppError):
    """Malformed interval or missing field: the caller's fault."""

    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """Vehicle is not available for the requested interval."""

    status_code = 409
    code = "conflict"


class StateError(AppError):
    """Operation is illegal for the record's current status."""

    status_code = 409
    code = "invalid_state"


def _envelope(code: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


async def app_error_handler(request: Request, exc: AppError):
    logger.info(
        "request %s %s %s -> %s %s",
        getattr(request.state, "request_id", "-"), request.method, request.url.path, exc.status_code, exc.code,
    )
    return JSONResponse(status_code=exc.status_code, content=_envelope(exc.code, exc.message, exc.details))


async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    if isinstance(detail, dict):
        code = str(detail.get("code") or "http_error")
        message = str(detail.get("message") or code)
        details = {k: v for k, v in detail.items() if k not in ("code", "message")}
    else:
        code = "http_error"
        message = str(detail)
        details = {}
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(code, message, details),
        headers=getattr(exc, "headers", None),
    )
