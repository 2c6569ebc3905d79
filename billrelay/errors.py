"""Error taxonomy shared by the webhook, print and token surfaces.

Every error carries an HTTP status and a stable machine-readable code.
Handlers render them as ``{"error": message, "code": code}``; internal
details never reach the response body.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BillRelayError(Exception):
    status_code = 500
    code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class AuthError(BillRelayError):
    """Missing or invalid signature, API key or admin token."""

    status_code = 401
    code = "UNAUTHORIZED"


class ValidationError(BillRelayError):
    """Malformed body or out-of-range field. Raised before any mutation."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(BillRelayError):
    status_code = 404
    code = "NOT_FOUND"


class InternalError(BillRelayError):
    status_code = 500
    code = "INTERNAL_ERROR"


async def _relay_error_handler(request: Request, exc: BillRelayError) -> JSONResponse:
    return JSONResponse({"error": exc.message, "code": exc.code}, status_code=exc.status_code)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "invalid request")
    if field:
        message = f"{field}: {message}"
    return JSONResponse({"error": message, "code": ValidationError.code}, status_code=400)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BillRelayError, _relay_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
