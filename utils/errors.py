"""Error types surfaced to HTTP callers and the handlers that render them.

Every error body has the same shape: `{"error": <reason>, "message": <text>}`.
`reason` is stable and meant for machine checks; `message` is for people.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

LOGGER = logging.getLogger(__name__)


class VisualExplainerError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    reason = "Internal Server Error"

    def __init__(self, message: str = "An unexpected error occurred.") -> None:
        super().__init__(message)
        self.message = message


class MissingFieldError(VisualExplainerError):
    """Raised when a required request field is absent or blank."""

    status_code = 400
    reason = "Missing field"


class NoImageError(VisualExplainerError):
    status_code = 400
    reason = "No image file provided"


class InvalidFileTypeError(VisualExplainerError):
    status_code = 400
    reason = "Invalid file type"


class FileTooLargeError(VisualExplainerError):
    status_code = 413
    reason = "File too large"


class SessionNotFoundError(VisualExplainerError):
    """Raised when a session id is unknown or its session has expired."""

    status_code = 404
    reason = "Session Error"

    def __init__(self, session_id: str, message: str = "Session not found or expired") -> None:
        super().__init__(message)
        self.session_id = session_id


class AnalysisServiceError(VisualExplainerError):
    """Raised when the AI service call fails or returns something unusable."""

    status_code = 503
    reason = "AI Service Error"


class ConfigurationError(VisualExplainerError):
    """Raised when the server lacks configuration needed for a request."""

    status_code = 500
    reason = "Configuration Error"


def error_body(reason: str, message: str) -> dict:
    return {"error": reason, "message": message}


async def _handle_domain_error(request: Request, exc: VisualExplainerError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.reason, exc.message))


async def _handle_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(part) for part in error.get("loc", ())[1:]) for error in exc.errors()})
    detail = ", ".join(field for field in fields if field) or "request body"
    return JSONResponse(
        status_code=400,
        content=error_body("Invalid request", f"Invalid or missing fields: {detail}"),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal Server Error", "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application."""
    app.add_exception_handler(VisualExplainerError, _handle_domain_error)
    app.add_exception_handler(RequestValidationError, _handle_invalid_request)
    app.add_exception_handler(Exception, _handle_unexpected_error)
