import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details

    def to_body(self) -> dict:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    error = "Invalid request"

    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid value for '{field}': {message}")
        self.fields = {field: [message]}

    def to_body(self) -> dict:
        return {"error": self.message, "fields": self.fields}


class NotFoundError(AppError):
    status_code = 404
    error = "Not found"


class UpstreamStoreError(AppError):
    """The database rejected or failed a query."""

    status_code = 500
    error = "Failed to load data"

    def __init__(self, message: str, *, code: str | None = None, hint: str | None = None):
        super().__init__(self.error, details=message)
        self.code = code
        self.hint = hint

    def to_body(self) -> dict:
        return {"error": self.message, "details": self.details, "code": self.code, "hint": self.hint}


class UpstreamModelError(AppError):
    status_code = 503
    error = "AI service unavailable"


class ModelUnavailable(UpstreamModelError):
    pass


class ModelQuotaExceeded(UpstreamModelError):
    status_code = 429
    error = "AI quota exceeded. Please check billing or try later."


class BadUpstreamResponse(UpstreamModelError):
    status_code = 502
    error = "Failed to parse AI response"


class NotificationError(AppError):
    """Email/SMS delivery failed. Never surfaced to HTTP callers."""


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.to_body())
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("query", "body", "path")]
        fields.setdefault(".".join(loc) or "request", []).append(err.get("msg", "invalid"))
    return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
