"""Custom exceptions and centralized FastAPI error handlers."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings

logger = logging.getLogger(__name__)


class DashboardError(Exception):
    """Base exception with HTTP status code and a short error title."""

    title = "Internal server error"

    def __init__(self, message: str, status_code: int = 500, title: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        if title:
            self.title = title


class ValidationError(DashboardError):
    title = "Invalid input"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message, status_code=400, title=title)


class NotFoundError(DashboardError):
    title = "Not found"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message, status_code=404, title=title)


class LocationNotFoundError(NotFoundError):
    title = "Location not found"

    def __init__(self, location: str):
        super().__init__(f"Location '{location}' not found")
        self.location = location


class ConflictError(DashboardError):
    title = "Conflict"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message, status_code=409, title=title)


class ServiceUnavailableError(DashboardError):
    """A downstream provider answered non-2xx or could not be reached."""

    title = "Weather service unavailable"

    def __init__(self, message: str):
        super().__init__(message, status_code=503)


class ProviderTimeoutError(ServiceUnavailableError):
    def __init__(self, service: str):
        super().__init__(f"{service} service timeout")
        self.service = service


def error_body(title: str, message: str) -> dict:
    return {"error": title, "message": message}


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(DashboardError)
    async def handle_dashboard_error(_request: Request, exc: DashboardError):
        if exc.status_code >= 500:
            logger.warning("%s: %s", exc.title, exc)
        return JSONResponse(error_body(exc.title, str(exc)), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(error_body("Invalid input", message), status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                error_body("Route not found", f"Route {request.url.path} not found"),
                status_code=404,
            )
        return JSONResponse(error_body(str(exc.detail), str(exc.detail)), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        status_code = getattr(exc, "status_code", 500)
        if not isinstance(status_code, int) or not 400 <= status_code < 600:
            status_code = 500
        if settings.is_production:
            return JSONResponse({"error": "Internal server error"}, status_code=status_code)
        return JSONResponse(
            {
                "error": str(exc) or exc.__class__.__name__,
                "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            },
            status_code=status_code,
        )
