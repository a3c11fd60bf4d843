import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong!"


class AppError(Exception):
    """Business-rule failure carrying a client-safe message."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        errors: Optional[list[dict[str, str]]] = None,
        data: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.data = data


class ValidationError(AppError):
    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class AuthError(AppError):
    status_code = 401


class InvalidTokenError(AuthError):
    pass


class TokenExpiredError(AuthError):
    pass


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 400


class LockedError(AppError):
    status_code = 423

    def __init__(self, message: str, *, minutes_remaining: int):
        super().__init__(message, data={"lockTimeRemaining": minutes_remaining})
        self.minutes_remaining = minutes_remaining


class InternalError(AppError):
    status_code = 500


def error_body(message: str, *, errors=None, data=None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if data:
        body["data"] = data
    return body


def _field_path(loc) -> str:
    # ("body", "startTime") -> "startTime"; query/path locations keep their name only.
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def _expose_details(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return settings is not None and not settings.is_production


def unexpected_error_response(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    message = GENERIC_ERROR_MESSAGE
    if _expose_details(request):
        message = f"{GENERIC_ERROR_MESSAGE} ({exc.__class__.__name__}: {exc})"
    return JSONResponse(status_code=500, content=error_body(message))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            return unexpected_error_response(request, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, errors=exc.errors, data=exc.data),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _field_path(err.get("loc", ())), "message": str(err.get("msg", "Invalid value"))}
            for err in exc.errors()
        ]
        logger.warning(
            "Validation error",
            extra={"endpoint": f"{request.method} {request.url.path}", "errors": errors},
        )
        return JSONResponse(status_code=400, content=error_body("Validation failed", errors=errors))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning(
            "Integrity constraint violated",
            extra={"endpoint": f"{request.method} {request.url.path}", "detail": str(exc.orig)},
        )
        return JSONResponse(
            status_code=ConflictError.status_code,
            content=error_body("Request conflicts with existing data"),
        )

    @app.exception_handler(OperationalError)
    async def handle_operational_error(request: Request, exc: OperationalError):
        return unexpected_error_response(request, exc)
