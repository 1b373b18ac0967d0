"""
API error types and the handlers that render them.

Every error leaves the API in one envelope:

    {"success": false, "message": "...", "error_code": "..."}

Request validation failures instead list the failing fields:

    {"success": false, "errors": [...]}
"""
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional, Dict, Any

from core.config import settings
from core.logging import request_fields

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error."


class APIException(HTTPException):
    """An expected failure with a client-facing message and a stable error code."""

    error_code: Optional[str] = None

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        if error_code:
            self.error_code = error_code


class NotFoundError(APIException):
    """Row absent, or owned by someone else."""

    def __init__(self, detail: str = "Not found."):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, "NOT_FOUND")


class ValidationError(APIException):
    """
    A request that passed schema validation but still cannot be applied.

    Defaults to 422; ``PUT /api/athlete/training`` with nothing to write
    uses 400.
    """

    def __init__(self, detail: str, field: Optional[str] = None, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(status_code, detail, error_code)


class UnauthorizedError(APIException):
    """Missing, invalid or expired session token, or bad credentials."""

    def __init__(self, detail: str = "No token, authorisation denied."):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED,
            detail,
            "UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(APIException):
    """Authenticated, but not allowed."""

    def __init__(self, detail: str = "Insufficient permissions."):
        super().__init__(status.HTTP_403_FORBIDDEN, detail, "FORBIDDEN")


class ConflictError(APIException):
    """Unique constraint would be violated, e.g. a registered email."""

    def __init__(self, detail: str):
        super().__init__(status.HTTP_409_CONFLICT, detail, "CONFLICT")


def error_body(message: str, error_code: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error_code:
        body["error_code"] = error_code
    return body


async def api_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render ``APIException`` and framework 404/405 errors in the envelope."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={"extra_fields": request_fields(request, status_code=exc.status_code)}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), getattr(exc, "error_code", None)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    logger.info(
        f"Request validation failed: {request.method} {request.url.path}",
        extra={
            "extra_fields": request_fields(
                request,
                fields=[".".join(str(part) for part in err.get("loc", ())) for err in errors],
            )
        }
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"success": False, "errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log with traceback, hide the detail in production."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=exc,
        extra={"extra_fields": request_fields(request, error_type=type(exc).__name__)}
    )
    message = INTERNAL_ERROR_MESSAGE if settings.is_production else (str(exc) or INTERNAL_ERROR_MESSAGE)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
