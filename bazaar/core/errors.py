"""
Error handling configuration

Application exceptions and the FastAPI handlers that render every failure as

    {"error": {"code": ..., "message": ..., "details": {...}, "request_id": ...}}
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from bazaar.core.logging import get_logger, request_id_var

logger = get_logger(__name__)


class AppError(Exception):
    """Base exception class for application errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            details=details,
        )


class ValidationError(AppError):
    """Request is well-formed but not allowed (e.g. following yourself)"""

    def __init__(self, message: str = "Validation error", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="VALIDATION_ERROR",
            details=details,
        )


class AuthenticationError(AppError):
    """Missing or invalid bearer token on a route that needs a signed-in viewer"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="AUTHENTICATION_FAILED",
            details=details,
        )


class FeatureUnavailableError(AppError):
    """The backing store refused the operation; prior state is unchanged"""

    def __init__(
        self,
        message: str = "This feature is temporarily unavailable",
        details: Optional[Dict] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="FEATURE_UNAVAILABLE",
            details=details,
        )


def error_response(status_code: int, code: str, message: str, details: Optional[Dict] = None) -> JSONResponse:
    body: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    request_id = request_id_var.get()
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": body})


async def app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    # Guests hitting protected routes and self-follows are routine
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "app.error",
        error_code=exc.code,
        status_code=exc.status_code,
        message=exc.message,
        details=exc.details,
        path=request.url.path,
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning(
        "http.error",
        status_code=exc.status_code,
        detail=str(exc.detail),
        path=request.url.path,
    )
    return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.info("request.invalid", error_count=len(errors), path=request.url.path)
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in errors
        ]},
    )


async def database_exception_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """A driver error no service translated; reported like any other store refusal"""
    logger.error("db.error", error=str(exc.orig), path=request.url.path)
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "FEATURE_UNAVAILABLE",
        "This feature is temporarily unavailable",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled.error", error=str(exc), path=request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )
