"""
Error taxonomy and the JSON envelope every failure is rendered into:

    {"success": false, "message": "...", "error": ...}
"""
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import DEBUG

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, extra: Optional[Dict[str, Any]] = None, error: Any = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.extra = extra or {}
        self.error = error


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class InvalidMobile(ValidationError):
    message = "Valid mobile number is required"


class UnknownCategory(ValidationError):
    message = "Invalid category"


class UnknownSubcategory(ValidationError):
    message = "Invalid subcategory"


class TooManyImages(ValidationError):
    message = "Too many files. Maximum is 6 images"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authenticated"


class InvalidCredentials(Unauthorized):
    message = "Invalid credentials"


class TokenExpired(Unauthorized):
    message = "Token expired"


class TokenInvalid(Unauthorized):
    message = "Invalid token"


class InvalidAuthFormat(Unauthorized):
    message = "Authorization format must be: Bearer <token>"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Not authorized as admin"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Conflict"


class DuplicateEmail(Conflict):
    message = "User already exists"


class InternalError(AppError):
    pass


def envelope(status_code: int, message: str, error: Any = None, extra: Optional[Dict[str, Any]] = None, headers=None):
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return envelope(exc.status_code, exc.message, exc.error, exc.extra, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = "Route not found"
    return envelope(exc.status_code, message, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
        for e in exc.errors()
    ]
    first = errors[0] if errors else None
    message = f"{first['field']}: {first['message']}" if first and first["field"] else "Invalid request"
    return envelope(status.HTTP_400_BAD_REQUEST, message, errors)


def _server_error(message: str, exc: Exception):
    error = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if DEBUG else None
    return envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, message, error)


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _server_error("Database error", exc)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _server_error("Something went wrong!", exc)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
