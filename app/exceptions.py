"""
AIVox Dashboard - Error Taxonomy and Envelope Rendering
Every error leaves the API as {"error": true, "message": ...}
"""
import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import config

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP status"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal Server Error"

    def __init__(self, message: str = None, status_code: int = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class UnexpectedError(AppError):
    pass


def error_response(status_code: int, message: str, exc: Exception = None) -> JSONResponse:
    """Render the error envelope, with a stack trace outside production"""
    if config.IS_PRODUCTION and status_code >= 500:
        message = "Internal Server Error"

    content = {"error": True, "message": message}
    if exc is not None and not config.IS_PRODUCTION:
        content["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=status_code, content=content)


def _log_error(request: Request, exc: Exception, status_code: int):
    client = request.client.host if request.client else None
    message = f"{request.method} {request.url.path} failed with {status_code}: {exc} (client={client})"
    if status_code >= 500:
        logger.error(message, exc_info=exc)
    else:
        logger.warning(message)


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation failed"
    first = errors[0]
    # Drop the "body"/"query"/"path" prefix FastAPI adds to locations
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    msg = first.get("msg", "Invalid value")
    return f"{field}: {msg}" if field else msg


async def app_error_handler(request: Request, exc: AppError):
    _log_error(request, exc, exc.status_code)
    return error_response(exc.status_code, exc.message, exc if exc.status_code >= 500 else None)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = _first_validation_message(exc)
    _log_error(request, message, status.HTTP_400_BAD_REQUEST)
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    _log_error(request, exc.orig, status.HTTP_409_CONFLICT)
    return error_response(status.HTTP_409_CONFLICT, ConflictError.default_message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    _log_error(request, exc.detail, exc.status_code)
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception):
    _log_error(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal Server Error", exc)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
