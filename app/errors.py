"""Domain errors and the FastAPI handlers that render them."""

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class KindredError(Exception):
    """Base class for errors reported to API callers.

    Attributes:
        kind: Stable error kind returned in the response body.
        message: Human-readable message.
        status_code: HTTP status used for the response.
    """

    kind = "ServerError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(KindredError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(KindredError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to do that"


class BadRequest(KindredError):
    kind = "BadRequest"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFound(KindredError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(KindredError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicts with the current state"


class AlreadyAccepted(Conflict):
    kind = "AlreadyAccepted"
    default_message = "This invite has already been accepted"


class Expired(KindredError):
    kind = "Expired"
    status_code = status.HTTP_410_GONE
    default_message = "This invite has expired"


class InvalidOperation(KindredError):
    kind = "InvalidOperation"
    status_code = 422
    default_message = "Operation not allowed"


class ServerError(KindredError):
    pass


def error_body(kind: str, message: str) -> dict:
    """Build the JSON body shared by every failed response."""
    return {"success": False, "error": kind, "message": message}


def http_error_kind(status_code: int) -> str:
    """Error kind for a bare HTTP status, e.g. 405 -> "MethodNotAllowed"."""
    try:
        return HTTPStatus(status_code).phrase.replace(" ", "").replace("-", "")
    except ValueError:
        return "Error"


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers turning domain and database errors into JSON responses.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(KindredError)
    async def kindred_error_handler(request: Request, exc: KindredError):
        if isinstance(exc, Forbidden):
            logger.warning(f"Access denied on {request.method} {request.url.path}: {exc.message}")
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.kind, exc.message),
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unknown routes, wrong methods and other framework-level failures
        message = exc.detail if isinstance(exc.detail, str) else http_error_kind(exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(http_error_kind(exc.status_code), message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Database error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(ServerError.kind, ServerError.default_message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = first.get("msg", BadRequest.default_message)
        if field:
            message = f"{field}: {message}"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(BadRequest.kind, message),
        )
