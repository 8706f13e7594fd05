"""Error taxonomy and the handlers that render it.

Every error leaves the API in one envelope:

    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from kopitrace.config import settings

logger = logging.getLogger(__name__)


class KopiTraceException(Exception):
    """Base exception for KopiTrace application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(KopiTraceException):
    """Exception for business logic violations."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class ResourceNotFoundError(KopiTraceException):
    """Exception for resources not found.

    The message is always "<Resource> not found: <identifier>".
    """

    def __init__(self, resource: str, identifier):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class PermissionDeniedError(KopiTraceException):
    """Exception for permission denied."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class IntegrityFailure(KopiTraceException):
    """A store constraint was violated inside a write transaction.

    The transaction has already been rolled back when this is raised.
    """

    def __init__(self, message: str, store_error: str | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTEGRITY_FAILURE",
            details=_store_details(store_error),
        )


class TransientStoreFailure(KopiTraceException):
    """Connection-level failure talking to the store. Nothing was committed."""

    def __init__(self, message: str, store_error: str | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="STORE_UNAVAILABLE",
            details=_store_details(store_error),
        )


def _store_details(store_error: str | None) -> dict | None:
    # Raw driver messages are only exposed in debug deployments
    if store_error and settings.debug:
        return {"store_error": store_error}
    return None


def store_failure(exc: SQLAlchemyError, message: str) -> KopiTraceException:
    """Translate a store exception into the API error taxonomy."""
    store_error = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, (OperationalError, InterfaceError)):
        return TransientStoreFailure(message, store_error=store_error)
    return IntegrityFailure(message, store_error=store_error)


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    body = {"code": code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


def _request_extra(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def kopitrace_exception_handler(
    request: Request,
    exc: KopiTraceException,
) -> JSONResponse:
    """Domain errors: 4xx logged as warnings, 5xx as errors."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s: %s", exc.error_code, request.url.path, exc.message,
        extra=_request_extra(request),
    )
    return error_response(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Routing and auth errors raised by FastAPI/Starlette (404, 401, 405 ...)."""
    response = error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Request body/query validation: 400 with one entry per failed field."""
    logger.warning("Validation error on %s", request.url.path, extra=_request_extra(request))

    errors = []
    for error in exc.errors():
        # Drop the "body" / "query" / "path" prefix so clients see the wire field name
        loc = [str(part) for part in error["loc"]]
        if len(loc) > 1 and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        errors.append({
            "field": " -> ".join(loc),
            "message": error["msg"],
            "type": error["type"],
        })

    return error_response(
        status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Validation error",
        {"errors": errors},
    )


async def store_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store errors raised outside the activity service, e.g. at request commit."""
    logger.error("Store error on %s", request.url.path, extra=_request_extra(request), exc_info=exc)
    failure = store_failure(exc, "Failed to save changes")
    return error_response(failure.status_code, failure.error_code, failure.message, failure.details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s", request.url.path,
        extra=_request_extra(request), exc_info=exc,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred. Please try again later.",
    )


def register_exception_handlers(app):
    app.add_exception_handler(KopiTraceException, kopitrace_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, store_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
