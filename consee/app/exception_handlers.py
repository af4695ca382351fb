"""Global exception handlers for FastAPI application.

Every error is answered with an empty body; the message travels in the
``G-Consee-Error`` header, rendered by ``StatusError.render``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError

from consee.core.constants import ERROR_HEADER
from consee.core.exceptions import DomainError, StatusError

logger = logging.getLogger(__name__)


def error_response(error: StatusError) -> Response:
    """Build the empty-bodied response carrying ``error`` in its header."""
    return Response(status_code=error.status, headers={ERROR_HEADER: error.render()})


async def status_error_handler(request: Request, exc: StatusError) -> Response:
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "method": request.method, "status_code": exc.status, "error": exc.message},
    )
    return error_response(exc)


async def domain_error_handler(request: Request, exc: DomainError) -> Response:
    """Map a service error onto its fixed HTTP status."""
    error = StatusError.from_domain_error(exc)
    log = logger.error if error.status >= 500 else logger.info
    log(
        "Service error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": error.status,
            "error_code": exc.code.value,
            "error": exc.message,
        },
    )
    return error_response(error)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    """Report body, query and path validation failures as 400."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return await status_error_handler(request, StatusError(400, details, process="decoding body"))


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected exceptions with a logged traceback and a 500."""
    logger.error(
        "Unexpected exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        },
        exc_info=True,
    )
    return error_response(StatusError(status.HTTP_500_INTERNAL_SERVER_ERROR, "unknown error"))


def configure_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the FastAPI application."""
    app.add_exception_handler(StatusError, status_error_handler)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
