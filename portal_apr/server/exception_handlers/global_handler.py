"""
Exception Handlers for the FastAPI Application.

Expected business errors (``PortalError`` subclasses) become JSON responses
with their own status code, a Spanish ``detail`` and a stable ``error_code``.
Anything else is logged with full request context and answered with a 500
carrying an error ID the client can quote when reporting the problem.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from portal_apr.core.errors import PortalError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.monitoring import log_error

logger = get_logger(__name__)


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Translate a domain error into its HTTP response."""
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(f"{type(exc).__name__} in {request.method} {request.url.path}: {exc.message}")

    content = {"detail": exc.message, "error_code": exc.error_code}
    if exc.details:
        content["details"] = exc.details
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    # Generate unique error ID for tracking
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )
    log_error(type(exc).__name__, str(exc), {"path": request.url.path, "error_id": error_id})

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
