"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sla_service.core import (
    ApplicationException,
    ExternalServiceException,
    ResourceNotFoundException,
    StorageUnavailableException,
    ValidationException,
    DomainException,
)
from sla_service.shared.infrastructure.logging import correlation_id_var, get_logger

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds a correlation ID to every request.

    The ID is taken from ``X-Correlation-ID`` or generated, exposed on
    ``request.state`` and bound to the logging context.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its status and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", None)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000),
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000),
            }
        )
        return response


def _error_body(request: Request, detail: str, **extra) -> dict:
    return {
        "detail": detail,
        "correlation_id": getattr(request.state, "correlation_id", None),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


def _status_for(exc: ApplicationException) -> int:
    if isinstance(exc, ResourceNotFoundException):
        return 404
    if isinstance(exc, (ValidationException, DomainException)):
        return 422
    if isinstance(exc, StorageUnavailableException):
        return 503
    if isinstance(exc, ExternalServiceException):
        return 502
    return 500


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Map the application exception hierarchy to HTTP responses."""
    status_code = _status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Application error",
        extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code,
        }
    )
    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, exc.message, details=exc.details),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Consistent 500 response for anything unhandled."""
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
        }
    )

    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "Internal server error", debug_info=str(exc) if is_dev else None),
    )


def install_error_handling(app: FastAPI) -> None:
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
