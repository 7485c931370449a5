# shared/middleware.py
"""
Centralized middleware for the coinCollect service.
Provides request logging, size limits, security headers and the JSON error
bodies for the shared error taxonomy.
"""

import logging
import time
from typing import Callable, Optional

import asyncpg
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from shared.errors import APIError, ValidationError

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging with a body size limit.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 1 * 1024 * 1024,
        log_requests: bool = True,
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        if request.url.path == "/health":
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
            return JSONResponse(
                status_code=413,
                content={
                    "error": f"Request too large. Maximum size: {self.max_request_size} bytes",
                },
            )

        response = await call_next(request)

        if self.log_requests:
            process_time = time.time() - start_time
            client = request.client.host if request.client else "unknown"
            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} - "
                f"{process_time:.3f}s - Client: {client}"
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses
    """

    def __init__(self, app: ASGIApp, service_name: str = "coincollect"):
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Service-Name"] = self.service_name

        if "json" in response.headers.get("content-type", ""):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"

        return response


def _invalid_fields(exc: RequestValidationError) -> list[str]:
    """Collapse pydantic error locations to the offending field names"""
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        name = ".".join(loc) if loc else "body"
        if name not in fields:
            fields.append(name)
    return fields


def create_standard_error_handler():
    """
    Create standardized error handlers for FastAPI apps
    """

    async def api_error_handler(request: Request, exc: APIError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details or ''}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors"""
        logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
        error = ValidationError(fields=_invalid_fields(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions"""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    async def database_exception_handler(request: Request, exc: asyncpg.PostgresError):
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Database error", "details": str(exc)})

    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )

    return {
        "api_error_handler": api_error_handler,
        "validation_exception_handler": validation_exception_handler,
        "http_exception_handler": http_exception_handler,
        "database_exception_handler": database_exception_handler,
        "general_exception_handler": general_exception_handler,
    }


def add_middleware_to_app(
    app: FastAPI,
    service_name: str,
    max_request_size: int = 1 * 1024 * 1024,
    log_requests: bool = True,
    allowed_origins: Optional[list[str]] = None,
):
    """
    Add all standard middleware and exception handlers to a FastAPI app

    Args:
        app: FastAPI application instance
        service_name: Name of the service (for headers and logging)
        max_request_size: Maximum request body size in bytes
        log_requests: Whether to log requests
        allowed_origins: CORS origins, defaults to all
    """
    from fastapi.middleware.cors import CORSMiddleware

    # Order matters - last added is executed first
    app.add_middleware(SecurityHeadersMiddleware, service_name=service_name)
    app.add_middleware(
        RequestLoggingMiddleware,
        max_request_size=max_request_size,
        log_requests=log_requests,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    handlers = create_standard_error_handler()
    app.add_exception_handler(APIError, handlers["api_error_handler"])
    app.add_exception_handler(RequestValidationError, handlers["validation_exception_handler"])
    app.add_exception_handler(StarletteHTTPException, handlers["http_exception_handler"])
    app.add_exception_handler(asyncpg.PostgresError, handlers["database_exception_handler"])
    app.add_exception_handler(Exception, handlers["general_exception_handler"])
