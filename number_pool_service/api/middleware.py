"""Middleware and error handlers for the FastAPI adapter."""

import time
from typing import Callable

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from number_pool_service.config.logging import (
    LoggingService,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from number_pool_service.exceptions import InvalidArgumentError, NumberPoolError

logging_service = LoggingService(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def error_body(exc: NumberPoolError) -> dict:
    return {"error": exc.error, "message": exc.message, "details": exc.details}


async def number_pool_error_handler(request: Request, exc: NumberPoolError) -> JSONResponse:
    """Render an engine error as {error, message, details} with its status code.

    Capacity and validation errors are the caller's to fix and log at
    WARNING; infrastructure failures log at ERROR.
    """
    logging_service.log_operation(
        "error" if exc.status_code >= 500 else "warning",
        f"{request.method} {request.url.path} rejected: {exc.message}",
        operation="error_handling",
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        **{key: value for key, value in exc.details.items() if key in ("requested", "available", "remaining")}
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Adopts the caller's X-Correlation-ID or mints one, and echoes it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        set_correlation_id(request.headers.get(CORRELATION_HEADER) or generate_correlation_id())

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access record per request with its status and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)

        identity = request.headers.get("X-User-Id")
        logging_service.log_operation(
            "info",
            f"{request.method} {request.url.path} -> {response.status_code}",
            user_id=identity.strip() if identity else None,
            operation="request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_ms=round((time.perf_counter() - started) * 1000, 2)
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort handler for errors that escape the route handlers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except HTTPException:
            raise

        except NumberPoolError as e:
            return await number_pool_error_handler(request, e)

        except ValidationError as e:
            # A model built inside the engine rejected its input
            invalid = InvalidArgumentError(
                "Invalid request data",
                details={"errors": [error["msg"] for error in e.errors()]}
            )
            return await number_pool_error_handler(request, invalid)

        except Exception as e:
            logging_service.log_error(
                f"Unhandled error on {request.method} {request.url.path}",
                e,
                operation="error_handling"
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "message": "An unexpected error occurred",
                    "details": {"correlation_id": get_correlation_id()}
                }
            )
