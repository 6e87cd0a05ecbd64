# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Error taxonomy and the FastAPI handlers that render it.

Services raise the subclasses of FlowPlayError below; the handlers turn them
into ``{"detail": message}`` JSON responses with the matching status code.
Storage and unexpected failures are logged with their traceback and reported
to the client as a generic 500 so that connection strings never leak.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class FlowPlayError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(FlowPlayError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthorized(FlowPlayError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"

    def __init__(self, message: str | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(FlowPlayError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(FlowPlayError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(FlowPlayError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


class PayloadTooLarge(FlowPlayError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    default_message = "Upload too large"


class RangeNotSatisfiable(FlowPlayError):
    status_code = status.HTTP_416_RANGE_NOT_SATISFIABLE
    default_message = "Range not satisfiable"

    def __init__(self, size: int):
        super().__init__(headers={"Content-Range": f"bytes */{size}"})


class RateLimited(FlowPlayError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please try again later."


class Internal(FlowPlayError):
    pass


async def _flowplay_error_handler(request: Request, exc: FlowPlayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=exc.headers,
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    message = first.get("msg", ValidationError.default_message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"{field}: {message}" if field else message, "errors": errors},
    )


async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_MESSAGE},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_MESSAGE},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the FlowPlay error handlers on the application."""
    app.add_exception_handler(FlowPlayError, _flowplay_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
