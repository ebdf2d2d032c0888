"""Translate domain errors into JSON error responses"""
import logging
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from domain.errors import (
    DomainError, Unauthenticated, Forbidden, NotFound, Conflict, InvalidTransition,
    RoomUnavailable, PreconditionFailed, RateLimited, StoreTimeout
)

logger = logging.getLogger(__name__)

STATUS_CODES: Dict[Type[DomainError], int] = {
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    RoomUnavailable: status.HTTP_400_BAD_REQUEST,
    PreconditionFailed: status.HTTP_400_BAD_REQUEST,
    RateLimited: status.HTTP_429_TOO_MANY_REQUESTS,
    StoreTimeout: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: DomainError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            return STATUS_CODES[error_type]
    return status.HTTP_400_BAD_REQUEST


def error_body(message: str, error: str, **extra) -> dict:
    body = {"success": False, "message": message, "error": error}
    body.update(extra)
    return body


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    extra = {}
    headers = {}
    if isinstance(exc, Unauthenticated):
        extra["reason"] = exc.reason.value
        headers["WWW-Authenticate"] = "Bearer"
    elif isinstance(exc, RateLimited):
        extra["retry_after"] = exc.retry_after_seconds
        headers["Retry-After"] = str(exc.retry_after_seconds)

    code = status_code_for(exc)
    logger.debug("%s %s -> %d %s", request.method, request.url.path, code, exc.kind)
    return JSONResponse(
        status_code=code,
        content=error_body(exc.message, exc.kind, **extra),
        headers=headers or None
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(str(exc), "bad_request")
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_body("Invalid request data", "validation_error", details=_jsonable(exc.errors()))
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", "internal_error")
    )


def _jsonable(errors) -> list:
    # pydantic error contexts may hold exception instances
    return [
        {key: (str(value) if key == "ctx" else value) for key, value in error.items()}
        for error in errors
    ]


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
