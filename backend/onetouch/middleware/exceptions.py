"""Application errors and the handlers that render them.

Every error leaves the API in one envelope:

    {"error": {"code": "WRONG_OFFICE", "message": "...", "details": {...}}}

Access-engine denials (`onetouch.auth.decisions.Denied`) are raised as
`AccessDeniedError`; the HTTP status comes from the denial reason
(403 for boundary and role denials, 400 for invalid status values,
illegal transitions and non-hierarchy roles).
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from onetouch.auth.decisions import Denied

logger = logging.getLogger(__name__)

Details = Union[dict, list, None]


class OneTouchException(Exception):
    """Base class for errors raised deliberately by OneTouch code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: Details = None,
        status_code: int | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details
        super().__init__(message)


class BusinessLogicError(OneTouchException):
    """Well-formed request that conflicts with stored data (duplicates, inactive partner)."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "BUSINESS_LOGIC_ERROR"


class BadRequestError(OneTouchException):
    """Missing context (office, company, category) or an over-limit batch."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "BAD_REQUEST"


class ResourceNotFoundError(OneTouchException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"{resource} not found: {identifier}",
            details={"resource": resource, "id": identifier},
        )


class AccessDeniedError(OneTouchException):
    """Raised for a `Denied` decision; keeps the denial for callers and logs."""

    def __init__(self, denial: Denied):
        self.denial = denial
        super().__init__(
            denial.message,
            error_code=denial.reason.error_code,
            details={"reason": denial.reason.value, **denial.details},
            status_code=denial.reason.http_status,
        )


class InvalidCredentialsError(OneTouchException):
    """Missing, expired, forged or incoherent bearer token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Details = None,
    headers: dict | None = None,
) -> JSONResponse:
    body = {"code": error_code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


def _request_context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


# ── Handlers ────────────────────────────────────────────────

async def onetouch_exception_handler(request: Request, exc: OneTouchException) -> JSONResponse:
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        level,
        f"{request.method} {request.url.path} → {exc.status_code} {exc.error_code}: {exc.message}",
        extra={"error_code": exc.error_code, **_request_context(request)},
    )

    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return create_error_response(
        exc.status_code, exc.message, exc.error_code, exc.details, headers,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Framework errors (unknown route, wrong method) in the common envelope."""
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_context(request))
    return create_error_response(
        exc.status_code,
        str(exc.detail),
        f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info(
        f"Rejected {request.method} {request.url.path}: {len(errors)} invalid field(s)",
        extra=_request_context(request),
    )
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        {"errors": errors},
    )


# (substring of the driver message, error code, client message)
_INTEGRITY_RULES = (
    ("unique", "DUPLICATE_RECORD", "A record with this identifier already exists"),
    ("foreign key", "FOREIGN_KEY_VIOLATION", "Referenced company, office, partner or item does not exist"),
    ("not null", "NULL_VALUE_NOT_ALLOWED", "Required field is missing"),
)


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Constraint violations that slipped past the routers' own checks."""
    driver_message = str(getattr(exc, "orig", exc))
    logger.error(
        f"Integrity error on {request.url.path}: {driver_message}",
        extra=_request_context(request),
    )

    lowered = driver_message.lower()
    for needle, code, message in _INTEGRITY_RULES:
        if needle in lowered:
            return create_error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, message, code)
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Database constraint violation", "INTEGRITY_ERROR",
    )


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"Database unavailable on {request.url.path}: {exc}", extra=_request_context(request))
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Database temporarily unavailable. Please try again.",
        "DATABASE_UNAVAILABLE",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Internal details stay in the log
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(OneTouchException, onetouch_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
