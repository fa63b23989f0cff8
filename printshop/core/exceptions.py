# printshop/core/exceptions.py
"""
Domain exceptions & FastAPI handlers for the PrintShop order service.

- One base class (PrintShopException) carrying message/code/extra/http_status
- Order-lifecycle errors (InvalidSpec, UnknownRate, GuardViolation, AlreadyTransitioned, NotPayable)
- Global FastAPI handlers with structured logging via printshop.core.logging
- RFC 7807-style JSON body (application/problem+json)
- IntegrityError mapping (duplicate, foreign key, check) to 409
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException

from printshop.core.logging import bound_context, get_logger, redact_secrets

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Custom domain exceptions
# -----------------------------------------------------------------------------


class PrintShopException(Exception):
    """Base domain exception."""

    default_code = "PRINTSHOP_ERROR"
    default_status = status.HTTP_400_BAD_REQUEST
    title = "Bad request"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        *,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        http_status: Optional[int] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.extra = extra or {}
        self.headers = headers or {}
        self.http_status = http_status or self.default_status
        super().__init__(self.message)


class InvalidSpec(PrintShopException):
    """Order fields rejected before anything is written."""

    default_code = "INVALID_SPEC"
    default_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    title = "Invalid order"


class UnknownRate(InvalidSpec):
    """No catalog rate for the (product_type, material) pair."""

    default_code = "UNKNOWN_RATE"


class GuardViolation(PrintShopException):
    """Action is not legal from the order's current state."""

    default_code = "GUARD_VIOLATION"
    default_status = status.HTTP_409_CONFLICT
    title = "Transition not allowed"


class ClientNotApproved(GuardViolation):
    default_code = "CLIENT_NOT_APPROVED"
    default_status = status.HTTP_403_FORBIDDEN
    title = "Forbidden"


class AlreadyTransitioned(PrintShopException):
    """Conditional write matched zero rows: someone else moved the order first."""

    default_code = "ALREADY_TRANSITIONED"
    default_status = status.HTTP_409_CONFLICT
    title = "Conflict"


class NotFoundError(PrintShopException):
    default_code = "NOT_FOUND"
    default_status = status.HTTP_404_NOT_FOUND
    title = "Resource not found"


class NotPayable(PrintShopException):
    default_code = "NOT_PAYABLE"
    default_status = status.HTTP_409_CONFLICT
    title = "Order is not payable"


class VendorInUse(PrintShopException):
    default_code = "VENDOR_IN_USE"
    default_status = status.HTTP_409_CONFLICT
    title = "Conflict"


class ConflictError(PrintShopException):
    default_code = "CONFLICT"
    default_status = status.HTTP_409_CONFLICT
    title = "Conflict"


# -----------------------------------------------------------------------------
# problem+json rendering
# -----------------------------------------------------------------------------
_DUP_RE = re.compile(r"duplicate key|unique constraint|unique violation", re.IGNORECASE)
_FK_RE = re.compile(r"foreign key", re.IGNORECASE)
_CHECK_RE = re.compile(r"check constraint", re.IGNORECASE)


def _problem(
    request: Request,
    status_code: int,
    title: str,
    detail: str,
    code: str,
    *,
    extra: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """RFC 7807 style body: type/title/status/detail/code plus optional extra."""
    body: Dict[str, Any] = {
        "type": f"https://httpstatuses.com/{status_code}",
        "title": title,
        "status": status_code,
        "detail": detail,
        "code": code,
        "instance": request.url.path,
    }
    if extra:
        body["extra"] = redact_secrets(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body),
        headers=headers or None,
        media_type="application/problem+json",
    )


def _integrity_code(exc: IntegrityError) -> Tuple[str, str]:
    text = str(getattr(exc, "orig", exc))
    if _DUP_RE.search(text):
        return "A record with this value already exists", "DUPLICATE_VALUE"
    if _FK_RE.search(text):
        return "Referenced record does not exist or is still in use", "FOREIGN_KEY_ERROR"
    if _CHECK_RE.search(text):
        return "Invalid value provided", "INVALID_VALUE"
    return "A database constraint was violated", "INTEGRITY_ERROR"


# -----------------------------------------------------------------------------
# Handlers
# -----------------------------------------------------------------------------
async def printshop_exception_handler(request: Request, exc: PrintShopException) -> JSONResponse:
    logger.warning("domain_exception", exception_type=type(exc).__name__, code=exc.code, detail=exc.message, extra=exc.extra)
    return _problem(request, exc.http_status, exc.title, exc.message, exc.code, extra=exc.extra, headers=exc.headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.info("http_exception", status_code=exc.status_code, detail=exc.detail)
    return _problem(
        request,
        exc.status_code,
        f"HTTP {exc.status_code}",
        str(exc.detail),
        f"HTTP_{exc.status_code}",
        headers=exc.headers,
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]
    logger.warning("request_validation_error", errors=errors)
    return _problem(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "Request validation failed",
        "REQUEST_VALIDATION_ERROR",
        extra={"errors": errors},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    detail, code = _integrity_code(exc)
    logger.warning("integrity_error", code=code, error=str(getattr(exc, "orig", exc)))
    return _problem(request, status.HTTP_409_CONFLICT, "Integrity error", detail, code)


async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("db_operational_error", exc_info=exc)
    return _problem(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Database unavailable",
        "Database is temporarily unavailable. Please retry later.",
        "DB_UNAVAILABLE",
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("sqlalchemy_error", exc_info=exc)
    return _problem(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error", "Database operation failed", "DB_ERROR")


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # runs outside the logging middleware, so the request id is bound here
    with bound_context(request_id=request.headers.get("x-request-id")):
        logger.error("unhandled_exception", exc_info=exc, path=request.url.path, method=request.method)
    return _problem(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PrintShopException, printshop_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


__all__ = [
    "PrintShopException",
    "InvalidSpec",
    "UnknownRate",
    "GuardViolation",
    "ClientNotApproved",
    "AlreadyTransitioned",
    "NotFoundError",
    "NotPayable",
    "VendorInUse",
    "ConflictError",
    "register_exception_handlers",
]
