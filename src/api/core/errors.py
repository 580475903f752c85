"""
Domain errors and their HTTP mapping

Handlers raise these instead of building error responses by hand; the
exception handlers registered in main.py turn them into the standard
envelope ``{"success": false, "message": ...}``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from src.api.config import settings

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors that map onto an HTTP status"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class PermissionDeniedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Admin privileges required"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Record not found."


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Duplicate entry. This record already exists."


DUPLICATE_MESSAGE = "Duplicate entry. This record already exists."
REFERENCED_MESSAGE = "Cannot delete record. It is referenced by other records."


def conflict_from_integrity_error(exc: IntegrityError) -> ConflictError:
    """
    Translate a database constraint violation into a ConflictError

    Unique violations and foreign-key violations are told apart by the
    driver message, which differs between PostgreSQL and SQLite but always
    names the constraint kind.
    """
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if "foreign key" in text:
        return ConflictError(REFERENCED_MESSAGE)
    return ConflictError(DUPLICATE_MESSAGE)


def envelope_error(status_code: int, message: str, error: Optional[str] = None,
                   details: Any = None) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "message": message}
    if details is not None:
        content["details"] = details
    if error and settings.expose_errors:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    response = envelope_error(exc.status_code, exc.message, details=exc.details)
    if isinstance(exc, AuthenticationError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def integrity_error_handler(request: Request, exc: IntegrityError):
    conflict = conflict_from_integrity_error(exc)
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return envelope_error(conflict.status_code, conflict.message, error=str(exc.orig))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    reason = first.get("msg", "invalid value")
    message = f"Validation error: {field} - {reason}" if field else f"Validation error: {reason}"
    return envelope_error(
        status.HTTP_400_BAD_REQUEST,
        message,
        details=[
            {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
            for e in errors
        ],
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return envelope_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        error=str(exc),
    )
