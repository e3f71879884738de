"""
Laundry Service — Error taxonomy

Every domain failure is a LaundryError subclass carrying the HTTP status it
maps to. The handler registered in main.py renders them as
{"detail": ..., "code": ..., **extra}.
"""
import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LaundryError(Exception):
    status_code: int = 400
    code: str = "laundry_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class ValidationError(LaundryError):
    """Malformed or missing input (bad phone, empty address, unknown service)."""
    status_code = 422
    code = "validation_error"


class NotFoundError(LaundryError):
    status_code = 404
    code = "not_found"


class InvalidTransitionError(LaundryError):
    """Status change not present in the allowed-next table."""
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, requested: str, allowed: list[str]):
        super().__init__(
            f"Cannot move order from '{current}' to '{requested}'.",
            current=current,
            requested=requested,
            allowed=allowed,
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed


class AccessError(LaundryError):
    status_code = 403
    code = "access_denied"

    def __init__(self, message: str, redirect_to: str | None = None, **extra: Any):
        super().__init__(message, redirect_to=redirect_to, **extra)
        self.redirect_to = redirect_to


class Unauthenticated(AccessError):
    status_code = 401
    code = "unauthenticated"


class AccountDeactivated(AccessError):
    code = "account_deactivated"


class RoleMismatch(AccessError):
    code = "role_mismatch"


class ConflictError(LaundryError):
    """Stale write: the record changed since the caller read it. Retryable."""
    status_code = 409
    code = "conflict"

    def __init__(self, message: str, current_version: int | None = None):
        super().__init__(message, current_version=current_version, retryable=True)
        self.current_version = current_version


class ExternalServiceError(LaundryError):
    status_code = 503
    code = "external_service_error"


class GeolocationError(LaundryError):
    """Unusable coordinates. Callers fall back to manual address entry."""
    status_code = 422
    code = "geolocation_error"


async def laundry_error_handler(request: Request, exc: LaundryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
