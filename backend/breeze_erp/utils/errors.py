"""Centralized error codes, error envelope helpers and domain exceptions.

Services raise :class:`DomainError` subclasses; the application-level handler
renders them with the standard error envelope and the subclass HTTP status.
"""
from __future__ import annotations
from fastapi import HTTPException, status
from typing import Any, Dict
import time

ERROR_CODES = {
    "validation": "VALIDATION_ERROR",
    "not_found": "NOT_FOUND",
    "unauthorized": "UNAUTHORIZED",
    "forbidden": "FORBIDDEN",
    "auth_invalid": "AUTH_INVALID_CREDENTIALS",
    "auth_expired": "AUTH_TOKEN_EXPIRED",
    "conflict": "CONFLICT",
    "business_rule": "BUSINESS_RULE",
    "insufficient_stock": "INSUFFICIENT_STOCK",
    "rate_limited": "RATE_LIMITED",
    "db": "DB_ERROR",
    "internal": "INTERNAL_SERVER_ERROR",
}


def error_payload(code: str, message: str, details: Any | None = None, path: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "status": "error",
        "error": {
            "code": code,
            "message": message,
        },
        "timestamp": time.time(),
    }
    if details is not None:
        payload["error"]["details"] = details
    if path:
        payload["path"] = path
    return payload


def http_error(status_code: int, code: str, message: str, headers: Dict[str, str] | None = None) -> HTTPException:
    """Build an HTTPException carrying a ``code`` attribute for the global handler."""
    exc = HTTPException(status_code=status_code, detail=message, headers=headers)
    setattr(exc, "code", code)
    return exc


class DomainError(Exception):
    """Base domain error storing standardized fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = ERROR_CODES["business_rule"]

    def __init__(self, message: str, details: Any | None = None, code: str | None = None):  # noqa: D401
        super().__init__(message)
        self.message = message
        self.details = details
        if code:
            self.code = code


class ValidationError(DomainError):
    code = ERROR_CODES["validation"]


class BusinessRuleError(DomainError):
    code = ERROR_CODES["business_rule"]


class InsufficientStock(BusinessRuleError):
    code = ERROR_CODES["insufficient_stock"]


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ERROR_CODES["not_found"]


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = ERROR_CODES["conflict"]


class PermissionDeniedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = ERROR_CODES["forbidden"]


class RateLimitedError(DomainError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = ERROR_CODES["rate_limited"]


__all__ = [
    "ERROR_CODES",
    "error_payload",
    "http_error",
    "DomainError",
    "ValidationError",
    "BusinessRuleError",
    "InsufficientStock",
    "NotFoundError",
    "ConflictError",
    "PermissionDeniedError",
    "RateLimitedError",
]
