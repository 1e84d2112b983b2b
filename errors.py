"""
errors.py
Error taxonomy shared by the sync client and the REST server.

Usage:
    from errors import NetworkError, ServerError

    try:
        await transport.execute("/members")
    except NetworkError as e:
        logger.warning("server unreachable: %s", e.message)
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AcademyError",
    "NetworkError",
    "NotFoundError",
    "ServerError",
    "ValidationError",
]


class AcademyError(Exception):
    """Base exception for all academy errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        context: Extra detail for logs
    """
    code: str = "ACADEMY_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class NetworkError(AcademyError):
    """Server unreachable, connection dropped or attempt timed out."""
    code: str = "NETWORK_ERROR"


class ServerError(AcademyError):
    """Non-2xx response. Carries the HTTP status and reason phrase."""
    code: str = "SERVER_ERROR"
    status: int = 500

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reason: str = "",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if status is not None:
            self.status = status
        self.reason = reason

    @classmethod
    def from_status(cls, status: int, reason: str, context: dict[str, Any] | None = None) -> "ServerError":
        message = f"API Error: {status} {reason}".rstrip()
        if status == 404:
            return NotFoundError(message, status=status, reason=reason, context=context)
        if status == 400:
            return ValidationError(message, status=status, reason=reason, context=context)
        return cls(message, status=status, reason=reason, context=context)


class NotFoundError(ServerError):
    """Referenced entity or payment does not exist."""
    code: str = "NOT_FOUND"
    status: int = 404


class ValidationError(ServerError):
    """Request rejected by a domain rule."""
    code: str = "VALIDATION_ERROR"
    status: int = 400
