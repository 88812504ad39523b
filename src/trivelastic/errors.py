"""
Custom exceptions for the trivelastic service.
"""

from typing import Any, Dict, Optional


class TrivelasticError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(TrivelasticError):
    """Process configuration is missing or invalid. Fatal at startup."""

    pass


class DeliveryError(TrivelasticError):
    """Document could not be indexed within the attempt budget."""

    def __init__(
        self,
        message: str,
        attempts: int,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            {
                "attempts": attempts,
                "status_code": status_code,
            },
        )
        self.attempts = attempts
        self.status_code = status_code
        self.response_body = response_body


class RequestError(TrivelasticError):
    """Caller input that cannot be processed (wrong method, bad body)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
