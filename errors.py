"""ddlambda error hierarchy and exceptions."""

from __future__ import annotations

from typing import Any


class DDLambdaError(Exception):
    """Base exception for all ddlambda errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(DDLambdaError):
    """Raised when configuration is invalid or conflicting."""
    pass


class MetricsDeliveryError(DDLambdaError):
    """Raised when a batch of distribution metrics could not be delivered."""
    pass


class InitializationError(DDLambdaError):
    """Raised when the wrapped handler cannot be located or loaded."""
    pass


class InstrumentationError(DDLambdaError):
    """Raised when instrumentation/patching fails."""
    pass


class HandlerError(DDLambdaError):
    """
    Raised when a callback-style handler reports an error that is not an exception.

    The original value is kept on ``error`` so callers can inspect it unchanged.
    """

    def __init__(self, error: Any):
        super().__init__("handler reported an error", {"error": repr(error)})
        self.error = error
