"""
Custom Exceptions

This module defines the exceptions raised by the analytics engine.

Validation errors (InvalidRangeError, MissingComparisonBoundsError,
InvalidLimitError) are always caused by user input and carry a
machine-readable ``reason`` the HTTP layer returns to the caller.
AggregationFailedError wraps storage failures; the original error is kept
for logging but never sent to the caller.

Unknown timezones are deliberately NOT an exception: they degrade to UTC
(see app.services.timezone_offsets).
"""

from typing import Optional


class AnalyticsError(Exception):
    """Base exception for the analytics service."""
    pass


class ValidationError(AnalyticsError):
    """Base class for client errors detected before any aggregation runs."""

    reason = "invalid_request"

    def __init__(self, message: str, reason: Optional[str] = None):
        if reason is not None:
            self.reason = reason
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"reason": self.reason, "message": self.message}


class InvalidRangeError(ValidationError):
    """Raised when date bounds are malformed or inverted."""

    reason = "invalid_range"


class MissingComparisonBoundsError(ValidationError):
    """Raised when comparison=custom is requested without both bounds."""

    reason = "missing_comparison_bounds"

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"{' and '.join(missing)} required when comparison=custom"
        )


class InvalidLimitError(ValidationError):
    """Raised when a leaderboard limit falls outside the allowed bound."""

    reason = "invalid_limit"

    def __init__(self, limit: int, minimum: int, maximum: int):
        self.limit = limit
        super().__init__(f"limit must be between {minimum} and {maximum}, got {limit}")


class AggregationFailedError(AnalyticsError):
    """Raised when an underlying storage read fails."""

    def __init__(self, operation: str, original_error: Optional[Exception] = None):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Aggregation failed: {operation}")
