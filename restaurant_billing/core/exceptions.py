"""
Billing Engine Error Taxonomy

Every failure the engine reports derives from BillingError. Each class
carries the HTTP status the API layer answers with, so route handlers
never translate errors by hand.
"""

from typing import Optional


class BillingError(Exception):
    """Base class for all engine errors."""

    status_code: int = 500
    error: str = "Billing Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BillingError):
    """Malformed input (bad quantity, price or table number)."""

    status_code = 400
    error = "Validation Error"


class NotFoundError(BillingError):
    """Unknown order or menu item."""

    status_code = 404
    error = "Not Found"


class InvalidTransitionError(BillingError):
    """A state machine rule was violated."""

    status_code = 400
    error = "Invalid Transition"


class ConflictError(BillingError):
    """The record changed between read and write, or already exists."""

    status_code = 409
    error = "Conflict"

    def __init__(
        self,
        message: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version


class PaymentProviderError(BillingError):
    """Upstream payment provider failure. The order is left unpaid."""

    status_code = 502
    error = "Payment Provider Error"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code
