# errors.py
"""
Error taxonomy of the storefront core.

- OrderValidationError: the user has to fix something before moving on.
- ServiceError: a backend or network call failed; resubmitting may work.
- RateLimitedError: the AI service asked us to wait `retry_after` seconds.
- PaymentConfirmationError: the payment processor's message, shown as-is.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class IssueKind(str, Enum):
    MISSING_FIELD = "missing_field"
    INVALID_FIELD = "invalid_field"
    QUANTITY_BELOW_MINIMUM = "quantity_below_minimum"
    MISSING_ARTWORK = "missing_artwork"
    NO_PRINT_LOCATION = "no_print_location"
    NO_GARMENT = "no_garment"


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    field: Optional[str] = None
    message: str = ""


class StorefrontError(Exception):
    """Base class for every error raised by the storefront core."""


class OrderValidationError(StorefrontError):
    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        summary = "; ".join(issue.message for issue in self.issues) or "Order is incomplete"
        super().__init__(summary)


class ServiceError(StorefrontError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(ServiceError):
    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message, status_code=429)


class PaymentConfirmationError(StorefrontError):
    """Carries the processor's error message verbatim."""
