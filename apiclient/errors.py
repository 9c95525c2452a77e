"""
Error Taxonomy
--------------
Typed errors raised by the client core.

Every call ends in either a result or exactly one of these errors.
The core never retries; callers decide their own policy.
"""

from enum import Enum, auto
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    CONSTRUCTION = auto()   # An option failed while building the client
    CANCELLATION = auto()   # Caller's context was cancelled or expired
    TRANSPORT = auto()      # Network/HTTP failure below the core
    DECODE = auto()         # Body did not fit the decode target
    LIFECYCLE = auto()      # Client used after close


class APIClientError(Exception):
    """
    Base class for all client core errors.

    Carries a category and optional details for structured logging.
    """

    category: ErrorCategory = ErrorCategory.TRANSPORT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.category.name}: {self.message})"


class ConstructionError(APIClientError):
    """Raised when a client option is invalid. No client is returned."""
    category = ErrorCategory.CONSTRUCTION


class CancellationError(APIClientError):
    """Raised when the request context is cancelled."""
    category = ErrorCategory.CANCELLATION

    def __init__(self, message: str = "context cancelled", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class DeadlineExceededError(CancellationError):
    """Raised when the request context's deadline passes."""

    def __init__(self, message: str = "context deadline exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class TransportError(APIClientError):
    """
    Raised on network or HTTP transport failure.

    The underlying httpx exception is chained as __cause__.
    """
    category = ErrorCategory.TRANSPORT


class DecodeError(APIClientError):
    """Raised when a response body is not valid JSON or does not fit the target."""
    category = ErrorCategory.DECODE

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.status_code = status_code


class ClientClosedError(APIClientError):
    """Raised when dispatching on a client after aclose()."""
    category = ErrorCategory.LIFECYCLE


# Categories an embedding client may reasonably retry
_RETRYABLE = {ErrorCategory.TRANSPORT}


def is_retryable(error: BaseException) -> bool:
    """Check whether an error is worth retrying by the caller."""
    if isinstance(error, APIClientError):
        return error.category in _RETRYABLE
    return False
