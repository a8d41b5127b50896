"""
Exceptions for the recovery engine.

Insufficient data and missing scores are ordinary outcomes: most code paths
express them as absent values. The exception forms exist for the call sites
that strictly require the data. Validation and computation errors are real
failures of a single operation. Delivery errors never leave the alert engine.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for mapping onto an outer transport."""

    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    COMPUTATION_ERROR = "COMPUTATION_ERROR"
    DELIVERY_ERROR = "DELIVERY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RecoveryEngineError(Exception):
    """
    Base exception for all recovery engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for an outer response."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class InsufficientDataError(RecoveryEngineError):
    """Raised when a baseline or trend is strictly required but not yet computable."""

    def __init__(
        self,
        metric: str,
        available_days: int = 0,
        required_days: int = 0,
    ) -> None:
        super().__init__(
            message=(
                f"Not enough {metric} data yet: {available_days} of "
                f"{required_days} days available"
            ),
            code=ErrorCode.INSUFFICIENT_DATA,
            details={
                "metric": metric,
                "available_days": available_days,
                "required_days": required_days,
            },
        )
        self.metric = metric


class ValidationError(RecoveryEngineError):
    """Raised when a signal value falls outside physiological bounds."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=error_details,
        )
        self.field = field


class NotFoundError(RecoveryEngineError):
    """Raised when a requested record does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["resource_type"] = resource_type
        error_details["resource_id"] = resource_id
        super().__init__(
            message=f"{resource_type} '{resource_id}' not found",
            code=ErrorCode.NOT_FOUND,
            details=error_details,
        )


class ComputationError(RecoveryEngineError):
    """Raised on an internal invariant violation. Always a bug."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.COMPUTATION_ERROR,
            details=details,
        )


class DeliveryError(RecoveryEngineError):
    """Raised by a notification sender when transport fails."""

    def __init__(
        self,
        channel: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["channel"] = channel
        super().__init__(
            message=f"{channel} delivery failed: {message}",
            code=ErrorCode.DELIVERY_ERROR,
            details=error_details,
        )
        self.channel = channel
