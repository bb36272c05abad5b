"""
StockLedger - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the reconciliation services.

Usage:
    from stockledger.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Inventory", inventory_id)
    raise ValidationError("Reason code is required", field="reason_code")
"""
from typing import Any, Dict, List, Optional


class StockLedgerException(Exception):
    """
    Base exception for all StockLedger errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "VALIDATION_ERROR")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "STOCKLEDGER_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(StockLedgerException):
    """Raised when input validation fails. Never touches the store."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        line_index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        if line_index is not None:
            details["line_index"] = line_index
        super().__init__(message, details=details)


class DuplicateTargetError(ValidationError):
    """Raised when one adjustment batch names the same inventory record twice."""

    error_code = "DUPLICATE_TARGET"

    def __init__(
        self,
        inventory_id: int,
        *,
        line_indexes: Optional[List[int]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["inventory_id"] = inventory_id
        if line_indexes:
            details["line_indexes"] = line_indexes
        super().__init__(
            f"Inventory record {inventory_id} appears more than once in this adjustment. "
            f"Each record can only be adjusted once per adjustment.",
            details=details,
        )


class InvalidStateError(StockLedgerException):
    """Raised when an operation is invalid for the current state."""

    error_code = "INVALID_STATE"
    status_code = 400

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(StockLedgerException):
    """Raised when a referenced record no longer exists."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# 409 Conflict Errors
# ===================


class ConflictError(StockLedgerException):
    """Raised when there's a resource conflict."""

    error_code = "CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource conflict",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class ConcurrencyError(ConflictError):
    """Raised when concurrent modification is detected."""

    error_code = "CONCURRENCY_ERROR"

    def __init__(
        self,
        message: str = "Resource was modified by another user",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class PartialCommitError(ConflictError):
    """
    Raised when a multi-line operation committed some lines before a
    downstream write failed.

    ``succeeded`` lists the ids of the sub-operations that are durable so the
    caller can retry only the remainder.
    """

    error_code = "PARTIAL_COMMIT"

    def __init__(
        self,
        message: str = "Operation was only partially applied",
        *,
        succeeded: Optional[List[Any]] = None,
        failed_index: Optional[int] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        self.succeeded = list(succeeded or [])
        self.failed_index = failed_index
        self.cause = cause
        details["succeeded"] = self.succeeded
        details["succeeded_count"] = len(self.succeeded)
        if failed_index is not None:
            details["failed_index"] = failed_index
        if cause is not None:
            details["cause"] = str(cause)
            if isinstance(cause, StockLedgerException):
                details["cause_code"] = cause.error_code
        super().__init__(message, details=details)


# ===================
# 422 Unprocessable Entity Errors
# ===================


class BusinessRuleError(StockLedgerException):
    """Raised when a business rule is violated."""

    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422

    def __init__(
        self,
        message: str = "Business rule violation",
        *,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if rule:
            details["rule"] = rule
        super().__init__(message, details=details)


class NegativeResultError(BusinessRuleError):
    """Raised when on-hand, allocated or a computed new quantity would drop below zero."""

    error_code = "NEGATIVE_RESULT"

    def __init__(
        self,
        message: str = "Resulting quantity would be negative",
        *,
        quantity_field: Optional[str] = None,
        current: Any = None,
        delta: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if quantity_field:
            details["quantity_field"] = quantity_field
        if current is not None:
            details["current"] = str(current)
        if delta is not None:
            details["delta"] = str(delta)
        super().__init__(message, rule="non_negative_quantity", details=details)
