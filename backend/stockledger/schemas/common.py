"""
Common API Response Schemas

Standardized error responses for consistent API behavior.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response for all API errors.

    Error Codes:
        - VALIDATION_ERROR: Request validation failed (400/422)
        - DUPLICATE_TARGET: Same inventory record twice in one adjustment (400)
        - INVALID_STATE: Operation not allowed for the document's status (400)
        - NOT_FOUND: Resource not found (404)
        - CONCURRENCY_ERROR: Concurrent modification detected (409)
        - PARTIAL_COMMIT: Some lines applied before a failure (409)
        - NEGATIVE_RESULT: A quantity would drop below zero (422)
        - DATABASE_ERROR: Database operation failed (500)
        - INTERNAL_ERROR: Unexpected internal error (500)
    """
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error context for debugging"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred (UTC)"
    )
