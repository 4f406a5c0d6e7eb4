"""
errors.py — taxengine error taxonomy and the standard error envelope.

Every error is raised while validating inputs, before any tax arithmetic runs.
Once validation passes the computation is total and cannot fail.

  InvalidInputError            → VALIDATION_ERROR   (non-numeric, negative, out-of-domain input)
  NotFoundError                → NOT_FOUND          (no slab table for regime/category/fiscal year)
  UnknownDeductionSectionError → UNKNOWN_DEDUCTION_SECTION

All three subclass ValueError so a caller's existing ValueError handler keeps working.
to_response() builds the {"error": {"code", "message", "details"}} envelope.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Error response models
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single field-level validation error."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "claims.2.claimed_amount"
    issue: str                     # Human-readable description of the problem


class ErrorBody(BaseModel):
    """Error envelope body."""
    model_config = ConfigDict(extra="forbid")

    code: str
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    Structure: {"error": {"code": "...", "message": "...", "details": [...]}}
    """
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TaxEngineError(ValueError):
    """Base class for structured taxengine errors."""

    code = "TAX_ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Iterable[ErrorDetail]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: list[ErrorDetail] = list(details or [])

    @classmethod
    def for_field(cls, field: Optional[str], issue: str) -> "TaxEngineError":
        return cls(issue, [ErrorDetail(field=field, issue=issue)])

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=ErrorBody(code=self.code, message=self.message, details=self.details)
        )


class InvalidInputError(TaxEngineError):
    code = "VALIDATION_ERROR"


class NotFoundError(TaxEngineError):
    code = "NOT_FOUND"


class UnknownDeductionSectionError(TaxEngineError):
    code = "UNKNOWN_DEDUCTION_SECTION"


__all__ = [
    "ErrorDetail",
    "ErrorBody",
    "ErrorResponse",
    "TaxEngineError",
    "InvalidInputError",
    "NotFoundError",
    "UnknownDeductionSectionError",
]
