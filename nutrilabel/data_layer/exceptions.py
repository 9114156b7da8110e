"""Structured error types for the nutrition label engine.

Only input-contract violations are raised. Degraded results (fallback gram
conversions, unknown base types, parse warnings) are returned alongside
explicit flags instead.

    Override request  → OverrideValidationError   (record left unchanged)
    Record lookup     → RecordNotFoundError
    Stored payload    → RecordFormatError
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class LabelErrorCode(Enum):
    """Error codes, as string values for serialization and logging."""

    OVERRIDE_VALIDATION = "OVERRIDE_VALIDATION"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    RECORD_FORMAT = "RECORD_FORMAT"


class LabelPipelineError(Exception):
    """Base exception for all label engine errors.

    Attributes:
        code: LabelErrorCode identifying the error type
        message: Human-readable error description
        context: Dictionary of relevant error context
    """

    def __init__(
        self,
        code: LabelErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{code.value}] {message}")

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code!r}, "
            f"message={self.message!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context
        }


class OverrideValidationError(LabelPipelineError):
    """Raised when a manual override request is rejected.

    Raised before any state mutation: the record passed in is untouched.

    Context includes:
        - problems: list of individual validation messages
        - fields: offending field names (when field-specific)
    """

    def __init__(self, problems: List[str], fields: Optional[List[str]] = None):
        context: Dict[str, Any] = {"problems": list(problems)}
        if fields:
            context["fields"] = list(fields)
        super().__init__(
            code=LabelErrorCode.OVERRIDE_VALIDATION,
            message="; ".join(problems),
            context=context
        )
        self.problems = list(problems)
        self.fields = list(fields or [])


class RecordNotFoundError(LabelPipelineError):
    """Raised when the record store has no record for an id."""

    def __init__(self, record_id: str):
        super().__init__(
            code=LabelErrorCode.RECORD_NOT_FOUND,
            message=f"Record '{record_id}' not found",
            context={"record_id": record_id}
        )
        self.record_id = record_id


class RecordFormatError(LabelPipelineError):
    """Raised when a stored record cannot be deserialized."""

    def __init__(self, record_id: str, detail: str):
        super().__init__(
            code=LabelErrorCode.RECORD_FORMAT,
            message=f"Record '{record_id}' is malformed: {detail}",
            context={"record_id": record_id, "detail": detail}
        )
        self.record_id = record_id
