"""
Engine error hierarchy.

Provides:
- ProgressionError: base for all engine failures
- InvalidActivityError: rejected before any write (unknown event, bad amount)
- StoreWriteError: the durable store failed; the whole operation was rolled back
- QuotaExceededError: a quota-gated action was refused

Badge uniqueness conflicts are not errors; they are treated as no-ops.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from studybuddy.engines.entitlements.resolver import QuotaDecision


class ProgressionError(Exception):
    """Base exception for progression and entitlement failures."""

    error_code = "PROGRESSION_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class InvalidActivityError(ProgressionError):
    """Raised when an activity or amount fails validation. No state has changed."""

    error_code = "INVALID_ACTIVITY"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.field is not None:
            d["field"] = self.field
        return d


class StoreWriteError(ProgressionError):
    """
    Raised when the durable store rejects or fails a write.

    Callers must not assume partial success. Retry policy belongs to the caller.
    """

    error_code = "STORE_WRITE_FAILED"

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store write failed during {operation}")


class QuotaExceededError(ProgressionError):
    """Raised when a quota-gated action is refused. Carries the structured decision."""

    error_code = "QUOTA_EXCEEDED"

    def __init__(self, decision: "QuotaDecision"):
        self.decision = decision
        super().__init__(
            f"Quota for {decision.feature} exhausted: {decision.used}/{decision.limit} used"
        )

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update(self.decision.model_dump(mode="json"))
        return d
