from __future__ import annotations


class EngineError(Exception):
    """Base class for errors surfaced verbatim to callers of the engine."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ValidationError(EngineError):
    """Referential or range violation on write. The write is rejected."""

    code = "VALIDATION_ERROR"


class NotFoundError(EngineError):
    code = "NOT_FOUND"


class SchedulingConflict(EngineError):
    """Weekday offsets or start date are incompatible with the template."""

    code = "SCHEDULING_CONFLICT"


class StateError(EngineError):
    """Illegal lifecycle transition. No mutation is performed."""

    code = "STATE_ERROR"


class TransientStoreError(EngineError):
    """Connectivity or timeout from the store. Safe to retry the whole transaction."""

    code = "TRANSIENT_STORE_ERROR"
