"""Exception classes for the farm stall services."""

from __future__ import annotations

from typing import Any, Optional


class FarmStallError(Exception):
    """Base class for every error raised by the services."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FarmStallError, ValueError):
    """User input failed a precondition. Nothing was written."""


class BatchStateError(ValidationError):
    """A batch operation was called in the wrong workflow state."""


class PersistenceError(FarmStallError):
    """A read, write or subscription against the document store failed."""


class PartialBatchError(PersistenceError):
    """Some staged items were persisted before a later one failed."""

    def __init__(
        self,
        message: str,
        *,
        persisted_ids: list[str],
        failed_indices: list[int],
        details: Optional[dict[str, Any]] = None,
    ):
        self.persisted_ids = list(persisted_ids)
        self.failed_indices = list(failed_indices)
        merged = {"persisted_ids": self.persisted_ids, "failed_indices": self.failed_indices}
        merged.update(details or {})
        super().__init__(message, merged)
