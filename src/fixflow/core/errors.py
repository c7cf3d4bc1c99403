"""Error categories and exception hierarchy for the batch core.

All fixflow exceptions inherit from FixflowError, so callers can catch
broadly or narrowly. Stage failures carry the ErrorCategory recorded in
the item's terminal PipelineResult; ConfigurationError is the only error
that aborts a whole batch, and it is raised before any item starts.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Terminal failure category of a work item."""

    CONTEXT_FETCH = "ContextFetchError"
    GENERATION = "GenerationError"
    VALIDATION_EXHAUSTED = "ValidationExhausted"
    FINALIZE = "FinalizeError"
    SKIPPED = "Skipped"
    INTERNAL = "InternalError"


class FixflowError(Exception):
    """Base exception for all fixflow errors."""


class ConfigurationError(FixflowError):
    """Raised when batch options or the submitted items are invalid.

    Examples: max_concurrent <= 0, duplicate work item ids.
    """


class PipelineStageError(FixflowError):
    """A pipeline stage failed for one work item.

    Attributes:
        category: Category recorded in the item's result.
        work_item_id: Item whose pipeline failed.
        attempts: Generation cycles started when the failure happened.
    """

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, work_item_id: str, message: str, attempts: int = 1) -> None:
        self.work_item_id = work_item_id
        self.attempts = attempts
        super().__init__(message)


class ContextFetchError(PipelineStageError):
    """Fetching the item's context failed."""

    category = ErrorCategory.CONTEXT_FETCH


class GenerationError(PipelineStageError):
    """The candidate generator failed or returned nothing usable."""

    category = ErrorCategory.GENERATION


class FinalizeError(PipelineStageError):
    """Persisting an accepted candidate failed."""

    category = ErrorCategory.FINALIZE


__all__ = [
    "ConfigurationError",
    "ContextFetchError",
    "ErrorCategory",
    "FinalizeError",
    "FixflowError",
    "GenerationError",
    "PipelineStageError",
]
