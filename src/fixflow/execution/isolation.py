"""Fault isolation around per-item pipeline runs.

Every pipeline invocation the scheduler starts goes through
``run_isolated``, which always returns an ``IndexedResult``: exceptions
raised by any stage become a failed result for that item only.
Cancellation of the item's task is not an item failure and is re-raised;
a ``CancelledError`` raised by a collaborator while the task is not being
cancelled is recorded as an ``InternalError`` result like any other error.
"""

from __future__ import annotations

import asyncio

from fixflow.core.errors import ErrorCategory, PipelineStageError
from fixflow.core.logging import get_logger
from fixflow.core.models import IndexedResult, PipelineResult, ScoredWorkItem
from fixflow.execution.pipeline import PipelineRunner

_logger = get_logger("isolation")


def _describe(error: BaseException) -> str:
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__


def failed_result(
    work_item_id: str,
    category: ErrorCategory,
    message: str,
    attempts: int = 1,
) -> PipelineResult:
    return PipelineResult(
        work_item_id=work_item_id,
        success=False,
        attempts=max(1, attempts),
        error_category=category,
        message=message,
    )


async def run_isolated(runner: PipelineRunner, scored: ScoredWorkItem) -> IndexedResult:
    """Run one item's pipeline, converting any failure into a result.

    Args:
        runner: Pipeline runner for the batch.
        scored: The item to run, with its submission index.

    Returns:
        The item's terminal result tagged with its submission index.
    """
    item = scored.item
    try:
        result = await runner.run(item)
    except PipelineStageError as e:
        _logger.warning(
            "isolation.stage_failed",
            work_item_id=item.id,
            category=e.category.value,
            error=str(e),
        )
        result = failed_result(item.id, e.category, str(e), e.attempts)
    except Exception as e:
        _logger.exception(
            "isolation.unexpected_error",
            work_item_id=item.id,
            error_type=type(e).__name__,
        )
        result = failed_result(item.id, ErrorCategory.INTERNAL, _describe(e))
    except asyncio.CancelledError as e:
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            raise
        _logger.warning(
            "isolation.stray_cancellation",
            work_item_id=item.id,
            error=_describe(e),
        )
        result = failed_result(item.id, ErrorCategory.INTERNAL, _describe(e))
    return IndexedResult(index=scored.index, result=result)


__all__ = ["failed_result", "run_isolated"]
