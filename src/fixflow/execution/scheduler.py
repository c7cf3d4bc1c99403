"""Bounded-concurrency scheduler for batch pipelines.

Drains a priority-ordered list of work items, keeping at most
``max_concurrent`` pipeline tasks in flight. After every completion the
in-flight set is refilled up to the cap, so every queued item is started
eventually unless the batch deadline passes first.

The in-flight map is owned by the single coroutine running ``run()``;
tasks never touch it, so starts and completions are serialized without
a lock.

Deadline handling is cooperative: once the deadline has passed no new
item is started and every item still queued gets a ``Skipped`` result.
Items already in flight run to completion.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from fixflow.core.errors import ErrorCategory
from fixflow.core.logging import ExecutionContext, get_current_context, get_logger, with_context
from fixflow.core.models import IndexedResult, ScoredWorkItem
from fixflow.execution.isolation import failed_result, run_isolated
from fixflow.execution.pipeline import PipelineRunner

_logger = get_logger("scheduler")

SKIPPED_DEADLINE_MESSAGE = "Batch deadline passed before the item was started"


@dataclass
class SchedulerStats:
    """Counters from one scheduler run."""

    started: int = 0
    completed: int = 0
    skipped: int = 0
    peak_in_flight: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "started": self.started,
            "completed": self.completed,
            "skipped": self.skipped,
            "peak_in_flight": self.peak_in_flight,
        }


def skipped_result(scored: ScoredWorkItem, message: str) -> IndexedResult:
    """Terminal result for an item that was never started."""
    return IndexedResult(
        index=scored.index,
        result=failed_result(scored.item.id, ErrorCategory.SKIPPED, message),
    )


class BatchScheduler:
    """Dispatches pipeline runs with a hard cap on concurrency.

    Example:
        ```python
        scheduler = BatchScheduler(runner, max_concurrent=3)
        results = await scheduler.run(prioritized_items)
        ```

    Results are returned in completion order; restoring submission order
    is the aggregator's job.
    """

    def __init__(
        self,
        runner: PipelineRunner,
        max_concurrent: int,
        deadline_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the scheduler.

        Args:
            runner: Pipeline runner invoked for each item.
            max_concurrent: Maximum pipelines in flight at any instant.
            deadline_seconds: Seconds after ``run()`` starts beyond which no
                new item is started.
            clock: Monotonic clock in seconds, replaceable in tests.

        Raises:
            ValueError: If max_concurrent is not positive.
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.runner = runner
        self.max_concurrent = max_concurrent
        self.deadline_seconds = deadline_seconds
        self._clock = clock
        self.stats = SchedulerStats()

    async def run(self, items: Sequence[ScoredWorkItem]) -> list[IndexedResult]:
        """Run every item's pipeline and collect one result per item.

        Args:
            items: Items in the order they should be started.

        Returns:
            One IndexedResult per input item, in completion order.
        """
        self.stats = SchedulerStats()
        deadline = (
            self._clock() + self.deadline_seconds
            if self.deadline_seconds is not None
            else None
        )
        base_ctx = get_current_context()
        results: list[IndexedResult] = []
        in_flight: dict[asyncio.Task[IndexedResult], ScoredWorkItem] = {}
        cursor = 0

        _logger.info(
            "scheduler.started",
            items=len(items),
            max_concurrent=self.max_concurrent,
            deadline_seconds=self.deadline_seconds,
        )

        try:
            while cursor < len(items) or in_flight:
                while cursor < len(items) and len(in_flight) < self.max_concurrent:
                    if deadline is not None and self._clock() >= deadline:
                        for scored in items[cursor:]:
                            results.append(skipped_result(scored, SKIPPED_DEADLINE_MESSAGE))
                        self.stats.skipped += len(items) - cursor
                        _logger.warning(
                            "scheduler.deadline_passed",
                            skipped=len(items) - cursor,
                            in_flight=len(in_flight),
                        )
                        cursor = len(items)
                        break

                    scored = items[cursor]
                    cursor += 1
                    in_flight[self._start(scored, base_ctx)] = scored
                    self.stats.started += 1
                    self.stats.peak_in_flight = max(self.stats.peak_in_flight, len(in_flight))

                if not in_flight:
                    break

                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    scored = in_flight.pop(task)
                    indexed = task.result()
                    results.append(indexed)
                    self.stats.completed += 1
                    _logger.debug(
                        "scheduler.item_finished",
                        work_item_id=scored.item.id,
                        success=indexed.result.success,
                        in_flight=len(in_flight),
                    )
        finally:
            if in_flight:
                await self._cancel(in_flight)

        _logger.info("scheduler.finished", **self.stats.to_dict())
        return results

    def _start(
        self, scored: ScoredWorkItem, base_ctx: ExecutionContext | None,
    ) -> asyncio.Task[IndexedResult]:
        _logger.debug(
            "scheduler.item_started",
            work_item_id=scored.item.id,
            index=scored.index,
            priority=round(scored.priority_score, 4),
        )
        coro = run_isolated(self.runner, scored)
        name = f"item-{scored.item.id}"
        if base_ctx is None:
            return asyncio.create_task(coro, name=name)
        # The task copies the current context at creation
        with with_context(base_ctx.with_item(scored.item.id)):
            return asyncio.create_task(coro, name=name)

    async def _cancel(self, in_flight: dict[asyncio.Task[IndexedResult], Any]) -> None:
        """Cancel outstanding tasks when run() itself is interrupted."""
        for task in in_flight:
            task.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)
        _logger.warning("scheduler.cancelled", outstanding=len(in_flight))


__all__ = ["BatchScheduler", "SKIPPED_DEADLINE_MESSAGE", "SchedulerStats", "skipped_result"]
