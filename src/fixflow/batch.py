"""Batch entry point: ``submit_batch``.

Ties the components together for one batch:

1. validate options and items (the only batch-aborting failures)
2. prioritize items
3. skip overflow items beyond ``max_items_per_batch``
4. schedule pipelines under the concurrency cap and deadline
5. aggregate results back into submission order

Example:
    ```python
    collaborators = Collaborators(fetcher=..., generator=..., finalizer=...)
    summary = await submit_batch(items, collaborators, max_concurrent=4)
    for result in summary.per_item_results:
        print(result.work_item_id, result.success)
    ```
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from fixflow.collaborators import Collaborators
from fixflow.core.config import BatchConfig
from fixflow.core.errors import ConfigurationError
from fixflow.core.logging import (
    ExecutionContext,
    configure_logging_from,
    get_logger,
    with_context,
)
from fixflow.core.models import BatchSummary, IndexedResult, WorkItem
from fixflow.execution.aggregator import aggregate
from fixflow.execution.pipeline import PipelineRunner
from fixflow.execution.prioritizer import Prioritizer
from fixflow.execution.scheduler import BatchScheduler, skipped_result
from fixflow.utils.time import utc_now

_logger = get_logger("batch")

SKIPPED_OVER_LIMIT_MESSAGE = "Item exceeds the batch size limit of {limit}"


def resolve_config(
    config: BatchConfig | None = None,
    **overrides: Any,
) -> BatchConfig:
    """Merge keyword overrides into ``config`` and validate the result.

    ``None`` overrides are ignored. A timedelta ``batch_deadline_seconds``
    is converted to seconds.

    Raises:
        ConfigurationError: If the merged options are invalid.
    """
    data = (config or BatchConfig()).model_dump()
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, timedelta):
            value = value.total_seconds()
        data[key] = value
    try:
        return BatchConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid batch options: {e}") from e


def load_config(path: Path, *, apply_logging: bool = True) -> BatchConfig:
    """Load a BatchConfig from a YAML file and apply its logging section.

    Args:
        path: YAML file to read.
        apply_logging: Call ``configure_logging_from(config.logging)``.

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    try:
        config = BatchConfig.from_yaml(path)
    except (ValidationError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid batch config {path}: {e}") from e
    if apply_logging:
        configure_logging_from(config.logging)
    return config


def check_items(items: Sequence[WorkItem]) -> None:
    """Reject item lists the scheduler cannot give one result per id.

    Raises:
        ConfigurationError: On non-WorkItem entries or duplicate ids.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in items:
        if not isinstance(item, WorkItem):
            raise ConfigurationError(
                f"Batch entries must be WorkItem, got {type(item).__name__}"
            )
        if item.id in seen:
            duplicates.append(item.id)
        seen.add(item.id)
    if duplicates:
        raise ConfigurationError(
            f"Duplicate work item ids in batch: {', '.join(sorted(set(duplicates)))}"
        )


class BatchProcessor:
    """Runs batches of work items against one set of collaborators.

    Attributes:
        collaborators: External collaborators, scoped to this processor.
        config: Validated batch options.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        config: BatchConfig | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.collaborators = collaborators
        self.config = config or BatchConfig()
        self._rng = rng
        self._clock = clock

    async def submit(
        self,
        items: Sequence[WorkItem],
        *,
        batch_id: str = "batch",
        now: datetime | None = None,
    ) -> BatchSummary:
        """Resolve every item and return the ordered summary.

        Args:
            items: Work items in submission order.
            batch_id: Name attached to every log entry of the run.
            now: Reference time for age-based prioritization.

        Raises:
            ConfigurationError: If the item list is invalid. Raised before
                any item starts; per-item failures never raise.
        """
        check_items(items)
        config = self.config
        started_at = utc_now()

        with with_context(ExecutionContext(batch_id=batch_id, component="batch")):
            _logger.info(
                "batch.started",
                items=len(items),
                max_concurrent=config.max_concurrent,
                max_refine_attempts=config.max_refine_attempts,
                deadline_seconds=config.batch_deadline_seconds,
            )

            ordered = Prioritizer(config.prioritizer, rng=self._rng).prioritize(items, now=now)

            overflow: list[IndexedResult] = []
            limit = config.max_items_per_batch
            if limit is not None and len(ordered) > limit:
                message = SKIPPED_OVER_LIMIT_MESSAGE.format(limit=limit)
                overflow = [skipped_result(s, message) for s in ordered[limit:]]
                ordered = ordered[:limit]
                _logger.warning(
                    "batch.limited", limit=limit, skipped=len(overflow),
                )

            runner = PipelineRunner(
                self.collaborators,
                max_attempts=config.max_refine_attempts,
                validator_config=config.validator,
            )
            scheduler = BatchScheduler(
                runner,
                max_concurrent=config.max_concurrent,
                deadline_seconds=config.batch_deadline_seconds,
                clock=self._clock,
            )
            results = await scheduler.run(ordered)

            summary = aggregate(
                overflow + results,
                top_k=config.error_groups_top_k,
                started_at=started_at,
                expected_total=len(items),
            )
            _logger.info(
                "batch.completed",
                succeeded=summary.succeeded,
                total=summary.total,
                duration_seconds=round(summary.duration_seconds, 3),
            )
            return summary


async def submit_batch(
    items: Sequence[WorkItem],
    collaborators: Collaborators,
    config: BatchConfig | None = None,
    *,
    max_concurrent: int | None = None,
    max_refine_attempts: int | None = None,
    batch_deadline: float | timedelta | None = None,
    batch_id: str = "batch",
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> BatchSummary:
    """Resolve a batch of work items and return the ordered summary.

    Keyword options override the matching fields of ``config``.

    Args:
        items: Work items in submission order.
        collaborators: Fetcher, generator, finalizer and validator.
        config: Base options (defaults to ``BatchConfig()``).
        max_concurrent: Cap on in-flight pipelines.
        max_refine_attempts: Generate/validate cycles per item.
        batch_deadline: Seconds (or timedelta) after which queued items
            are skipped instead of started.
        batch_id: Name attached to every log entry of the run.
        rng: Random source for the prioritizer's tie-break.
        now: Reference time for age-based prioritization.

    Raises:
        ConfigurationError: On invalid options or items, before any item starts.
    """
    resolved = resolve_config(
        config,
        max_concurrent=max_concurrent,
        max_refine_attempts=max_refine_attempts,
        batch_deadline_seconds=batch_deadline,
    )
    processor = BatchProcessor(collaborators, resolved, rng=rng)
    return await processor.submit(items, batch_id=batch_id, now=now)


__all__ = ["BatchProcessor", "check_items", "load_config", "resolve_config", "submit_batch"]
