"""Tests for fixflow.execution.isolation module."""

from __future__ import annotations

import asyncio

import pytest

from fixflow.core.errors import ErrorCategory
from fixflow.core.models import ScoredWorkItem
from fixflow.execution.isolation import failed_result, run_isolated
from fixflow.execution.pipeline import PipelineRunner
from tests.helpers import FakeCollaborators, make_item


def _scored(item_id: str, index: int = 0) -> ScoredWorkItem:
    return ScoredWorkItem(item=make_item(item_id), index=index, base_score=0.0)


class RaisingRunner:
    def __init__(self, error: BaseException) -> None:
        self.error = error

    async def run(self, item):
        raise self.error


class TestFailedResult:

    def test_attempts_clamped(self):
        result = failed_result("a", ErrorCategory.SKIPPED, "skipped", attempts=0)

        assert result.attempts == 1
        assert result.success is False
        assert result.output is None


class TestRunIsolated:

    @pytest.mark.asyncio
    async def test_success_keeps_index(self, fake: FakeCollaborators):
        indexed = await run_isolated(PipelineRunner(fake.bundle()), _scored("a", index=7))

        assert indexed.index == 7
        assert indexed.result.success is True

    @pytest.mark.asyncio
    async def test_stage_error_becomes_result(self, fake: FakeCollaborators):
        fake.fetch_errors["a"] = FileNotFoundError("File not found: a.js")

        indexed = await run_isolated(PipelineRunner(fake.bundle()), _scored("a", index=2))

        assert indexed.index == 2
        assert indexed.result.error_category == ErrorCategory.CONTEXT_FETCH
        assert indexed.result.message == "Context fetch failed: File not found: a.js"
        assert indexed.result.attempts == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self):
        indexed = await run_isolated(RaisingRunner(KeyError("boom")), _scored("a"))  # type: ignore[arg-type]

        assert indexed.result.error_category == ErrorCategory.INTERNAL
        assert indexed.result.message == "KeyError: 'boom'"

    @pytest.mark.asyncio
    async def test_collaborator_cancelled_error_is_internal(self):
        indexed = await run_isolated(
            RaisingRunner(asyncio.CancelledError()), _scored("a", index=4),  # type: ignore[arg-type]
        )

        assert indexed.index == 4
        assert indexed.result.error_category == ErrorCategory.INTERNAL
        assert indexed.result.message == "CancelledError"

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, fake: FakeCollaborators):
        fake.delays["a"] = 10.0
        task = asyncio.create_task(run_isolated(PipelineRunner(fake.bundle()), _scored("a")))
        await asyncio.sleep(0.01)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert fake.active == 0
