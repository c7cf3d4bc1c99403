"""Per-item pipeline: fetch context, generate, validate, refine, finalize.

``PipelineRunner.run`` processes exactly one work item. Stage failures of
external calls are raised as ``PipelineStageError`` subclasses carrying
the failing stage's category; the fault isolator turns them into terminal
results. Running out of refinement attempts is a normal outcome and is
returned as a ``ValidationExhausted`` result, keeping the last candidate
and its issues for diagnostics.

Stage sequence:

    fetch_context ──> generate ──> validate ──(valid)──> finalize
                         ^             │
                         └─(invalid, attempts left: feedback)
"""

from __future__ import annotations

from typing import Any

from fixflow.collaborators import Collaborators, Validator
from fixflow.core.config import ValidatorConfig
from fixflow.core.errors import (
    ContextFetchError,
    ErrorCategory,
    FinalizeError,
    GenerationError,
)
from fixflow.core.logging import get_logger
from fixflow.core.models import (
    Candidate,
    PipelineOutput,
    PipelineResult,
    RefinementFeedback,
    ValidationReport,
    WorkItem,
)
from fixflow.execution.validator import CandidateValidator

_logger = get_logger("pipeline")

DEFAULT_MAX_ATTEMPTS = 3


def build_feedback(
    attempt: int, candidate: Candidate, report: ValidationReport,
) -> RefinementFeedback:
    """Build the feedback for the next generation cycle from a failed report."""
    return RefinementFeedback(attempt=attempt, issues=report.issues, previous=candidate)


class PipelineRunner:
    """Runs the stage sequence for single work items.

    Attributes:
        collaborators: External collaborators for this batch.
        max_attempts: Hard ceiling on generate/validate cycles per item.
        validator: The collaborators' validator, or a CandidateValidator
            built from ``validator_config`` when none was supplied.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        validator_config: ValidatorConfig | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.collaborators = collaborators
        self.max_attempts = max_attempts
        self.validator: Validator = (
            collaborators.validator or CandidateValidator(validator_config)
        )

    async def run(self, item: WorkItem) -> PipelineResult:
        """Process one work item to its terminal result.

        Raises:
            ContextFetchError: The context fetch failed.
            GenerationError: A generation call failed.
            FinalizeError: Persisting the accepted candidate failed.
        """
        context = await self._fetch_context(item)
        candidate, report, attempts = await self._refine(item, context)

        if not report.valid:
            _logger.warning(
                "pipeline.validation_exhausted",
                work_item_id=item.id,
                attempts=attempts,
                issues=list(report.issues),
            )
            return PipelineResult(
                work_item_id=item.id,
                success=False,
                attempts=attempts,
                output=PipelineOutput(candidate=candidate, validation=report),
                error_category=ErrorCategory.VALIDATION_EXHAUSTED,
                message=(
                    f"Validation failed after {attempts} attempts: "
                    + "; ".join(report.issues)
                ),
            )

        commit = await self._finalize(item, candidate, attempts)
        _logger.info("pipeline.completed", work_item_id=item.id, attempts=attempts)
        return PipelineResult(
            work_item_id=item.id,
            success=True,
            attempts=attempts,
            output=PipelineOutput(candidate=candidate, validation=report, commit=commit),
        )

    async def _fetch_context(self, item: WorkItem) -> Any:
        try:
            return await self.collaborators.fetcher.fetch_context(item)
        except Exception as e:
            raise ContextFetchError(item.id, f"Context fetch failed: {e}") from e

    async def _generate(
        self,
        item: WorkItem,
        context: Any,
        feedback: RefinementFeedback | None,
        attempt: int,
    ) -> Candidate:
        try:
            candidate = await self.collaborators.generator.generate(context, feedback)
        except Exception as e:
            raise GenerationError(
                item.id, f"Candidate generation failed: {e}", attempts=attempt,
            ) from e
        if candidate is None:
            raise GenerationError(item.id, "Generator returned no candidate", attempts=attempt)
        return candidate

    async def _refine(
        self, item: WorkItem, context: Any,
    ) -> tuple[Candidate, ValidationReport, int]:
        """Generate and validate until valid or the attempt limit is reached.

        Returns:
            The last candidate, its validation report and the number of
            cycles executed (1..max_attempts).
        """
        feedback: RefinementFeedback | None = None
        attempt = 0
        while True:
            attempt += 1
            candidate = await self._generate(item, context, feedback, attempt)
            report = self.validator(candidate)

            if report.valid:
                if attempt > 1:
                    _logger.info(
                        "pipeline.refined", work_item_id=item.id, attempts=attempt,
                    )
                return candidate, report, attempt

            if attempt >= self.max_attempts:
                return candidate, report, attempt

            _logger.debug(
                "pipeline.refine_attempt",
                work_item_id=item.id,
                attempt=attempt,
                issue_count=len(report.issues),
            )
            feedback = build_feedback(attempt, candidate, report)

    async def _finalize(self, item: WorkItem, candidate: Candidate, attempts: int) -> Any:
        try:
            return await self.collaborators.finalizer.finalize(candidate, item)
        except Exception as e:
            raise FinalizeError(
                item.id, f"Finalize failed: {e}", attempts=attempts,
            ) from e


__all__ = ["DEFAULT_MAX_ATTEMPTS", "PipelineRunner", "build_feedback"]
