"""Data models shared by the batch core.

Work items and everything derived from them are frozen dataclasses:
they are read concurrently by many pipelines and never mutated after
creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fixflow.core.errors import ErrorCategory
from fixflow.utils.time import ensure_utc, utc_now


@dataclass(frozen=True)
class WorkItem:
    """One reported problem submitted for resolution."""

    id: str
    """Unique, stable identifier within a batch."""

    labels: frozenset[str] = frozenset()
    """Labels used by the prioritizer."""

    created_at: datetime = field(default_factory=utc_now)
    """When the problem was reported. Naive values are read as UTC."""

    payload: Any = None
    """Opaque handle passed through to the collaborators."""

    def __post_init__(self) -> None:
        # Accept any iterable of labels but store an immutable set
        if not isinstance(self.labels, frozenset):
            object.__setattr__(self, "labels", frozenset(self.labels))
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))


@dataclass(frozen=True)
class ScoredWorkItem:
    """A WorkItem with its computed priority.

    Attributes:
        item: The scored work item.
        index: Position of the item in the submitted list.
        base_score: Deterministic score from labels and age.
        tie_break: Explicit perturbation added on top of ``base_score``.
    """

    item: WorkItem
    index: int
    base_score: float
    tie_break: float = 0.0

    @property
    def priority_score(self) -> float:
        return self.base_score + self.tie_break


@dataclass(frozen=True)
class FileChange:
    """A single file rewrite proposed by a candidate."""

    path: str
    content: str
    language: str = ""


@dataclass(frozen=True)
class Candidate:
    """A proposed fix: a set of file changes plus an explanation."""

    changes: tuple[FileChange, ...] = ()
    explanation: str = ""

    @property
    def paths(self) -> list[str]:
        return [change.path for change in self.changes]


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validating one candidate."""

    valid: bool
    issues: tuple[str, ...] = ()

    @classmethod
    def from_issues(cls, issues: list[str] | tuple[str, ...]) -> ValidationReport:
        return cls(valid=not issues, issues=tuple(issues))


@dataclass(frozen=True)
class RefinementFeedback:
    """Feedback handed back to the generator after a failed validation.

    Attributes:
        attempt: The generation cycle that produced ``previous`` (1-based).
        issues: Validation issues found in ``previous``.
        previous: The rejected candidate.
    """

    attempt: int
    issues: tuple[str, ...]
    previous: Candidate

    def render(self) -> str:
        """Render the feedback as instructions for a text generator."""
        lines = ["The previously generated changes have these problems:", ""]
        lines.extend(f"- {issue}" for issue in self.issues)
        lines.extend(["", "Previously generated changes:", ""])
        for change in self.previous.changes:
            lines.append(f"```filename: {change.path}")
            lines.append(change.content)
            lines.append("```")
            lines.append("")
        lines.append(
            "Fix every problem listed above and provide the complete revised "
            "files in the same format."
        )
        return "\n".join(lines)


@dataclass(frozen=True)
class PipelineOutput:
    """Candidate and validation record kept on a result for diagnostics."""

    candidate: Candidate
    validation: ValidationReport
    commit: Any = None
    """Handle returned by the finalizer, None if never finalized."""


@dataclass(frozen=True)
class PipelineResult:
    """Terminal outcome of one work item. Exactly one exists per item."""

    work_item_id: str
    success: bool
    attempts: int = 1
    output: PipelineOutput | None = None
    error_category: ErrorCategory | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        data: dict[str, Any] = {
            "work_item_id": self.work_item_id,
            "success": self.success,
            "attempts": self.attempts,
        }
        if self.error_category is not None:
            data["error_category"] = self.error_category.value
            data["message"] = self.message
        if self.output is not None:
            data["paths"] = self.output.candidate.paths
            data["issues"] = list(self.output.validation.issues)
            if self.output.commit is not None:
                data["commit"] = str(self.output.commit)
        return data


@dataclass(frozen=True)
class IndexedResult:
    """A PipelineResult tagged with its item's submission index."""

    index: int
    result: PipelineResult


@dataclass(frozen=True)
class ErrorGroup:
    """Failed results sharing one normalized message."""

    normalized_message: str
    count: int
    work_item_ids: tuple[str, ...] = ()


@dataclass
class BatchSummary:
    """Order-preserving report of every item's terminal outcome."""

    total: int
    succeeded: int
    failed: int
    per_item_results: list[PipelineResult]
    error_groups: list[ErrorGroup] = field(default_factory=list)
    skipped: int = 0
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime = field(default_factory=utc_now)

    @property
    def success_rate(self) -> float:
        """Fraction of items that succeeded, 0.0 for an empty batch."""
        if self.total == 0:
            return 0.0
        return self.succeeded / self.total

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def commits(self) -> list[tuple[str, Any]]:
        """(work_item_id, commit handle) of finalized items, in submission order."""
        return [
            (r.work_item_id, r.output.commit)
            for r in self.per_item_results
            if r.success and r.output is not None
        ]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the batch report layout."""
        return {
            "summary": {
                "total": self.total,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "skipped": self.skipped,
                "success_rate": f"{self.success_rate * 100:.2f}%",
                "duration_seconds": round(self.duration_seconds, 3),
            },
            "results": [r.to_dict() for r in self.per_item_results],
            "commits": [
                {"work_item_id": item_id, "commit": str(commit)}
                for item_id, commit in self.commits
            ],
            "error_groups": [
                {"message": g.normalized_message, "count": g.count}
                for g in self.error_groups
            ],
            "timestamp": self.finished_at.isoformat(),
        }
