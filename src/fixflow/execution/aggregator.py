"""Result aggregation: restore submission order and cluster failures.

The scheduler collects results in completion order. ``aggregate`` sorts
them back by submission index, counts outcomes and groups failure
messages after normalizing away the parts that differ between otherwise
identical errors:

    File not found: a.js          ─┐
    File not found: src/b.js      ─┴─> File not found: <path>  (count 2)
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime

from fixflow.core.errors import ErrorCategory
from fixflow.core.logging import get_logger
from fixflow.core.models import BatchSummary, ErrorGroup, IndexedResult
from fixflow.utils.time import utc_now

_logger = get_logger("aggregator")

DEFAULT_TOP_K = 5

# Applied in order; later patterns never see text replaced by earlier ones.
# Single quotes only delimit at word boundaries so contractions survive.
_QUOTED_RE = re.compile(r"\"[^\"]*\"|(?<!\w)'[^'\n]*'(?!\w)|(?<!\w)`[^`]*`(?!\w)")
_SLASH_PATH_RE = re.compile(r"(?:\b[A-Za-z]:)?(?:[\w.~-]*[/\\])+[\w.-]*")
_FILENAME_RE = re.compile(r"\b[\w-]+(?:\.[\w-]+)*\.[A-Za-z][A-Za-z0-9]{0,7}\b")
_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?\b")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_error_message(message: str) -> str:
    """Replace quoted strings, paths and numbers with placeholders."""
    text = _QUOTED_RE.sub("<str>", message)
    text = _SLASH_PATH_RE.sub("<path>", text)
    text = _FILENAME_RE.sub("<path>", text)
    text = _NUMBER_RE.sub("<n>", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def group_errors(
    results: Iterable[IndexedResult], top_k: int = DEFAULT_TOP_K,
) -> list[ErrorGroup]:
    """Group failed results by normalized message, most frequent first.

    Groups with equal counts keep the order in which they first appear.
    """
    members: dict[str, list[str]] = {}
    for indexed in results:
        result = indexed.result
        if result.success:
            continue
        key = normalize_error_message(result.message or "")
        members.setdefault(key, []).append(result.work_item_id)

    groups = [
        ErrorGroup(normalized_message=key, count=len(ids), work_item_ids=tuple(ids))
        for key, ids in members.items()
    ]
    groups.sort(key=lambda g: g.count, reverse=True)
    return groups[:top_k]


def aggregate(
    results: Iterable[IndexedResult],
    top_k: int = DEFAULT_TOP_K,
    started_at: datetime | None = None,
    expected_total: int | None = None,
) -> BatchSummary:
    """Build the BatchSummary for a finished batch.

    Args:
        results: One indexed result per submitted item, in any order.
        top_k: Number of error groups retained.
        started_at: When the batch started (defaults to now).
        expected_total: Number of submitted items; checked against results.

    Raises:
        ValueError: If results are missing or an index is duplicated.
    """
    ordered = sorted(results, key=lambda r: r.index)
    indexes = [r.index for r in ordered]
    if len(set(indexes)) != len(indexes):
        raise ValueError("Duplicate submission index in batch results")
    if expected_total is not None and len(ordered) != expected_total:
        raise ValueError(
            f"Expected {expected_total} results, got {len(ordered)}"
        )

    per_item = [r.result for r in ordered]
    succeeded = sum(1 for r in per_item if r.success)
    skipped = sum(1 for r in per_item if r.error_category == ErrorCategory.SKIPPED)
    finished_at = utc_now()

    summary = BatchSummary(
        total=len(per_item),
        succeeded=succeeded,
        failed=len(per_item) - succeeded,
        skipped=skipped,
        per_item_results=per_item,
        error_groups=group_errors(ordered, top_k),
        started_at=started_at or finished_at,
        finished_at=finished_at,
    )
    _logger.info(
        "aggregator.summary",
        total=summary.total,
        succeeded=summary.succeeded,
        failed=summary.failed,
        skipped=summary.skipped,
        success_rate=round(summary.success_rate, 4),
    )
    return summary


__all__ = ["DEFAULT_TOP_K", "aggregate", "group_errors", "normalize_error_message"]
