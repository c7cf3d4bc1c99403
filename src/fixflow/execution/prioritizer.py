"""Priority ordering of work items before scheduling.

Score components:

- +10 for every label in the configured urgent set
- +5 if any bug-type label is present
- +1 if the item is less than a day old, -1 if older than 30 days
- an explicit tie-break term, kept separate from the deterministic score

With ``tie_break="random"`` the tie-break is a uniform perturbation in
``[0, tie_break_scale)``; because the scale is below 1 it can only reorder
items whose deterministic scores are equal. With ``tie_break="index"``
the perturbation is zero and the stable sort keeps submission order
among ties, giving fully reproducible ordering.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime, timedelta

from fixflow.core.config import PrioritizerConfig
from fixflow.core.logging import get_logger
from fixflow.core.models import ScoredWorkItem, WorkItem
from fixflow.utils.time import ensure_utc, utc_now

_logger = get_logger("prioritizer")

URGENT_LABEL_POINTS = 10.0
BUG_LABEL_POINTS = 5.0
FRESH_ITEM_POINTS = 1.0
STALE_ITEM_POINTS = -1.0
FRESH_AGE = timedelta(days=1)
STALE_AGE = timedelta(days=30)


class Prioritizer:
    """Scores and orders work items, highest priority first."""

    def __init__(
        self,
        config: PrioritizerConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the prioritizer.

        Args:
            config: Label sets and tie-break mode.
            rng: Source of the random tie-break; pass a seeded instance
                for repeatable runs in "random" mode.
        """
        self.config = config or PrioritizerConfig()
        self._rng = rng or random.Random()
        self._urgent = frozenset(self.config.urgent_labels)
        self._bug = frozenset(self.config.bug_labels)

    def base_score(self, item: WorkItem, now: datetime) -> float:
        """Deterministic part of the score."""
        labels = {label.strip().lower() for label in item.labels}
        score = URGENT_LABEL_POINTS * len(labels & self._urgent)
        if labels & self._bug:
            score += BUG_LABEL_POINTS

        age = now - item.created_at
        if age < FRESH_AGE:
            score += FRESH_ITEM_POINTS
        elif age > STALE_AGE:
            score += STALE_ITEM_POINTS
        return score

    def tie_break(self) -> float:
        if self.config.tie_break == "index":
            return 0.0
        return self._rng.random() * self.config.tie_break_scale

    def prioritize(
        self,
        items: Sequence[WorkItem],
        now: datetime | None = None,
    ) -> list[ScoredWorkItem]:
        """Score ``items`` and return them sorted by descending priority.

        Args:
            items: Work items in submission order.
            now: Reference time for age scoring (defaults to current UTC).

        Returns:
            One ScoredWorkItem per input, carrying its submission index.
        """
        reference = ensure_utc(now) if now is not None else utc_now()
        scored = [
            ScoredWorkItem(
                item=item,
                index=index,
                base_score=self.base_score(item, reference),
                tie_break=self.tie_break(),
            )
            for index, item in enumerate(items)
        ]
        # list.sort is stable, so equal scores keep submission order
        scored.sort(key=lambda s: s.priority_score, reverse=True)

        _logger.debug(
            "prioritizer.ordered",
            count=len(scored),
            order=[s.item.id for s in scored],
            tie_break=self.config.tie_break,
        )
        return scored


def prioritize(
    items: Sequence[WorkItem],
    config: PrioritizerConfig | None = None,
    now: datetime | None = None,
) -> list[ScoredWorkItem]:
    """Convenience wrapper around ``Prioritizer(config).prioritize(items)``."""
    return Prioritizer(config).prioritize(items, now=now)


__all__ = ["Prioritizer", "prioritize"]
