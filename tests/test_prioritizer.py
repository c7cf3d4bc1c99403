"""Tests for fixflow.execution.prioritizer module."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

import pytest

from fixflow.core.config import PrioritizerConfig
from fixflow.execution.prioritizer import Prioritizer, prioritize
from tests.helpers import make_item

INDEX = PrioritizerConfig(tie_break="index")


def _aged(item_id: str, now: datetime, days: float, labels: tuple[str, ...] = ()):
    return make_item(item_id, labels=labels, created_at=now - timedelta(days=days))


class TestBaseScore:
    """Deterministic scoring components."""

    @pytest.mark.parametrize(
        "labels,days,expected",
        [
            ((), 10, 0.0),
            (("critical",), 10, 10.0),
            (("critical", "blocker"), 10, 20.0),
            (("bug",), 10, 5.0),
            (("bug", "defect"), 10, 5.0),
            (("Critical", "BUG"), 10, 15.0),
            ((), 0.5, 1.0),
            ((), 31, -1.0),
            (("priority", "bug"), 45, 14.0),
            (("enhancement",), 2, 0.0),
        ],
    )
    def test_score_components(self, now: datetime, labels, days, expected):
        item = _aged("x", now, days, labels)

        assert Prioritizer(INDEX).base_score(item, now) == expected

    def test_custom_label_sets(self, now: datetime):
        config = PrioritizerConfig(
            urgent_labels=["P0"], bug_labels=["crash"], tie_break="index",
        )
        item = _aged("x", now, 5, ("p0", "crash", "critical"))

        assert Prioritizer(config).base_score(item, now) == 15.0


class TestOrdering:

    def test_sorted_descending(self, now: datetime):
        items = [
            _aged("stale", now, 60),
            _aged("urgent", now, 5, ("critical",)),
            _aged("fresh", now, 0.1),
            _aged("bug", now, 5, ("bug",)),
        ]

        ordered = prioritize(items, INDEX, now=now)

        assert [s.item.id for s in ordered] == ["urgent", "bug", "fresh", "stale"]
        assert [s.index for s in ordered] == [1, 3, 2, 0]

    def test_ties_keep_submission_order_in_index_mode(self, now: datetime):
        items = [_aged(f"t{n}", now, 5) for n in range(6)]

        ordered = prioritize(items, INDEX, now=now)

        assert [s.item.id for s in ordered] == [f"t{n}" for n in range(6)]
        assert all(s.tie_break == 0.0 for s in ordered)

    def test_one_scored_item_per_input(self, now: datetime):
        items = [_aged(f"t{n}", now, n) for n in range(10)]

        ordered = prioritize(items, now=now)

        assert sorted(s.index for s in ordered) == list(range(10))

    def test_empty(self):
        assert prioritize([]) == []


class TestRandomTieBreak:
    """The random perturbation is explicit and bounded."""

    def test_perturbation_below_scale(self, now: datetime):
        items = [_aged(f"t{n}", now, 5) for n in range(50)]
        config = PrioritizerConfig(tie_break="random", tie_break_scale=0.01)

        ordered = Prioritizer(config, rng=random.Random(7)).prioritize(items, now=now)

        assert all(0.0 <= s.tie_break < 0.01 for s in ordered)
        assert all(s.priority_score == s.base_score + s.tie_break for s in ordered)

    def test_never_overrides_deterministic_score(self, now: datetime):
        items = [_aged(f"low{n}", now, 5) for n in range(20)]
        items.insert(7, _aged("high", now, 5, ("bug",)))

        for seed in range(20):
            ordered = Prioritizer(rng=random.Random(seed)).prioritize(items, now=now)
            assert ordered[0].item.id == "high"

    def test_seeded_rng_is_reproducible(self, now: datetime):
        items = [_aged(f"t{n}", now, 5) for n in range(12)]

        first = Prioritizer(rng=random.Random(3)).prioritize(items, now=now)
        second = Prioritizer(rng=random.Random(3)).prioritize(items, now=now)

        assert [s.item.id for s in first] == [s.item.id for s in second]
