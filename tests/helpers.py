"""Shared test helpers for fixflow tests."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from fixflow.collaborators import Collaborators
from fixflow.core.models import Candidate, FileChange, RefinementFeedback, WorkItem

VALID_JS = "function fix() { return [1, 2]; }"
INVALID_JS = "function fix() { return [1, 2];"


def make_item(item_id: str, labels: tuple[str, ...] = (), **kwargs: Any) -> WorkItem:
    """Test helper: WorkItem created at a fixed time unless overridden."""
    kwargs.setdefault("created_at", datetime(2024, 5, 20, tzinfo=UTC))
    return WorkItem(id=item_id, labels=frozenset(labels), **kwargs)


def make_candidate(path: str = "src/app.js", content: str = VALID_JS) -> Candidate:
    return Candidate(changes=(FileChange(path=path, content=content),), explanation="fix")


class FakeCollaborators:
    """Fetcher, generator and finalizer in one instrumented object.

    The context returned by ``fetch_context`` is the item itself, so the
    generator knows which item it is working on.

    Attributes:
        delays: Seconds slept inside fetch_context, per item id.
        valid_on_attempt: Generation cycle at which an item's candidate
            becomes valid (None = never). Defaults to 1.
        fetch_errors / generate_errors / finalize_errors: Exceptions raised
            by the matching call, per item id.
        active / peak_active: Collaborator calls currently running and the
            highest value seen.
    """

    def __init__(self) -> None:
        self.delays: dict[str, float] = {}
        self.valid_on_attempt: dict[str, int | None] = {}
        self.fetch_errors: dict[str, BaseException] = {}
        self.generate_errors: dict[str, BaseException] = {}
        self.finalize_errors: dict[str, BaseException] = {}
        self.generate_calls: Counter[str] = Counter()
        self.feedback_seen: dict[str, list[RefinementFeedback]] = {}
        self.started: list[str] = []
        self.finalized: list[str] = []
        self.active = 0
        self.peak_active = 0

    def bundle(self) -> Collaborators:
        return Collaborators(fetcher=self, generator=self, finalizer=self)

    def _enter(self) -> None:
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)

    def _exit(self) -> None:
        self.active -= 1

    async def fetch_context(self, item: WorkItem) -> WorkItem:
        self._enter()
        try:
            self.started.append(item.id)
            await asyncio.sleep(self.delays.get(item.id, 0))
            if item.id in self.fetch_errors:
                raise self.fetch_errors[item.id]
            return item
        finally:
            self._exit()

    async def generate(
        self, context: WorkItem, feedback: RefinementFeedback | None = None,
    ) -> Candidate:
        self._enter()
        try:
            await asyncio.sleep(0)
            item_id = context.id
            self.generate_calls[item_id] += 1
            if feedback is not None:
                self.feedback_seen.setdefault(item_id, []).append(feedback)
            if item_id in self.generate_errors:
                raise self.generate_errors[item_id]
            attempt = self.generate_calls[item_id]
            valid_on = self.valid_on_attempt.get(item_id, 1)
            content = VALID_JS if valid_on is not None and attempt >= valid_on else INVALID_JS
            return make_candidate(path=f"src/{item_id}.js", content=content)
        finally:
            self._exit()

    async def finalize(self, candidate: Candidate, item: WorkItem) -> str:
        self._enter()
        try:
            await asyncio.sleep(0)
            if item.id in self.finalize_errors:
                raise self.finalize_errors[item.id]
            self.finalized.append(item.id)
            return f"commit-{item.id}"
        finally:
            self._exit()
