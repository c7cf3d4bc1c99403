"""Interfaces to the external collaborators used by the batch core.

The core never talks to a repository host or a model directly. It is
given a ``Collaborators`` bundle scoped to one batch:

- ``ContextFetcher.fetch_context(item)``: gather what the generator needs.
- ``CandidateGenerator.generate(context, feedback)``: propose a fix.
- ``Validator(candidate)``: pure, synchronous structural checks.
- ``Finalizer.finalize(candidate, item)``: persist/submit an accepted fix.

Transport concerns such as retry with backoff belong to the collaborator
side. ``with_retry()`` wraps a bundle so each async call is retried
according to a ``RetryPolicy``; when retries run out the last error is
re-raised and the core records it as the stage's terminal failure.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, Protocol, TypeVar, runtime_checkable

from fixflow.core.config import RetryPolicy
from fixflow.core.logging import get_logger
from fixflow.core.models import Candidate, RefinementFeedback, ValidationReport, WorkItem

_logger = get_logger("collaborators")

T = TypeVar("T")


@runtime_checkable
class ContextFetcher(Protocol):
    """Fetches the context needed to fix a work item."""

    async def fetch_context(self, item: WorkItem) -> Any: ...


@runtime_checkable
class CandidateGenerator(Protocol):
    """Generates a candidate fix, optionally guided by refinement feedback."""

    async def generate(
        self, context: Any, feedback: RefinementFeedback | None = None,
    ) -> Candidate: ...


@runtime_checkable
class Finalizer(Protocol):
    """Persists an accepted candidate and returns a commit handle."""

    async def finalize(self, candidate: Candidate, item: WorkItem) -> Any: ...


class Validator(Protocol):
    """Pure candidate check (satisfied by CandidateValidator)."""

    def __call__(self, candidate: Candidate) -> ValidationReport: ...


@dataclass(frozen=True)
class Collaborators:
    """The collaborator implementations for one batch.

    When ``validator`` is None the pipeline uses the built-in
    CandidateValidator configured from ``BatchConfig.validator``.
    """

    fetcher: ContextFetcher
    generator: CandidateGenerator
    finalizer: Finalizer
    validator: Validator | None = None


def backoff_delay(policy: RetryPolicy, retry_num: int) -> float:
    """Delay before retry ``retry_num`` (1-based) under ``policy``."""
    delay = policy.backoff_base_seconds * (policy.exponential_base ** (retry_num - 1))
    delay = min(delay, policy.max_backoff_seconds)
    if policy.jitter:
        delay += delay * 0.25 * random.random()
    return delay


async def call_with_retry(
    operation: str,
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``call()`` until it succeeds or the policy is exhausted.

    Args:
        operation: Name used in log events (e.g. "fetch_context").
        call: Zero-argument factory returning a fresh awaitable per attempt.
        policy: Retry policy to apply.
        sleep: Awaitable sleep, replaceable in tests.

    Raises:
        Exception: The error of the last attempt once retries are exhausted.
    """
    retry_num = 0
    while True:
        try:
            return await call()
        except Exception as e:
            if retry_num >= policy.max_retries:
                _logger.warning(
                    "collaborators.retries_exhausted",
                    operation=operation,
                    attempts=retry_num + 1,
                    error=str(e),
                )
                raise
            retry_num += 1
            delay = backoff_delay(policy, retry_num)
            _logger.debug(
                "collaborators.retrying",
                operation=operation,
                retry_num=retry_num,
                delay_seconds=round(delay, 3),
                error_type=type(e).__name__,
            )
            await sleep(delay)


class _RetryingFetcher:
    def __init__(self, inner: ContextFetcher, policy: RetryPolicy) -> None:
        self._inner = inner
        self._policy = policy

    async def fetch_context(self, item: WorkItem) -> Any:
        return await call_with_retry(
            "fetch_context", lambda: self._inner.fetch_context(item), self._policy,
        )


class _RetryingGenerator:
    def __init__(self, inner: CandidateGenerator, policy: RetryPolicy) -> None:
        self._inner = inner
        self._policy = policy

    async def generate(
        self, context: Any, feedback: RefinementFeedback | None = None,
    ) -> Candidate:
        return await call_with_retry(
            "generate", lambda: self._inner.generate(context, feedback), self._policy,
        )


class _RetryingFinalizer:
    def __init__(self, inner: Finalizer, policy: RetryPolicy) -> None:
        self._inner = inner
        self._policy = policy

    async def finalize(self, candidate: Candidate, item: WorkItem) -> Any:
        return await call_with_retry(
            "finalize", lambda: self._inner.finalize(candidate, item), self._policy,
        )


def with_retry(collaborators: Collaborators, policy: RetryPolicy) -> Collaborators:
    """Return a copy of ``collaborators`` whose async calls retry per ``policy``.

    The validator is pure and local, so it is left unwrapped.
    """
    return replace(
        collaborators,
        fetcher=_RetryingFetcher(collaborators.fetcher, policy),
        generator=_RetryingGenerator(collaborators.generator, policy),
        finalizer=_RetryingFinalizer(collaborators.finalizer, policy),
    )


__all__ = [
    "CandidateGenerator",
    "Collaborators",
    "ContextFetcher",
    "Finalizer",
    "Validator",
    "backoff_delay",
    "call_with_retry",
    "with_retry",
]
