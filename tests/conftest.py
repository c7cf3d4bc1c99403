"""Pytest fixtures for fixflow tests."""

import logging
from collections.abc import Generator
from datetime import UTC, datetime

import pytest
import structlog

from tests.helpers import FakeCollaborators


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers around each test.

    Tests that call configure_logging() must not leak handlers bound to
    captured streams into later tests.
    """
    structlog.reset_defaults()
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for age-based scoring."""
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def fake() -> FakeCollaborators:
    """Instrumented collaborators that succeed on the first attempt."""
    return FakeCollaborators()
