"""Tests for fixflow.core.logging module."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from fixflow.core.config import LogConfig
from fixflow.core.logging import (
    ExecutionContext,
    FixflowLogger,
    _add_context,
    _sanitize_event_dict,
    _sanitize_value,
    configure_logging,
    configure_logging_from,
    get_current_context,
    get_logger,
    with_context,
)


def _json_lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class TestSanitization:
    """Sensitive fields never reach the output."""

    @pytest.mark.parametrize(
        "key", ["api_key", "GITHUB_TOKEN", "client_secret", "password", "Authorization"],
    )
    def test_sensitive_keys_redacted(self, key: str):
        assert _sanitize_value(key, "value") == "[REDACTED]"

    def test_other_keys_untouched(self):
        assert _sanitize_value("work_item_id", "a") == "a"

    def test_nested_dicts_one_level(self):
        event = {"event": "x", "headers": {"authorization": "Bearer abc", "accept": "json"}}

        sanitized = _sanitize_event_dict(None, "info", event)

        assert sanitized["headers"] == {"authorization": "[REDACTED]", "accept": "json"}
        assert sanitized["event"] == "x"


class TestExecutionContext:

    def test_to_dict_leaves_out_unset_item(self):
        ctx = ExecutionContext(batch_id="b1", run_id="r1")

        assert ctx.to_dict() == {"batch_id": "b1", "run_id": "r1", "component": "unknown"}

    def test_with_item_keeps_run(self):
        ctx = ExecutionContext(batch_id="b1")

        scoped = ctx.with_item("a").with_component("pipeline")

        assert scoped.run_id == ctx.run_id
        assert scoped.work_item_id == "a"
        assert scoped.component == "pipeline"
        assert ctx.work_item_id is None

    def test_run_ids_unique(self):
        assert ExecutionContext(batch_id="b").run_id != ExecutionContext(batch_id="b").run_id

    def test_with_context_restores_previous(self):
        outer = ExecutionContext(batch_id="outer")
        inner = ExecutionContext(batch_id="inner")

        assert get_current_context() is None
        with with_context(outer):
            with with_context(inner):
                assert get_current_context() is inner
            assert get_current_context() is outer
        assert get_current_context() is None

    def test_bound_keys_win_over_context(self):
        with with_context(ExecutionContext(batch_id="b1", component="batch")):
            event = _add_context(None, "info", {"event": "x", "component": "scheduler"})

        assert event["component"] == "scheduler"
        assert event["batch_id"] == "b1"


class TestFixflowLogger:

    def test_get_logger(self):
        logger = get_logger("scheduler")

        assert isinstance(logger, FixflowLogger)
        assert logger._context == {"component": "scheduler"}

    def test_bind_returns_new_logger(self):
        logger = get_logger("pipeline")

        bound = logger.bind(work_item_id="a")

        assert bound._context == {"component": "pipeline", "work_item_id": "a"}
        assert logger._context == {"component": "pipeline"}


class TestConfigureLogging:

    def test_json_to_stdout(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="INFO", format="json")
        logger = get_logger("test")

        with with_context(ExecutionContext(batch_id="nightly")):
            logger.info("batch.started", items=3, api_key="sk-123")
        logger.debug("batch.hidden")

        entries = _json_lines(capsys.readouterr().out)
        assert len(entries) == 1
        entry = entries[0]
        assert entry["event"] == "batch.started"
        assert entry["level"] == "info"
        assert entry["items"] == 3
        assert entry["api_key"] == "[REDACTED]"
        assert entry["batch_id"] == "nightly"
        assert entry["component"] == "test"
        assert "timestamp" in entry

    def test_json_to_file(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "fixflow.log"
        configure_logging(format="json", file_path=log_file, include_timestamps=False)

        get_logger("test").warning("scheduler.deadline_passed", skipped=4)

        entries = _json_lines(log_file.read_text())
        assert entries[0]["event"] == "scheduler.deadline_passed"
        assert entries[0]["skipped"] == 4
        assert "timestamp" not in entries[0]

    def test_both_requires_file(self):
        with pytest.raises(ValueError, match="file_path is required"):
            configure_logging(format="both")

    def test_both_installs_two_handlers(self, tmp_path: Path):
        configure_logging(format="both", file_path=tmp_path / "fixflow.log")

        assert len(logging.getLogger().handlers) == 2

    def test_configure_from_log_config(self):
        configure_logging_from(LogConfig(level="WARNING", format="console"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
