"""Configuration models for fixflow batches.

Pydantic models for the batch options accepted by ``submit_batch`` and
for the policies owned by collaborator implementations. Configs can be
loaded from YAML:

    max_concurrent: 4
    max_refine_attempts: 3
    batch_deadline_seconds: 900
    prioritizer:
      urgent_labels: [critical, blocker]
      tie_break: index
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console output on stderr and in file_path",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )
    max_file_size_mb: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Maximum log file size before rotation (MB)",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )
    include_timestamps: bool = Field(default=True)
    include_context: bool = Field(
        default=True,
        description="Include batch_id, run_id and work_item_id in log entries",
    )

    @model_validator(mode="after")
    def _require_file_for_both(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format is 'both'")
        return self


class PrioritizerConfig(BaseModel):
    """Scoring inputs for ordering work items before scheduling."""

    urgent_labels: list[str] = Field(
        default=["critical", "high-priority", "priority", "blocker"],
        description="Each matching label adds 10 points",
    )
    bug_labels: list[str] = Field(
        default=["bug", "defect", "regression"],
        description="Presence of any of these adds 5 points",
    )
    tie_break: Literal["random", "index"] = Field(
        default="random",
        description="random: small random perturbation per item; "
        "index: no perturbation, ties keep submission order",
    )
    tie_break_scale: float = Field(
        default=0.01,
        ge=0,
        lt=1,
        description="Upper bound of the random perturbation",
    )

    @field_validator("urgent_labels", "bug_labels")
    @classmethod
    def _lowercase_labels(cls, v: list[str]) -> list[str]:
        return [label.strip().lower() for label in v if label.strip()]


class ValidatorConfig(BaseModel):
    """Structural checks applied by the built-in candidate validator."""

    allowed_extensions: list[str] | None = Field(
        default=None,
        description="File extensions a candidate may touch (None = any)",
    )
    blocked_paths: list[str] = Field(
        default=[".git/"],
        description="Path prefixes a candidate may never touch",
    )
    bracket_checked_extensions: list[str] = Field(
        default=["js", "jsx", "ts", "tsx", "py", "json", "java", "c", "cpp", "go", "rs"],
        description="Extensions whose content must have balanced brackets",
    )

    @field_validator("allowed_extensions", "bracket_checked_extensions")
    @classmethod
    def _normalize_extensions(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return [ext.lower().lstrip(".") for ext in v]


class RetryPolicy(BaseModel):
    """Retry with exponential backoff for external collaborator calls.

    Owned by collaborator implementations; the batch core only sees the
    final success or failure of a call.
    """

    max_retries: int = Field(default=3, ge=0, description="Retries after the first call")
    backoff_base_seconds: float = Field(default=1.0, gt=0)
    max_backoff_seconds: float = Field(default=30.0, gt=0)
    exponential_base: float = Field(default=2.0, gt=1)
    jitter: bool = Field(default=True, description="Add up to 25% random delay")

    @model_validator(mode="after")
    def _validate_delay_range(self) -> RetryPolicy:
        if self.backoff_base_seconds > self.max_backoff_seconds:
            raise ValueError(
                f"backoff_base_seconds ({self.backoff_base_seconds}) must not exceed "
                f"max_backoff_seconds ({self.max_backoff_seconds})"
            )
        return self


class BatchConfig(BaseModel):
    """Options for one batch run."""

    max_concurrent: int = Field(
        default=3,
        ge=1,
        description="Hard cap on pipelines in flight at any instant",
    )
    max_refine_attempts: int = Field(
        default=3,
        ge=1,
        description="Generate/validate cycles allowed per item",
    )
    batch_deadline_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Stop starting queued items once this many seconds have elapsed",
    )
    max_items_per_batch: int | None = Field(
        default=None,
        ge=1,
        description="Items beyond this many (lowest priority first) are skipped",
    )
    error_groups_top_k: int = Field(default=5, ge=1)
    prioritizer: PrioritizerConfig = Field(default_factory=PrioritizerConfig)
    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    logging: LogConfig = Field(
        default_factory=LogConfig,
        description="Applied by load_config() or configure_logging_from(); "
        "submit_batch never reconfigures logging itself",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> BatchConfig:
        """Load batch configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> BatchConfig:
        """Load batch configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})


__all__ = [
    "BatchConfig",
    "LogConfig",
    "PrioritizerConfig",
    "RetryPolicy",
    "ValidatorConfig",
]
