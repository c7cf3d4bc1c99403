"""Core models, configuration, errors and logging for fixflow."""

from fixflow.core.config import (
    BatchConfig,
    LogConfig,
    PrioritizerConfig,
    RetryPolicy,
    ValidatorConfig,
)
from fixflow.core.errors import (
    ConfigurationError,
    ContextFetchError,
    ErrorCategory,
    FinalizeError,
    FixflowError,
    GenerationError,
    PipelineStageError,
)
from fixflow.core.models import (
    BatchSummary,
    Candidate,
    ErrorGroup,
    FileChange,
    IndexedResult,
    PipelineOutput,
    PipelineResult,
    RefinementFeedback,
    ScoredWorkItem,
    ValidationReport,
    WorkItem,
)

__all__ = [
    "BatchConfig",
    "LogConfig",
    "PrioritizerConfig",
    "RetryPolicy",
    "ValidatorConfig",
    "ConfigurationError",
    "ContextFetchError",
    "ErrorCategory",
    "FinalizeError",
    "FixflowError",
    "GenerationError",
    "PipelineStageError",
    "BatchSummary",
    "Candidate",
    "ErrorGroup",
    "FileChange",
    "IndexedResult",
    "PipelineOutput",
    "PipelineResult",
    "RefinementFeedback",
    "ScoredWorkItem",
    "ValidationReport",
    "WorkItem",
]
