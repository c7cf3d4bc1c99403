"""fixflow: concurrent, fault-isolated batch resolution of work items.

Each work item runs through a fetch, generate, validate, refine and
finalize pipeline; many pipelines run under a bounded-concurrency,
priority-ordered scheduler that produces one ordered summary.
"""

from fixflow.batch import BatchProcessor, load_config, submit_batch
from fixflow.collaborators import Collaborators, with_retry
from fixflow.core.config import BatchConfig, RetryPolicy
from fixflow.core.errors import ConfigurationError, ErrorCategory
from fixflow.core.models import BatchSummary, Candidate, FileChange, PipelineResult, WorkItem

__version__ = "0.1.0"

__all__ = [
    "BatchConfig",
    "BatchProcessor",
    "BatchSummary",
    "Candidate",
    "Collaborators",
    "ConfigurationError",
    "ErrorCategory",
    "FileChange",
    "PipelineResult",
    "RetryPolicy",
    "WorkItem",
    "__version__",
    "load_config",
    "submit_batch",
    "with_retry",
]
