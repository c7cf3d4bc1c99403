"""Batch execution: prioritize, schedule, run pipelines, aggregate."""

from fixflow.execution.aggregator import aggregate, group_errors, normalize_error_message
from fixflow.execution.candidate import parse_candidate
from fixflow.execution.isolation import run_isolated
from fixflow.execution.pipeline import PipelineRunner, build_feedback
from fixflow.execution.prioritizer import Prioritizer, prioritize
from fixflow.execution.scheduler import BatchScheduler, SchedulerStats
from fixflow.execution.validator import CandidateValidator

__all__ = [
    "BatchScheduler",
    "CandidateValidator",
    "PipelineRunner",
    "Prioritizer",
    "SchedulerStats",
    "aggregate",
    "build_feedback",
    "group_errors",
    "normalize_error_message",
    "parse_candidate",
    "prioritize",
    "run_isolated",
]
