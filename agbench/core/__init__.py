"""
Core modules: configuration, records, classification and the result set.

The orchestrator, executor and backend live in their own modules and are
imported from there (agbench.core.orchestrator etc.).
"""

from .configuration import BenchConfiguration, ConfigurationLoader
from .models import BackendSkip, ExecutionRecord, Outcome, TaskSpec
from .classifier import MarkerSet, classify
from .retry import RetryOutcome, RetryPolicy, retry_until
from .results import ResultAccumulator
from .errors import AgbenchError, BackendStartError, ConfigurationError

__all__ = [
    "BenchConfiguration",
    "ConfigurationLoader",
    "BackendSkip",
    "ExecutionRecord",
    "Outcome",
    "TaskSpec",
    "MarkerSet",
    "classify",
    "RetryOutcome",
    "RetryPolicy",
    "retry_until",
    "ResultAccumulator",
    "AgbenchError",
    "BackendStartError",
    "ConfigurationError",
]
