"""
jsondelta - Structural JSON diff engine

Computes a tree of added, removed and modified values between two JSON
documents, with ignore rules, value transforms, positional or keyed array
matching, and a job queue for running diffs in the background with
progress reporting and cooperative cancellation.
"""

from .engine import DiffEngine, compute_diff, compute_version_diff, options_key
from .models import (
    MISSING,
    ArrayStrategy,
    ChangeKind,
    DiffError,
    DiffNode,
    DiffOptions,
    DiffResult,
    EngineConfig,
    IgnoreRule,
    IgnoreRuleType,
    JobState,
    JobStatus,
    JsonVersion,
    ProgressEvent,
    QueueStats,
    Severity,
    StrategySuggestion,
    TransformRule,
    TransformType,
    VersionSource,
)
from .exceptions import (
    JsonDeltaError,
    ValidationError,
    ParseError,
    RuleError,
    ComputeError,
    JobCancelledError,
    QueueFullError,
    JobNotFoundError,
)
from .arrays import suggest_array_strategy, analyze_document
from .validation import validate_options
from .cancellation import CancellationToken
from .jobs import JobQueue
from .config import load_config
from .runner import DiffRunner, load_options

__version__ = "1.0.0"
__all__ = [
    # Engine
    "DiffEngine",
    "compute_diff",
    "compute_version_diff",
    "options_key",
    # Models
    "MISSING",
    "ArrayStrategy",
    "ChangeKind",
    "DiffError",
    "DiffNode",
    "DiffOptions",
    "DiffResult",
    "EngineConfig",
    "IgnoreRule",
    "IgnoreRuleType",
    "JobState",
    "JobStatus",
    "JsonVersion",
    "ProgressEvent",
    "QueueStats",
    "Severity",
    "StrategySuggestion",
    "TransformRule",
    "TransformType",
    "VersionSource",
    # Errors
    "JsonDeltaError",
    "ValidationError",
    "ParseError",
    "RuleError",
    "ComputeError",
    "JobCancelledError",
    "QueueFullError",
    "JobNotFoundError",
    # Analysis and validation
    "suggest_array_strategy",
    "analyze_document",
    "validate_options",
    # Jobs
    "CancellationToken",
    "JobQueue",
    "load_config",
    # Files
    "DiffRunner",
    "load_options",
]
