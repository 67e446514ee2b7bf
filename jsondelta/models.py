"""Data models for the jsondelta engine."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional

from .exceptions import RuleError


class _Missing:
    """Marker for an absent value, distinct from JSON null."""

    _instance: Optional["_Missing"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        # Keep the singleton across process boundaries
        return (_Missing, ())


MISSING: Any = _Missing()


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class Severity(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class ErrorType(Enum):
    PARSE = "parse"
    TRANSFORM = "transform"
    COMPUTE = "compute"
    MEMORY = "memory"
    TIMEOUT = "timeout"


class ArrayStrategy(Enum):
    INDEX = "index"
    KEYED = "keyed"


class IgnoreRuleType(Enum):
    KEY_PATH = "keyPath"
    GLOB = "glob"
    REGEX = "regex"


class TransformType(Enum):
    ROUND = "round"
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    SORT_ARRAY = "sortArray"
    CUSTOM = "custom"


class ChangeKind(Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


class SourceType(Enum):
    PASTE = "paste"
    FILE = "file"
    URL = "url"


class JobState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.CANCELLED, JobState.ERROR})


class ProgressType(Enum):
    START = "start"
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class EngineConfig:
    """Global configuration for the job queue and its backends."""
    max_in_thread_size: int = 1024 * 1024
    use_isolated: bool = True
    isolated_workers: int = 2
    max_concurrent_jobs: int = 2
    max_queue_size: int = 10
    poll_interval: float = 0.01
    retention_seconds: float = 5.0
    log_level: LogLevel = LogLevel.INFO


# ---------------------------------------------------------------------------
# Rules and options
# ---------------------------------------------------------------------------


def _parse_enum(enum_cls, value, data: dict):
    try:
        return enum_cls(value)
    except ValueError:
        valid = [member.value for member in enum_cls]
        raise RuleError(
            str(data.get("id", "")), f"unknown type {value!r}, expected one of {valid}"
        ) from None


@dataclass(frozen=True)
class IgnoreRule:
    """Excludes object fields whose path matches the pattern."""
    id: str
    type: IgnoreRuleType
    pattern: str
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> IgnoreRule:
        return cls(
            id=str(data.get("id", "")),
            type=_parse_enum(IgnoreRuleType, data.get("type", "keyPath"), data),
            pattern=data.get("pattern", ""),
            enabled=data.get("enabled", True),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "pattern": self.pattern,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class TransformRule:
    """Normalizes values at matching paths before comparison."""
    id: str
    type: TransformType
    target_path: Optional[str] = None
    options: dict = field(default_factory=dict)
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> TransformRule:
        return cls(
            id=str(data.get("id", "")),
            type=_parse_enum(TransformType, data.get("type"), data),
            target_path=data.get("targetPath", data.get("target_path")),
            options=dict(data.get("options") or {}),
            enabled=data.get("enabled", True),
        )

    def to_dict(self) -> dict:
        from .utils import callable_ref

        options = {
            key: callable_ref(value) if callable(value) else value
            for key, value in self.options.items()
        }
        result = {
            "id": self.id,
            "type": self.type.value,
            "options": options,
            "enabled": self.enabled,
        }
        if self.target_path is not None:
            result["targetPath"] = self.target_path
        return result


@dataclass(frozen=True)
class DiffOptions:
    """Per-call diff configuration. Never mutated by the engine."""
    array_strategy: ArrayStrategy = ArrayStrategy.INDEX
    array_key_path: Optional[str] = None
    ignore_rules: tuple = ()
    transform_rules: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "ignore_rules", tuple(self.ignore_rules))
        object.__setattr__(self, "transform_rules", tuple(self.transform_rules))

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> DiffOptions:
        data = data or {}
        strategy = data.get("arrayStrategy", data.get("array_strategy", "index"))
        return cls(
            array_strategy=ArrayStrategy(strategy),
            array_key_path=data.get("arrayKeyPath", data.get("array_key_path")),
            ignore_rules=[
                IgnoreRule.from_dict(rule)
                for rule in data.get("ignoreRules", data.get("ignore_rules")) or []
            ],
            transform_rules=[
                TransformRule.from_dict(rule)
                for rule in data.get("transformRules", data.get("transform_rules")) or []
            ],
        )

    def to_dict(self) -> dict:
        result = {
            "arrayStrategy": self.array_strategy.value,
            "ignoreRules": [r.to_dict() for r in self.ignore_rules],
            "transformRules": [r.to_dict() for r in self.transform_rules],
        }
        if self.array_key_path is not None:
            result["arrayKeyPath"] = self.array_key_path
        return result


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionSource:
    """Where a version came from."""
    type: SourceType = SourceType.PASTE
    ref: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"type": self.type.value}
        if self.ref is not None:
            result["ref"] = self.ref
        return result


_FIXED_VERSION_FIELDS = frozenset({"id", "source", "payload"})


@dataclass
class JsonVersion:
    """A JSON document with metadata. Only label and timestamp may change."""
    id: str
    label: str
    timestamp: str
    source: VersionSource
    payload: Any

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FIXED_VERSION_FIELDS and name in self.__dict__:
            raise AttributeError(f"JsonVersion.{name} cannot be reassigned")
        super().__setattr__(name, value)

    @classmethod
    def create(
        cls,
        payload: Any,
        label: str = "",
        source: Optional[VersionSource] = None,
    ) -> JsonVersion:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        return cls(
            id=f"v_{int(time.time() * 1000)}_{suffix}",
            label=label,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            source=source or VersionSource(),
            payload=payload,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "timestamp": self.timestamp,
            "source": self.source.to_dict(),
            "payload": self.payload,
        }


# ---------------------------------------------------------------------------
# Diff tree
# ---------------------------------------------------------------------------


@dataclass
class DiffNodeMeta:
    """Rendering hints attached to composite nodes."""
    count_changed: Optional[int] = None
    is_truncated: bool = False
    array_strategy: Optional[ArrayStrategy] = None
    moved_from: Optional[int] = None
    moved_count: int = 0

    def to_dict(self) -> dict:
        result = {}
        if self.count_changed is not None:
            result["countChanged"] = self.count_changed
        if self.is_truncated:
            result["isTruncated"] = True
        if self.array_strategy is not None:
            result["arrayStrategy"] = self.array_strategy.value
        if self.moved_from is not None:
            result["movedFrom"] = self.moved_from
        if self.moved_count:
            result["movedCount"] = self.moved_count
        return result


@dataclass
class DiffNode:
    """One node of the diff tree describing the change at a JSON path."""
    path: str
    kind: ChangeKind
    before: Any = MISSING
    after: Any = MISSING
    children: Optional[list[DiffNode]] = None
    meta: Optional[DiffNodeMeta] = None

    @property
    def has_before(self) -> bool:
        return self.before is not MISSING

    @property
    def has_after(self) -> bool:
        return self.after is not MISSING

    def walk(self) -> Iterator[DiffNode]:
        """Yield this node and every descendant, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def find(self, path: str) -> Optional[DiffNode]:
        """Find the node with the given path in this subtree."""
        for node in self.walk():
            if node.path == path:
                return node
        return None

    def to_dict(self) -> dict:
        result = {"path": self.path, "kind": self.kind.value}
        if self.before is not MISSING:
            result["before"] = self.before
        if self.after is not MISSING:
            result["after"] = self.after
        if self.children is not None:
            result["children"] = [c.to_dict() for c in self.children]
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result


@dataclass
class DiffStats:
    nodes: int
    compute_ms: int

    def to_dict(self) -> dict:
        return {"nodes": self.nodes, "computeMs": self.compute_ms}


@dataclass
class DiffResult:
    """Complete diff between two documents."""
    version_a: str
    version_b: str
    options_key: str
    root: DiffNode
    stats: DiffStats

    @property
    def has_changes(self) -> bool:
        return self.root.kind is not ChangeKind.UNCHANGED

    def to_dict(self) -> dict:
        return {
            "versionA": self.version_a,
            "versionB": self.version_b,
            "optionsKey": self.options_key,
            "root": self.root.to_dict(),
            "stats": self.stats.to_dict(),
        }


# ---------------------------------------------------------------------------
# Validation and analysis
# ---------------------------------------------------------------------------


@dataclass
class DiffError:
    """A recoverable problem reported to the caller for correction."""
    type: ErrorType
    message: str
    details: dict = field(default_factory=dict)
    recoverable: bool = True
    severity: Severity = Severity.ERROR
    rule_id: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "type": self.type.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "severity": self.severity.value,
        }
        if self.rule_id is not None:
            result["ruleId"] = self.rule_id
        return result


@dataclass
class KeyableArray:
    keyable: bool
    key_path: Optional[str] = None


@dataclass
class StrategySuggestion:
    """Advisory array matching strategy for one array."""
    suggested: ArrayStrategy
    confidence: float
    reason: str
    key_path: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "suggested": self.suggested.value,
            "confidence": self.confidence,
            "reason": self.reason,
        }
        if self.key_path is not None:
            result["keyPath"] = self.key_path
        return result


@dataclass
class StrategyValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class StrategyInfo:
    strategy: str
    description: str
    key_path: Optional[str] = None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@dataclass
class JobStatus:
    """
    Snapshot of one job's lifecycle.

    submitted_at and started_at are epoch seconds; finished_at comes from the
    queue's clock and only drives retention.
    """
    id: str
    status: JobState = JobState.PENDING
    progress: int = 0
    result: Optional[DiffResult] = None
    error: Optional[str] = None
    started_at: Optional[float] = None
    submitted_at: Optional[float] = None
    finished_at: Optional[float] = None
    backend: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "status": self.status.value,
            "progress": self.progress,
        }
        if self.result is not None:
            result["result"] = self.result.to_dict()
        if self.error is not None:
            result["error"] = self.error
        if self.started_at is not None:
            result["startTime"] = int(self.started_at * 1000)
        if self.backend is not None:
            result["backend"] = self.backend
        return result


@dataclass
class QueueStats:
    total_jobs: int
    running_jobs: int
    pending_jobs: int
    max_concurrent_jobs: int
    max_queue_size: int

    def to_dict(self) -> dict:
        return {
            "totalJobs": self.total_jobs,
            "runningJobs": self.running_jobs,
            "pendingJobs": self.pending_jobs,
            "maxConcurrentJobs": self.max_concurrent_jobs,
            "maxQueueSize": self.max_queue_size,
        }


@dataclass
class ProgressEvent:
    type: ProgressType
    job_id: str
    progress: Optional[int] = None
    result: Optional[DiffResult] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"type": self.type.value, "jobId": self.job_id}
        if self.progress is not None:
            result["progress"] = self.progress
        if self.result is not None:
            result["result"] = self.result.to_dict()
        if self.error is not None:
            result["error"] = self.error
        return result
