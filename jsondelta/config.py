"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from .models import EngineConfig, LogLevel


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"JSONDELTA_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> LogLevel:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    try:
        return LogLevel(normalized)
    except ValueError:
        valid = sorted(level.value.lower() for level in LogLevel)
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}") from None


def load_config() -> EngineConfig:
    """Load configuration from JSONDELTA_* environment variables."""
    return EngineConfig(
        max_in_thread_size=_env_int("MAX_IN_THREAD_SIZE", 1024 * 1024, min_val=0),
        use_isolated=_env_bool("USE_ISOLATED", True),
        isolated_workers=_env_int("ISOLATED_WORKERS", 2, min_val=1, max_val=32),
        max_concurrent_jobs=_env_int("MAX_CONCURRENT_JOBS", 2, min_val=1, max_val=64),
        max_queue_size=_env_int("MAX_QUEUE_SIZE", 10, min_val=1, max_val=1000),
        poll_interval=_env_float("POLL_INTERVAL", 0.01, min_val=0.001),
        retention_seconds=_env_float("RETENTION_SECONDS", 5.0, min_val=0.0),
        log_level=_validate_log_level(_env("LOG_LEVEL", "info")),
    )
