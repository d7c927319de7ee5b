"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_str(key: str, default: str) -> str:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    host: str
    port: int

    backend_base_url: str
    backend_timeout_seconds: float

    snapshot_freshness_seconds: float
    members_freshness_seconds: float
    analytics_freshness_seconds: float
    history_freshness_seconds: float

    snapshot_fetch_attempts: int
    snapshot_retry_backoff_seconds: float
    snapshot_retry_backoff_cap_seconds: float

    validation_warning_threshold: float
    validation_capacity_ceiling: float

    analytics_underutilized_threshold: float
    analytics_top_n: int
    analytics_include_unassigned_in_average: bool

    realtime_debounce_seconds: float
    workspace_registry_max_sessions: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process; tests derive variants with ``replace``."""
    return Settings(
        app_name=_env_str("APP_NAME", "Workload Capacity Service"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        host=_env_str("HOST", "127.0.0.1"),
        port=_env_int("PORT", 8000),
        backend_base_url=_env_str("WORKLOAD_BACKEND_URL", "http://localhost:8080").rstrip("/"),
        backend_timeout_seconds=_env_float("WORKLOAD_BACKEND_TIMEOUT_SECONDS", 30.0),
        snapshot_freshness_seconds=_env_float("SNAPSHOT_FRESHNESS_SECONDS", 300.0),
        members_freshness_seconds=_env_float("MEMBERS_FRESHNESS_SECONDS", 300.0),
        analytics_freshness_seconds=_env_float("ANALYTICS_FRESHNESS_SECONDS", 300.0),
        history_freshness_seconds=_env_float("HISTORY_FRESHNESS_SECONDS", 300.0),
        snapshot_fetch_attempts=_env_int("SNAPSHOT_FETCH_ATTEMPTS", 3),
        snapshot_retry_backoff_seconds=_env_float("SNAPSHOT_RETRY_BACKOFF_SECONDS", 1.0),
        snapshot_retry_backoff_cap_seconds=_env_float("SNAPSHOT_RETRY_BACKOFF_CAP_SECONDS", 30.0),
        validation_warning_threshold=_env_float("VALIDATION_WARNING_THRESHOLD", 80.0),
        validation_capacity_ceiling=_env_float("VALIDATION_CAPACITY_CEILING", 100.0),
        analytics_underutilized_threshold=_env_float("ANALYTICS_UNDERUTILIZED_THRESHOLD", 60.0),
        analytics_top_n=_env_int("ANALYTICS_TOP_N", 5),
        analytics_include_unassigned_in_average=_env_bool(
            "ANALYTICS_INCLUDE_UNASSIGNED_IN_AVERAGE",
            False,
        ),
        realtime_debounce_seconds=_env_float("REALTIME_DEBOUNCE_SECONDS", 0.3),
        workspace_registry_max_sessions=_env_int("WORKSPACE_REGISTRY_MAX_SESSIONS", 64),
    )
