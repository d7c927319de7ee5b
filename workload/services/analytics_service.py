"""Organization-wide workload analytics built from capacity snapshots."""

from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd

from workload.domain.constraints import AnalyticsConfig, validate_analytics_config
from workload.domain.invalidation import workload_analytics_key
from workload.domain.models import (
    USER_CAPACITY_PERCENT,
    AnalyticsRollup,
    CapacitySnapshot,
    Role,
    RoleWorkloadSummary,
    SystemUtilization,
)
from workload.repository.backend_client import BackendClient
from workload.repository.cache import FreshnessCache
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)

_FRAME_COLUMNS = ["user_id", "role", "total_workload", "has_allocations"]


def _snapshot_frame(snapshots: Sequence[CapacitySnapshot]) -> pd.DataFrame:
    rows = [
        {
            "user_id": snapshot.user_id,
            "role": snapshot.role.value,
            "total_workload": float(snapshot.total_workload),
            "has_allocations": snapshot.has_allocations,
        }
        for snapshot in snapshots
    ]
    return pd.DataFrame(rows, columns=_FRAME_COLUMNS)


def _mean_or_zero(values: pd.Series) -> float:
    if values.empty:
        return 0.0
    return float(values.mean())


def rank_by_workload(snapshots: Sequence[CapacitySnapshot]) -> list[CapacitySnapshot]:
    """Highest workload first; equal workloads fall back to ascending user id."""
    return sorted(snapshots, key=lambda snapshot: (-snapshot.total_workload, snapshot.user_id))


def compute_system_utilization(snapshots: Sequence[CapacitySnapshot]) -> SystemUtilization:
    total_capacity = USER_CAPACITY_PERCENT * len(snapshots)
    used_capacity = float(sum(snapshot.total_workload for snapshot in snapshots))
    if total_capacity > 0:
        utilization = used_capacity / total_capacity * 100.0
    else:
        utilization = 0.0
    return SystemUtilization(
        total_capacity=total_capacity,
        used_capacity=used_capacity,
        utilization_percentage=utilization,
        available_capacity=max(0.0, total_capacity - used_capacity),
    )


def build_rollup(snapshots: Sequence[CapacitySnapshot], config: AnalyticsConfig) -> AnalyticsRollup:
    """Project per-user snapshots into cohort, role and system aggregates.

    Users without an active allocation are left out of the cohort counts and
    averages unless ``config.include_unassigned_in_average`` is set, in which
    case they count as zero workload.
    """
    validate_analytics_config(config)
    if not snapshots:
        return AnalyticsRollup(
            total_users=0,
            overloaded_users=0,
            underutilized_users=0,
            fully_utilized_users=0,
            average_workload=0.0,
            role_breakdown={},
            system_utilization=compute_system_utilization([]),
            top_overloaded=[],
        )

    frame = _snapshot_frame(snapshots)
    frame["has_allocations"] = frame["has_allocations"].astype(bool)
    if config.include_unassigned_in_average:
        counted = frame
    else:
        counted = frame[frame["has_allocations"]]

    workloads = counted["total_workload"]
    overloaded = int((workloads > config.overload_threshold).sum())
    underutilized = int((workloads < config.underutilized_threshold).sum())
    fully_utilized = int(
        (
            (workloads >= config.underutilized_threshold)
            & (workloads <= config.overload_threshold)
        ).sum()
    )

    role_breakdown: dict[Role, RoleWorkloadSummary] = {}
    for role_value, group in frame.groupby("role", sort=True):
        role_counted = group if config.include_unassigned_in_average else group[group["has_allocations"]]
        role = Role(role_value)
        role_breakdown[role] = RoleWorkloadSummary(
            role=role,
            total_users=int(len(group)),
            average_workload=_mean_or_zero(role_counted["total_workload"]),
            overloaded_count=int((group["total_workload"] > config.overload_threshold).sum()),
        )

    ranked = rank_by_workload(snapshots)
    top_overloaded = [
        snapshot for snapshot in ranked if snapshot.total_workload > config.overload_threshold
    ][: config.top_n]

    rollup = AnalyticsRollup(
        total_users=int(len(frame)),
        overloaded_users=overloaded,
        underutilized_users=underutilized,
        fully_utilized_users=fully_utilized,
        average_workload=_mean_or_zero(workloads),
        role_breakdown=role_breakdown,
        system_utilization=compute_system_utilization(snapshots),
        top_overloaded=top_overloaded,
        workload_distribution=ranked,
    )
    logger.info(
        (
            "Workload rollup computed | users=%s | overloaded=%s | underutilized=%s | "
            "fully_utilized=%s | average_workload=%.2f"
        ),
        rollup.total_users,
        rollup.overloaded_users,
        rollup.underutilized_users,
        rollup.fully_utilized_users,
        rollup.average_workload,
    )
    return rollup


def analytics_config_from_settings(settings: Settings) -> AnalyticsConfig:
    return AnalyticsConfig(
        underutilized_threshold=settings.analytics_underutilized_threshold,
        overload_threshold=USER_CAPACITY_PERCENT,
        top_n=settings.analytics_top_n,
        include_unassigned_in_average=settings.analytics_include_unassigned_in_average,
    )


class WorkloadAnalyticsService:
    """Read-side projection; safe to recompute or discard at any time."""

    def __init__(
        self,
        client: BackendClient,
        cache: Optional[FreshnessCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._cache = cache or FreshnessCache()
        self._config = analytics_config_from_settings(self._settings)

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    def get_rollup(self, *, refresh: bool = False) -> AnalyticsRollup:
        return self._cache.get_or_load(
            workload_analytics_key(),
            lambda: build_rollup(self._client.get_workload_analytics(), self._config),
            max_age_seconds=self._settings.analytics_freshness_seconds,
            refresh=refresh,
        )
