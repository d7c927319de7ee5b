from __future__ import annotations

from dataclasses import replace

import pytest

from workload.domain.constraints import AnalyticsConfig
from workload.domain.models import CapacitySnapshot, Role
from workload.services.analytics_service import (
    WorkloadAnalyticsService,
    build_rollup,
    compute_system_utilization,
    rank_by_workload,
)


DEFAULT_CONFIG = AnalyticsConfig(
    underutilized_threshold=60.0,
    overload_threshold=100.0,
    top_n=5,
    include_unassigned_in_average=False,
)


def _snap(user_id: int, total: float, role: Role = Role.DEVELOPER, projects: int | None = None):
    return CapacitySnapshot(
        user_id=user_id,
        total_workload=total,
        active_project_count=projects if projects is not None else (1 if total > 0 else 0),
        role=role,
    )


def test_cohorts_exclude_unassigned_users() -> None:
    snapshots = [_snap(1, 40), _snap(2, 85), _snap(3, 110, projects=3), _snap(4, 0)]

    rollup = build_rollup(snapshots, DEFAULT_CONFIG)

    assert rollup.total_users == 4
    assert rollup.overloaded_users == 1
    assert rollup.underutilized_users == 1
    assert rollup.fully_utilized_users == 1
    assert rollup.average_workload == pytest.approx(235 / 3)


def test_unassigned_users_can_be_counted_as_zero() -> None:
    snapshots = [_snap(1, 40), _snap(2, 85), _snap(3, 110), _snap(4, 0)]
    config = replace(DEFAULT_CONFIG, include_unassigned_in_average=True)

    rollup = build_rollup(snapshots, config)

    assert rollup.underutilized_users == 2
    assert rollup.average_workload == pytest.approx(235 / 4)


def test_cohort_boundaries() -> None:
    snapshots = [_snap(1, 60), _snap(2, 100), _snap(3, 59.99), _snap(4, 100.01)]

    rollup = build_rollup(snapshots, DEFAULT_CONFIG)

    assert rollup.fully_utilized_users == 2
    assert rollup.underutilized_users == 1
    assert rollup.overloaded_users == 1


def test_role_breakdown_groups_by_role() -> None:
    snapshots = [
        _snap(1, 40, Role.DEVELOPER),
        _snap(2, 120, Role.DEVELOPER),
        _snap(3, 70, Role.TESTER),
        _snap(4, 0, Role.TESTER),
    ]

    rollup = build_rollup(snapshots, DEFAULT_CONFIG)

    developers = rollup.role_breakdown[Role.DEVELOPER]
    testers = rollup.role_breakdown[Role.TESTER]
    assert developers.total_users == 2
    assert developers.average_workload == pytest.approx(80.0)
    assert developers.overloaded_count == 1
    assert testers.total_users == 2
    assert testers.average_workload == pytest.approx(70.0)
    assert testers.overloaded_count == 0


def test_unknown_role_is_its_own_group() -> None:
    rollup = build_rollup([_snap(1, 50, Role.UNKNOWN)], DEFAULT_CONFIG)

    assert Role.UNKNOWN in rollup.role_breakdown


def test_top_overloaded_ties_break_by_user_id() -> None:
    snapshots = [_snap(9, 120), _snap(3, 120), _snap(5, 150), _snap(1, 90)]

    rollup = build_rollup(snapshots, replace(DEFAULT_CONFIG, top_n=2))

    assert [snapshot.user_id for snapshot in rollup.top_overloaded] == [5, 3]


def test_top_overloaded_contains_only_overloaded_users() -> None:
    rollup = build_rollup([_snap(1, 100), _snap(2, 101)], DEFAULT_CONFIG)

    assert [snapshot.user_id for snapshot in rollup.top_overloaded] == [2]


def test_ranking_is_descending() -> None:
    ranked = rank_by_workload([_snap(1, 10), _snap(2, 90), _snap(3, 50)])

    assert [snapshot.user_id for snapshot in ranked] == [2, 3, 1]


def test_system_utilization() -> None:
    utilization = compute_system_utilization([_snap(1, 40), _snap(2, 85), _snap(3, 110), _snap(4, 0)])

    assert utilization.total_capacity == 400.0
    assert utilization.used_capacity == 235.0
    assert utilization.utilization_percentage == pytest.approx(58.75)
    assert utilization.available_capacity == 165.0


def test_system_utilization_available_never_negative() -> None:
    utilization = compute_system_utilization([_snap(1, 150)])

    assert utilization.available_capacity == 0.0


def test_empty_population_yields_zeroes() -> None:
    rollup = build_rollup([], DEFAULT_CONFIG)

    assert rollup.total_users == 0
    assert rollup.average_workload == 0.0
    assert rollup.system_utilization.utilization_percentage == 0.0
    assert rollup.top_overloaded == []


def test_all_unassigned_population_has_zero_average() -> None:
    rollup = build_rollup([_snap(1, 0), _snap(2, 0)], DEFAULT_CONFIG)

    assert rollup.total_users == 2
    assert rollup.average_workload == 0.0
    assert rollup.underutilized_users == 0


def test_service_caches_rollup(backend, cache, settings) -> None:
    backend.seed_allocation(10, 1, 40)
    service = WorkloadAnalyticsService(backend, cache=cache, settings=settings)

    first = service.get_rollup()
    second = service.get_rollup()

    assert first is second
    assert backend.calls["get_workload_analytics"] == 1
    assert first.total_users == 4
