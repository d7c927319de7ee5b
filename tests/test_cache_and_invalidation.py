from __future__ import annotations

import pytest

from workload.domain.invalidation import (
    INVALIDATION_RULES,
    MutationKind,
    keys_for_mutation,
    project_members_key,
    user_capacity_key,
    workload_analytics_key,
    workload_history_key,
)
from workload.repository.cache import FreshnessCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_every_mutation_kind_has_a_rule() -> None:
    assert set(INVALIDATION_RULES) == set(MutationKind)


@pytest.mark.parametrize(
    "kind",
    [MutationKind.ADD_MEMBER, MutationKind.UPDATE_WORKLOAD, MutationKind.REMOVE_MEMBER],
)
def test_membership_mutations_drop_capacity_members_and_analytics(kind) -> None:
    keys = keys_for_mutation(kind, project_id=7, user_id=3)

    assert user_capacity_key(3) in keys
    assert project_members_key(7) in keys
    assert workload_analytics_key() in keys


def test_workload_update_also_drops_history() -> None:
    keys = keys_for_mutation(MutationKind.UPDATE_WORKLOAD, project_id=7, user_id=3)

    assert workload_history_key(7, 3) in keys


def test_remote_rejection_only_drops_user_snapshot() -> None:
    keys = keys_for_mutation(MutationKind.REMOTE_REJECTION, project_id=7, user_id=3)

    assert keys == [user_capacity_key(3)]


def test_cache_serves_value_within_freshness_window() -> None:
    clock = FakeClock()
    cache = FreshnessCache(clock=clock)
    loads: list[int] = []

    def loader() -> int:
        loads.append(1)
        return len(loads)

    assert cache.get_or_load(("k",), loader, max_age_seconds=300) == 1
    clock.now += 299
    assert cache.get_or_load(("k",), loader, max_age_seconds=300) == 1
    assert len(loads) == 1


def test_cache_reloads_after_window_lapses() -> None:
    clock = FakeClock()
    cache = FreshnessCache(clock=clock)
    values = iter([10, 20])

    assert cache.get_or_load(("k",), lambda: next(values), max_age_seconds=300) == 10
    clock.now += 300
    assert cache.get_or_load(("k",), lambda: next(values), max_age_seconds=300) == 20


def test_cache_refresh_bypasses_window() -> None:
    cache = FreshnessCache(clock=FakeClock())
    values = iter(["old", "new"])

    cache.get_or_load(("k",), lambda: next(values), max_age_seconds=300)

    assert cache.get_or_load(("k",), lambda: next(values), max_age_seconds=300, refresh=True) == "new"


def test_failed_load_leaves_no_entry() -> None:
    cache = FreshnessCache(clock=FakeClock())

    def failing_loader() -> int:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_load(("k",), failing_loader, max_age_seconds=300)
    assert ("k",) not in cache


def test_invalidate_reports_dropped_keys() -> None:
    cache = FreshnessCache(clock=FakeClock())
    cache.get_or_load(user_capacity_key(1), lambda: "snapshot", max_age_seconds=300)

    dropped = cache.invalidate([user_capacity_key(1), project_members_key(9)])

    assert dropped == [user_capacity_key(1)]
    assert cache.peek(user_capacity_key(1)) is None
