from __future__ import annotations

import pytest

from workload.domain.errors import (
    InvalidPercentageError,
    RemoteRejectedError,
    RemoteUnavailableError,
    WorkloadExceededError,
)
from workload.domain.invalidation import project_members_key, user_capacity_key
from workload.services.membership_service import ProjectMembershipService


@pytest.fixture()
def membership(backend, provider, cache, settings) -> ProjectMembershipService:
    return ProjectMembershipService(backend, provider, cache=cache, settings=settings)


def test_add_member_commits_and_invalidates_snapshot(membership, provider, backend, cache) -> None:
    assert provider.get_user_capacity(1).total_workload == 0.0

    allocation = membership.add_member(10, 1, 60)

    assert allocation.workload_percentage == 60
    assert user_capacity_key(1) not in cache
    assert provider.get_user_capacity(1).total_workload == 60.0


def test_add_member_over_capacity_never_reaches_backend(membership, backend) -> None:
    backend.seed_allocation(10, 1, 90)

    with pytest.raises(WorkloadExceededError) as excinfo:
        membership.add_member(11, 1, 15)

    assert excinfo.value.result.total_after_assignment == 105.0
    assert excinfo.value.result.available_capacity == 10.0
    assert backend.calls["add_project_member"] == 0


def test_invalid_percentage_rejected_even_when_skipping_validation(membership, backend) -> None:
    with pytest.raises(InvalidPercentageError):
        membership.add_member(10, 1, 0, skip_validation=True)
    assert backend.calls["add_project_member"] == 0


def test_skip_validation_defers_to_backend(membership, backend, cache) -> None:
    backend.seed_allocation(10, 1, 90)

    with pytest.raises(RemoteRejectedError) as excinfo:
        membership.add_member(11, 1, 15, skip_validation=True)

    assert excinfo.value.message == "Adding this allocation would exceed 100% workload"
    assert backend.calls["get_user_workload"] == 0


def test_backend_rejection_drops_stale_snapshot(membership, provider, backend, cache) -> None:
    assert provider.get_user_capacity(1).total_workload == 0.0
    # Another session commits 95% after our snapshot was taken.
    backend.seed_allocation(20, 1, 95)

    with pytest.raises(RemoteRejectedError):
        membership.add_member(10, 1, 10)

    assert user_capacity_key(1) not in cache
    assert provider.get_user_capacity(1).total_workload == 95.0


def test_add_fails_when_capacity_unreadable(membership, backend) -> None:
    backend.unavailable = True

    with pytest.raises(RemoteUnavailableError):
        membership.add_member(10, 1, 20)
    assert backend.calls["add_project_member"] == 0


def test_update_validates_against_other_commitments(membership, backend) -> None:
    backend.seed_allocation(10, 1, 40)
    backend.seed_allocation(11, 1, 30)

    allocation = membership.update_member_workload(11, 1, 30, 60, reason="rebalance")

    assert allocation.workload_percentage == 60
    assert backend.total_for(1) == 100.0


def test_update_over_capacity_is_blocked(membership, backend) -> None:
    backend.seed_allocation(10, 1, 70)
    backend.seed_allocation(11, 1, 20)

    with pytest.raises(WorkloadExceededError):
        membership.update_member_workload(11, 1, 20, 40)
    assert backend.calls["update_member_workload"] == 0


def test_update_records_history(membership, backend) -> None:
    backend.seed_allocation(10, 1, 40)

    membership.update_member_workload(10, 1, 40, 50, reason="scope grew")
    history = membership.get_workload_history(10, 1)

    assert len(history) == 1
    assert history[0].old_workload_percentage == 40
    assert history[0].new_workload_percentage == 50
    assert history[0].reason == "scope grew"


def test_history_cache_dropped_after_update(membership, backend) -> None:
    backend.seed_allocation(10, 1, 40)
    assert membership.get_workload_history(10, 1) == []

    membership.update_member_workload(10, 1, 40, 45)

    assert len(membership.get_workload_history(10, 1)) == 1


def test_remove_member_is_idempotent(membership, backend) -> None:
    backend.seed_allocation(10, 1, 40)

    assert membership.remove_member(10, 1) is True
    assert membership.remove_member(10, 1) is False
    assert backend.calls["remove_project_member"] == 1
    assert backend.total_for(1) == 0.0


def test_remove_unknown_member_is_noop(membership, backend) -> None:
    assert membership.remove_member(10, 4) is False
    assert backend.calls["remove_project_member"] == 0


def test_remove_invalidates_members_list(membership, backend, cache) -> None:
    backend.seed_allocation(10, 1, 40)
    membership.list_members(10)

    membership.remove_member(10, 1)

    assert project_members_key(10) not in cache
    assert membership.list_members(10, active_only=True) == []


def test_batch_add_reports_partial_success(membership, backend) -> None:
    backend.seed_allocation(20, 2, 95)

    result = membership.batch_add_members(10, [(1, 50), (2, 20), (3, 0), (4, 30)])

    assert result.is_partial
    assert [outcome.user_id for outcome in result.succeeded] == [1, 4]
    failures = {outcome.user_id: outcome.error for outcome in result.failed}
    assert isinstance(failures[2], WorkloadExceededError)
    assert isinstance(failures[3], InvalidPercentageError)
    assert backend.total_for(1) == 50.0
    assert backend.total_for(4) == 30.0


def test_batch_add_validates_each_pair_against_fresh_totals(membership, backend) -> None:
    result = membership.batch_add_members(10, [(1, 60)])
    assert not result.failed

    follow_up = membership.batch_add_members(11, [(1, 50)])

    assert len(follow_up.failed) == 1
    assert follow_up.failed[0].error.result.total_after_assignment == 110.0


def test_project_capacity_summary(membership, backend) -> None:
    backend.seed_allocation(10, 1, 40)
    backend.seed_allocation(10, 2, 60)
    backend.seed_allocation(11, 3, 80)

    summary = membership.project_capacity_summary(10)

    assert summary.member_count == 2
    assert summary.total_workload == 100.0
    assert summary.average_workload == 50.0
