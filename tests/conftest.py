from __future__ import annotations

from collections import Counter
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from workload.domain.errors import RemoteRejectedError, RemoteUnavailableError, ResourceNotFoundError
from workload.domain.models import Allocation, CapacitySnapshot, Role, User, WorkloadChange
from workload.repository.cache import FreshnessCache
from workload.services.capacity_service import CapacitySnapshotProvider
from workload.utils.config import get_settings


class InMemoryBackend:
    """Stand-in for the system of record with the same surface as BackendClient.

    It re-checks the 100% ceiling at commit time, like the real backend.
    """

    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.allocations: dict[tuple[int, int], Allocation] = {}
        self.history: dict[tuple[int, int], list[WorkloadChange]] = {}
        self.unavailable = False
        self.failures_before_success = 0
        self.calls: Counter[str] = Counter()
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def add_user(self, user_id: int, role: Role = Role.DEVELOPER, name: str = "") -> None:
        self.users[user_id] = User(
            user_id=user_id,
            role=role,
            full_name=name or f"User {user_id}",
            email=f"user{user_id}@example.com",
        )

    def seed_allocation(self, project_id: int, user_id: int, workload_percentage: float) -> None:
        """Commit an allocation directly, as another session would."""
        if user_id not in self.users:
            self.add_user(user_id)
        self.allocations[(project_id, user_id)] = Allocation(
            user_id=user_id,
            project_id=project_id,
            workload_percentage=workload_percentage,
            user=self.users[user_id],
        )

    def total_for(self, user_id: int) -> float:
        return float(
            sum(
                allocation.workload_percentage
                for (_, uid), allocation in self.allocations.items()
                if uid == user_id and allocation.is_active
            )
        )

    def _active_count(self, user_id: int) -> int:
        return sum(
            1
            for (_, uid), allocation in self.allocations.items()
            if uid == user_id and allocation.is_active
        )

    def _check_available(self, name: str) -> None:
        self.calls[name] += 1
        if self.unavailable:
            raise RemoteUnavailableError("Backend unreachable: connection refused")
        if self.failures_before_success > 0:
            self.failures_before_success -= 1
            raise RemoteUnavailableError("Backend unreachable: timed out")

    def _snapshot(self, user_id: int) -> CapacitySnapshot:
        user = self.users[user_id]
        return CapacitySnapshot(
            user_id=user_id,
            total_workload=self.total_for(user_id),
            active_project_count=self._active_count(user_id),
            user_name=user.full_name,
            email=user.email,
            role=user.role,
        )

    def get_user_workload(self, user_id: int) -> CapacitySnapshot:
        self._check_available("get_user_workload")
        if user_id not in self.users:
            raise ResourceNotFoundError(f"User not found with id: {user_id}")
        return self._snapshot(user_id)

    def get_workload_analytics(self) -> list[CapacitySnapshot]:
        self._check_available("get_workload_analytics")
        return [self._snapshot(user_id) for user_id in sorted(self.users)]

    def list_project_members(self, project_id: int) -> list[Allocation]:
        self._check_available("list_project_members")
        return [
            allocation
            for (pid, _), allocation in sorted(self.allocations.items())
            if pid == project_id
        ]

    def add_project_member(
        self,
        project_id: int,
        user_id: int,
        workload_percentage: float,
        joined_date: Optional[date] = None,
    ) -> Allocation:
        self._check_available("add_project_member")
        if user_id not in self.users:
            raise ResourceNotFoundError(f"User not found with id: {user_id}")
        existing = self.allocations.get((project_id, user_id))
        if existing is not None and existing.is_active:
            raise RemoteRejectedError("User is already a member of this project", status_code=409)
        if self.total_for(user_id) + workload_percentage > 100:
            raise RemoteRejectedError(
                "Adding this allocation would exceed 100% workload",
                status_code=409,
                error_code="WORKLOAD_EXCEEDED",
            )
        allocation = Allocation(
            user_id=user_id,
            project_id=project_id,
            workload_percentage=workload_percentage,
            joined_date=joined_date,
            allocation_id=len(self.allocations) + 1,
            user=self.users[user_id],
        )
        self.allocations[(project_id, user_id)] = allocation
        return allocation

    def update_member_workload(
        self,
        project_id: int,
        user_id: int,
        workload_percentage: float,
        reason: Optional[str] = None,
    ) -> Allocation:
        self._check_available("update_member_workload")
        existing = self.allocations.get((project_id, user_id))
        if existing is None or not existing.is_active:
            raise ResourceNotFoundError("Member not found in project")
        new_total = self.total_for(user_id) - existing.workload_percentage + workload_percentage
        if new_total > 100:
            raise RemoteRejectedError(
                "Updated workload would exceed 100% capacity",
                status_code=409,
                error_code="WORKLOAD_EXCEEDED",
            )
        updated = replace(existing, workload_percentage=workload_percentage)
        self.allocations[(project_id, user_id)] = updated
        self._clock += timedelta(minutes=1)
        self.history.setdefault((project_id, user_id), []).append(
            WorkloadChange(
                change_timestamp=self._clock,
                changed_by="tester",
                old_workload_percentage=existing.workload_percentage,
                new_workload_percentage=workload_percentage,
                reason=reason,
            )
        )
        return updated

    def remove_project_member(self, project_id: int, user_id: int) -> None:
        self._check_available("remove_project_member")
        existing = self.allocations.get((project_id, user_id))
        if existing is None:
            raise ResourceNotFoundError("Member not found in project")
        self.allocations[(project_id, user_id)] = replace(
            existing,
            is_active=False,
            left_date=date(2026, 1, 31),
        )

    def get_member_workload_history(self, project_id: int, user_id: int) -> list[WorkloadChange]:
        self._check_available("get_member_workload_history")
        return list(self.history.get((project_id, user_id), []))

    def check_health(self) -> dict[str, str]:
        self._check_available("check_health")
        return {"status": "UP"}


@pytest.fixture()
def settings():
    get_settings.cache_clear()
    return replace(
        get_settings(),
        snapshot_fetch_attempts=3,
        snapshot_retry_backoff_seconds=0.0,
        realtime_debounce_seconds=0.0,
        validation_warning_threshold=80.0,
        validation_capacity_ceiling=100.0,
        analytics_underutilized_threshold=60.0,
        analytics_top_n=5,
        analytics_include_unassigned_in_average=False,
    )


@pytest.fixture()
def backend() -> InMemoryBackend:
    fake = InMemoryBackend()
    for user_id, role in (
        (1, Role.DEVELOPER),
        (2, Role.DEVELOPER),
        (3, Role.TESTER),
        (4, Role.BUSINESS_ANALYST),
    ):
        fake.add_user(user_id, role)
    return fake


@pytest.fixture()
def cache() -> FreshnessCache:
    return FreshnessCache()


@pytest.fixture()
def provider(backend, cache, settings) -> CapacitySnapshotProvider:
    return CapacitySnapshotProvider(backend, cache=cache, settings=settings, sleep=lambda _: None)
