"""Read-validate-write orchestration for project member allocations."""

from __future__ import annotations

from datetime import date
from typing import Callable, Iterable, Optional, TypeVar

from workload.domain.constraints import validate_percentage
from workload.domain.errors import RemoteRejectedError, WorkloadError, WorkloadExceededError
from workload.domain.invalidation import (
    MutationKind,
    keys_for_mutation,
    project_members_key,
    workload_history_key,
)
from workload.domain.models import (
    Allocation,
    BatchAddResult,
    MemberAssignmentOutcome,
    ProjectCapacitySummary,
    ValidationResult,
    WorkloadChange,
)
from workload.repository.backend_client import BackendClient
from workload.repository.cache import FreshnessCache
from workload.services.capacity_service import CapacitySnapshotProvider
from workload.services.validation_service import (
    validate_addition,
    validate_update,
    validation_config_from_settings,
)
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class ProjectMembershipService:
    """Adds, rebalances and removes project members.

    Local validation is advisory: it runs against a snapshot that may
    already be stale when the write lands, and the backend re-validates at
    commit time. A backend rejection is surfaced with its own message and
    drops the user's snapshot so the next check re-reads it.
    """

    def __init__(
        self,
        client: BackendClient,
        provider: CapacitySnapshotProvider,
        cache: Optional[FreshnessCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._provider = provider
        self._cache = cache or provider.cache
        self._validation_config = validation_config_from_settings(self._settings)

    def _invalidate(self, kind: MutationKind, *, project_id: int, user_id: int) -> None:
        keys = keys_for_mutation(kind, project_id=project_id, user_id=user_id)
        self._cache.invalidate(keys)

    def _submit(
        self,
        kind: MutationKind,
        *,
        project_id: int,
        user_id: int,
        call: Callable[[], T],
    ) -> T:
        try:
            result = call()
        except RemoteRejectedError as exc:
            logger.warning(
                "Backend rejected %s | project_id=%s | user_id=%s | message=%s",
                kind.value,
                project_id,
                user_id,
                exc.message,
            )
            self._invalidate(MutationKind.REMOTE_REJECTION, project_id=project_id, user_id=user_id)
            raise
        self._invalidate(kind, project_id=project_id, user_id=user_id)
        return result

    def _ensure_valid(self, result: ValidationResult, *, project_id: int, user_id: int) -> None:
        if result.is_valid:
            return
        logger.info(
            "Allocation blocked by capacity check | project_id=%s | user_id=%s | total=%.2f",
            project_id,
            user_id,
            result.total_after_assignment,
        )
        raise WorkloadExceededError(result)

    def add_member(
        self,
        project_id: int,
        user_id: int,
        workload_percentage: float,
        *,
        skip_validation: bool = False,
        joined_date: Optional[date] = None,
    ) -> Allocation:
        validate_percentage(workload_percentage)
        if not skip_validation:
            snapshot = self._provider.get_user_capacity(user_id)
            result = validate_addition(snapshot, workload_percentage, self._validation_config)
            self._ensure_valid(result, project_id=project_id, user_id=user_id)

        allocation = self._submit(
            MutationKind.ADD_MEMBER,
            project_id=project_id,
            user_id=user_id,
            call=lambda: self._client.add_project_member(
                project_id,
                user_id,
                workload_percentage,
                joined_date=joined_date,
            ),
        )
        logger.info(
            "Member added | project_id=%s | user_id=%s | workload_percentage=%s",
            project_id,
            user_id,
            workload_percentage,
        )
        return allocation

    def update_member_workload(
        self,
        project_id: int,
        user_id: int,
        current_percentage: float,
        new_percentage: float,
        *,
        reason: Optional[str] = None,
        skip_validation: bool = False,
    ) -> Allocation:
        validate_percentage(new_percentage)
        if not skip_validation:
            snapshot = self._provider.get_user_capacity(user_id)
            result = validate_update(
                snapshot,
                current_percentage,
                new_percentage,
                self._validation_config,
            )
            self._ensure_valid(result, project_id=project_id, user_id=user_id)

        allocation = self._submit(
            MutationKind.UPDATE_WORKLOAD,
            project_id=project_id,
            user_id=user_id,
            call=lambda: self._client.update_member_workload(
                project_id,
                user_id,
                new_percentage,
                reason=reason,
            ),
        )
        logger.info(
            "Member workload updated | project_id=%s | user_id=%s | from=%s | to=%s",
            project_id,
            user_id,
            current_percentage,
            new_percentage,
        )
        return allocation

    def remove_member(self, project_id: int, user_id: int) -> bool:
        """Deactivate the user's allocation; returns False when there was none to remove."""
        members = self.list_members(project_id, refresh=True)
        active = any(member.user_id == user_id and member.is_active for member in members)
        if not active:
            logger.info(
                "Remove skipped, no active allocation | project_id=%s | user_id=%s",
                project_id,
                user_id,
            )
            return False

        self._submit(
            MutationKind.REMOVE_MEMBER,
            project_id=project_id,
            user_id=user_id,
            call=lambda: self._client.remove_project_member(project_id, user_id),
        )
        logger.info("Member removed | project_id=%s | user_id=%s", project_id, user_id)
        return True

    def batch_add_members(
        self,
        project_id: int,
        assignments: Iterable[tuple[int, float]],
        *,
        skip_validation: bool = False,
    ) -> BatchAddResult:
        """Add each (user_id, workload_percentage) pair on its own.

        Pairs run in order; a failed pair is reported and never rolls back
        the pairs already committed.
        """
        outcomes: list[MemberAssignmentOutcome] = []
        for user_id, workload_percentage in assignments:
            try:
                allocation = self.add_member(
                    project_id,
                    user_id,
                    workload_percentage,
                    skip_validation=skip_validation,
                )
            except WorkloadError as exc:
                logger.info(
                    "Batch member failed | project_id=%s | user_id=%s | error=%s",
                    project_id,
                    user_id,
                    exc.code,
                )
                outcomes.append(
                    MemberAssignmentOutcome(
                        user_id=user_id,
                        workload_percentage=workload_percentage,
                        error=exc,
                    )
                )
                continue
            outcomes.append(
                MemberAssignmentOutcome(
                    user_id=user_id,
                    workload_percentage=workload_percentage,
                    allocation=allocation,
                )
            )

        result = BatchAddResult(project_id=project_id, outcomes=outcomes)
        logger.info(
            "Batch add completed | project_id=%s | succeeded=%s | failed=%s",
            project_id,
            len(result.succeeded),
            len(result.failed),
        )
        return result

    def list_members(
        self,
        project_id: int,
        *,
        active_only: bool = False,
        refresh: bool = False,
    ) -> list[Allocation]:
        members = self._cache.get_or_load(
            project_members_key(project_id),
            lambda: self._client.list_project_members(project_id),
            max_age_seconds=self._settings.members_freshness_seconds,
            refresh=refresh,
        )
        if active_only:
            return [member for member in members if member.is_active]
        return list(members)

    def get_workload_history(
        self,
        project_id: int,
        user_id: int,
        *,
        refresh: bool = False,
    ) -> list[WorkloadChange]:
        return self._cache.get_or_load(
            workload_history_key(project_id, user_id),
            lambda: self._client.get_member_workload_history(project_id, user_id),
            max_age_seconds=self._settings.history_freshness_seconds,
            refresh=refresh,
        )

    def project_capacity_summary(self, project_id: int) -> ProjectCapacitySummary:
        active = self.list_members(project_id, active_only=True)
        total = float(sum(member.workload_percentage for member in active))
        count = len(active)
        return ProjectCapacitySummary(
            project_id=project_id,
            total_workload=total,
            member_count=count,
            average_workload=total / count if count else 0.0,
        )
