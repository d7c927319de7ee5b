"""HTTP controller layer for project membership and allocation changes."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from workload.controllers.dependencies import error_detail, get_workspace, to_http_exception
from workload.domain.errors import WorkloadError
from workload.domain.models import Allocation, BatchAddResult
from workload.services.workspace import WorkloadWorkspace
from workload.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}", tags=["membership"])


class AddMemberRequest(BaseModel):
    user_id: int = Field(gt=0)
    workload_percentage: float
    joined_date: Optional[date] = None
    skip_validation: bool = False


class MemberAssignment(BaseModel):
    user_id: int = Field(gt=0)
    workload_percentage: float


class BatchAddRequest(BaseModel):
    members: list[MemberAssignment] = Field(min_length=1)
    skip_validation: bool = False


class UpdateWorkloadRequest(BaseModel):
    current_percentage: float
    workload_percentage: float
    reason: Optional[str] = None
    skip_validation: bool = False


class AllocationResponse(BaseModel):
    allocation_id: Optional[int] = None
    user_id: int
    project_id: int
    workload_percentage: float
    is_active: bool
    joined_date: Optional[date] = None
    left_date: Optional[date] = None
    user_name: Optional[str] = None
    role: Optional[str] = None


class MembersResponse(BaseModel):
    project_id: int
    members: list[AllocationResponse]
    total_workload: float = Field(ge=0.0)
    member_count: int = Field(ge=0)
    average_workload: float = Field(ge=0.0)


class BatchOutcomeRow(BaseModel):
    user_id: int
    workload_percentage: float
    succeeded: bool
    allocation: Optional[AllocationResponse] = None
    error: Optional[dict] = None


class BatchAddResponse(BaseModel):
    project_id: int
    succeeded: int = Field(ge=0)
    failed: int = Field(ge=0)
    outcomes: list[BatchOutcomeRow]


class RemoveMemberResponse(BaseModel):
    project_id: int
    user_id: int
    removed: bool


class WorkloadChangeRow(BaseModel):
    change_timestamp: datetime
    changed_by: str
    old_workload_percentage: float
    new_workload_percentage: float
    reason: Optional[str] = None


def _allocation_payload(allocation: Allocation) -> AllocationResponse:
    user = allocation.user
    return AllocationResponse(
        allocation_id=allocation.allocation_id,
        user_id=allocation.user_id,
        project_id=allocation.project_id,
        workload_percentage=allocation.workload_percentage,
        is_active=allocation.is_active,
        joined_date=allocation.joined_date,
        left_date=allocation.left_date,
        user_name=user.full_name if user else None,
        role=user.role.value if user else None,
    )


def _batch_payload(result: BatchAddResult) -> BatchAddResponse:
    rows = [
        BatchOutcomeRow(
            user_id=outcome.user_id,
            workload_percentage=outcome.workload_percentage,
            succeeded=outcome.succeeded,
            allocation=_allocation_payload(outcome.allocation) if outcome.allocation else None,
            error=error_detail(outcome.error) if outcome.error else None,
        )
        for outcome in result.outcomes
    ]
    return BatchAddResponse(
        project_id=result.project_id,
        succeeded=len(result.succeeded),
        failed=len(result.failed),
        outcomes=rows,
    )


def _internal_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.get("/members", response_model=MembersResponse, status_code=status.HTTP_200_OK)
def list_members(
    project_id: int = Path(gt=0),
    active_only: bool = False,
    refresh: bool = False,
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> MembersResponse:
    try:
        members = workspace.membership.list_members(
            project_id,
            active_only=active_only,
            refresh=refresh,
        )
        summary = workspace.membership.project_capacity_summary(project_id)
        return MembersResponse(
            project_id=project_id,
            members=[_allocation_payload(member) for member in members],
            total_workload=summary.total_workload,
            member_count=summary.member_count,
            average_workload=summary.average_workload,
        )
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected member listing failure | project_id=%s", project_id)
        raise _internal_error("Failed to list project members") from exc


@router.post("/members", response_model=AllocationResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    payload: AddMemberRequest,
    project_id: int = Path(gt=0),
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> AllocationResponse:
    try:
        allocation = workspace.membership.add_member(
            project_id,
            payload.user_id,
            payload.workload_percentage,
            skip_validation=payload.skip_validation,
            joined_date=payload.joined_date,
        )
        return _allocation_payload(allocation)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected add member failure | project_id=%s", project_id)
        raise _internal_error("Failed to add project member") from exc


@router.post("/members/batch", response_model=BatchAddResponse, status_code=status.HTTP_200_OK)
def batch_add_members(
    payload: BatchAddRequest,
    project_id: int = Path(gt=0),
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> BatchAddResponse:
    try:
        result = workspace.membership.batch_add_members(
            project_id,
            [(member.user_id, member.workload_percentage) for member in payload.members],
            skip_validation=payload.skip_validation,
        )
        return _batch_payload(result)
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected batch add failure | project_id=%s", project_id)
        raise _internal_error("Failed to add project members") from exc


@router.put(
    "/members/{user_id}",
    response_model=AllocationResponse,
    status_code=status.HTTP_200_OK,
)
def update_member_workload(
    payload: UpdateWorkloadRequest,
    project_id: int = Path(gt=0),
    user_id: int = Path(gt=0),
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> AllocationResponse:
    try:
        allocation = workspace.membership.update_member_workload(
            project_id,
            user_id,
            payload.current_percentage,
            payload.workload_percentage,
            reason=payload.reason,
            skip_validation=payload.skip_validation,
        )
        return _allocation_payload(allocation)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception(
            "Unexpected workload update failure | project_id=%s | user_id=%s",
            project_id,
            user_id,
        )
        raise _internal_error("Failed to update member workload") from exc


@router.delete(
    "/members/{user_id}",
    response_model=RemoveMemberResponse,
    status_code=status.HTTP_200_OK,
)
def remove_member(
    project_id: int = Path(gt=0),
    user_id: int = Path(gt=0),
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> RemoveMemberResponse:
    try:
        removed = workspace.membership.remove_member(project_id, user_id)
        return RemoveMemberResponse(project_id=project_id, user_id=user_id, removed=removed)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception(
            "Unexpected remove member failure | project_id=%s | user_id=%s",
            project_id,
            user_id,
        )
        raise _internal_error("Failed to remove project member") from exc


@router.get(
    "/members/{user_id}/history",
    response_model=list[WorkloadChangeRow],
    status_code=status.HTTP_200_OK,
)
def get_workload_history(
    project_id: int = Path(gt=0),
    user_id: int = Path(gt=0),
    refresh: bool = False,
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> list[WorkloadChangeRow]:
    try:
        changes = workspace.membership.get_workload_history(project_id, user_id, refresh=refresh)
        return [
            WorkloadChangeRow(
                change_timestamp=change.change_timestamp,
                changed_by=change.changed_by,
                old_workload_percentage=change.old_workload_percentage,
                new_workload_percentage=change.new_workload_percentage,
                reason=change.reason,
            )
            for change in changes
        ]
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception(
            "Unexpected history read failure | project_id=%s | user_id=%s",
            project_id,
            user_id,
        )
        raise _internal_error("Failed to read workload history") from exc
