"""HTTP controller layer for capacity reads, validation and analytics."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from workload.controllers.dependencies import get_workspace, to_http_exception
from workload.domain.errors import WorkloadError
from workload.domain.models import AnalyticsRollup, CapacitySnapshot, ValidationResult
from workload.services.validation_service import workload_recommendations
from workload.services.workspace import WorkloadWorkspace
from workload.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["capacity"])


class CapacityResponse(BaseModel):
    user_id: int
    user_name: str
    email: str
    role: str
    total_workload: float = Field(ge=0.0)
    available_capacity: float = Field(ge=0.0, le=100.0)
    active_project_count: int = Field(ge=0)
    is_overloaded: bool
    recommendations: list[str]


class AdditionCheckRequest(BaseModel):
    user_id: int = Field(gt=0)
    workload_percentage: float


class UpdateCheckRequest(BaseModel):
    user_id: int = Field(gt=0)
    current_percentage: float
    workload_percentage: float


class ValidationResponse(BaseModel):
    is_valid: bool
    severity: str
    current_workload: Optional[float] = None
    requested_workload: Optional[float] = None
    total_after_assignment: Optional[float] = None
    available_capacity: Optional[float] = None
    message: str
    recommendations: list[str] = Field(default_factory=list)


class WorkloadUserRow(BaseModel):
    user_id: int
    user_name: str
    email: str
    role: str
    total_workload: float
    available_capacity: float
    active_project_count: int
    is_overloaded: bool


class RoleSummaryRow(BaseModel):
    total_users: int = Field(ge=0)
    average_workload: float = Field(ge=0.0)
    overloaded_count: int = Field(ge=0)


class SystemUtilizationResponse(BaseModel):
    total_capacity: float = Field(ge=0.0)
    used_capacity: float = Field(ge=0.0)
    utilization_percentage: float = Field(ge=0.0)
    available_capacity: float = Field(ge=0.0)


class AnalyticsResponse(BaseModel):
    total_users: int = Field(ge=0)
    overloaded_users: int = Field(ge=0)
    underutilized_users: int = Field(ge=0)
    fully_utilized_users: int = Field(ge=0)
    average_workload: float = Field(ge=0.0)
    workload_by_role: dict[str, RoleSummaryRow]
    system_utilization: SystemUtilizationResponse
    top_overloaded_users: list[WorkloadUserRow]
    workload_distribution: list[WorkloadUserRow]


def _capacity_payload(snapshot: CapacitySnapshot) -> CapacityResponse:
    return CapacityResponse(
        **snapshot.to_dict(),
        recommendations=list(workload_recommendations(snapshot.total_workload)),
    )


def _validation_payload(result: ValidationResult) -> ValidationResponse:
    return ValidationResponse(**result.to_dict())


def _analytics_payload(rollup: AnalyticsRollup) -> AnalyticsResponse:
    utilization = rollup.system_utilization
    return AnalyticsResponse(
        total_users=rollup.total_users,
        overloaded_users=rollup.overloaded_users,
        underutilized_users=rollup.underutilized_users,
        fully_utilized_users=rollup.fully_utilized_users,
        average_workload=rollup.average_workload,
        workload_by_role={
            role.value: RoleSummaryRow(
                total_users=summary.total_users,
                average_workload=summary.average_workload,
                overloaded_count=summary.overloaded_count,
            )
            for role, summary in rollup.role_breakdown.items()
        },
        system_utilization=SystemUtilizationResponse(
            total_capacity=utilization.total_capacity,
            used_capacity=utilization.used_capacity,
            utilization_percentage=utilization.utilization_percentage,
            available_capacity=utilization.available_capacity,
        ),
        top_overloaded_users=[WorkloadUserRow(**row.to_dict()) for row in rollup.top_overloaded],
        workload_distribution=[
            WorkloadUserRow(**row.to_dict()) for row in rollup.workload_distribution
        ],
    )


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/users/{user_id}/capacity",
    response_model=CapacityResponse,
    status_code=status.HTTP_200_OK,
)
def get_user_capacity(
    user_id: int = Path(gt=0),
    refresh: bool = False,
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> CapacityResponse:
    try:
        snapshot = workspace.capacity.get_user_capacity(user_id, refresh=refresh)
        return _capacity_payload(snapshot)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected capacity read failure | user_id=%s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read user capacity",
        ) from exc


@router.post(
    "/validate/addition",
    response_model=ValidationResponse,
    status_code=status.HTTP_200_OK,
)
def validate_addition_endpoint(
    payload: AdditionCheckRequest,
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> ValidationResponse:
    try:
        result = workspace.validation.check_addition(payload.user_id, payload.workload_percentage)
        return _validation_payload(result)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected addition validation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate workload addition",
        ) from exc


@router.post(
    "/validate/update",
    response_model=ValidationResponse,
    status_code=status.HTTP_200_OK,
)
def validate_update_endpoint(
    payload: UpdateCheckRequest,
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> ValidationResponse:
    try:
        result = workspace.validation.check_update(
            payload.user_id,
            payload.current_percentage,
            payload.workload_percentage,
        )
        return _validation_payload(result)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected update validation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate workload update",
        ) from exc


@router.get(
    "/analytics/workload",
    response_model=AnalyticsResponse,
    status_code=status.HTTP_200_OK,
)
def get_workload_analytics(
    refresh: bool = False,
    workspace: WorkloadWorkspace = Depends(get_workspace),
) -> AnalyticsResponse:
    try:
        rollup = workspace.analytics.get_rollup(refresh=refresh)
        return _analytics_payload(rollup)
    except WorkloadError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected analytics failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute workload analytics",
        ) from exc
