"""Domain models for workload capacity tracking and analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from workload.domain.errors import WorkloadError


USER_CAPACITY_PERCENT = 100.0


class Role(str, Enum):
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    DEVELOPER = "DEVELOPER"
    BUSINESS_ANALYST = "BUSINESS_ANALYST"
    TESTER = "TESTER"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Map backend names and front-end aliases; anything else is UNKNOWN."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        if key in cls.__members__:
            return cls[key]
        return _ROLE_ALIASES.get(key, cls.UNKNOWN)


_ROLE_ALIASES = {
    "PM": Role.PROJECT_MANAGER,
    "DEV": Role.DEVELOPER,
    "BA": Role.BUSINESS_ANALYST,
    "TEST": Role.TESTER,
    "QA": Role.TESTER,
}


class ProjectStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    HOLD = "HOLD"
    CLOSED = "CLOSED"
    PRESALE = "PRESALE"

    @classmethod
    def parse(cls, value: object) -> Optional["ProjectStatus"]:
        if isinstance(value, ProjectStatus):
            return value
        if not isinstance(value, str) or not value.strip():
            return None
        key = "".join(ch for ch in value.upper() if ch.isalpha())
        return _PROJECT_STATUS_KEYS.get(key)


_PROJECT_STATUS_KEYS = {
    "OPEN": ProjectStatus.OPEN,
    "INPROGRESS": ProjectStatus.IN_PROGRESS,
    "HOLD": ProjectStatus.HOLD,
    "ONHOLD": ProjectStatus.HOLD,
    "CLOSED": ProjectStatus.CLOSED,
    "PRESALE": ProjectStatus.PRESALE,
}


class Severity(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.SUCCESS: 0, Severity.WARNING: 1, Severity.ERROR: 2}


@dataclass(frozen=True)
class User:
    user_id: int
    role: Role
    full_name: str = ""
    email: str = ""


@dataclass(frozen=True)
class Project:
    project_id: int
    name: str = ""
    code: str = ""
    status: Optional[ProjectStatus] = None


@dataclass(frozen=True)
class Allocation:
    """One user's committed share of capacity on one project."""

    user_id: int
    project_id: int
    workload_percentage: float
    is_active: bool = True
    joined_date: Optional[date] = None
    left_date: Optional[date] = None
    allocation_id: Optional[int] = None
    user: Optional[User] = None
    project: Optional[Project] = None


@dataclass(frozen=True)
class CapacitySnapshot:
    """Point-in-time read of a user's aggregate active workload."""

    user_id: int
    total_workload: float
    active_project_count: int
    user_name: str = ""
    email: str = ""
    role: Role = Role.UNKNOWN

    @property
    def available_capacity(self) -> float:
        return max(0.0, USER_CAPACITY_PERCENT - self.total_workload)

    @property
    def is_overloaded(self) -> bool:
        return self.total_workload > USER_CAPACITY_PERCENT

    @property
    def has_allocations(self) -> bool:
        return self.active_project_count > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "user_name": self.user_name,
            "email": self.email,
            "role": self.role.value,
            "total_workload": self.total_workload,
            "available_capacity": self.available_capacity,
            "active_project_count": self.active_project_count,
            "is_overloaded": self.is_overloaded,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Severity-graded outcome of one capacity check.

    Numeric fields are ``None`` when the user's capacity could not be read.
    """

    is_valid: bool
    severity: Severity
    requested_workload: Optional[float]
    message: str
    current_workload: Optional[float] = None
    total_after_assignment: Optional[float] = None
    available_capacity: Optional[float] = None
    recommendations: tuple[str, ...] = ()

    @property
    def capacity_known(self) -> bool:
        return self.current_workload is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "is_valid": self.is_valid,
            "severity": self.severity.value,
            "current_workload": self.current_workload,
            "requested_workload": self.requested_workload,
            "total_after_assignment": self.total_after_assignment,
            "available_capacity": self.available_capacity,
            "message": self.message,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class WorkloadChange:
    change_timestamp: datetime
    changed_by: str
    old_workload_percentage: float
    new_workload_percentage: float
    reason: Optional[str] = None


@dataclass(frozen=True)
class RoleWorkloadSummary:
    role: Role
    total_users: int
    average_workload: float
    overloaded_count: int


@dataclass(frozen=True)
class SystemUtilization:
    total_capacity: float
    used_capacity: float
    utilization_percentage: float
    available_capacity: float


@dataclass(frozen=True)
class AnalyticsRollup:
    total_users: int
    overloaded_users: int
    underutilized_users: int
    fully_utilized_users: int
    average_workload: float
    role_breakdown: dict[Role, RoleWorkloadSummary]
    system_utilization: SystemUtilization
    top_overloaded: list[CapacitySnapshot]
    workload_distribution: list[CapacitySnapshot] = field(default_factory=list)


@dataclass(frozen=True)
class MemberAssignmentOutcome:
    user_id: int
    workload_percentage: float
    allocation: Optional[Allocation] = None
    error: Optional[WorkloadError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchAddResult:
    project_id: int
    outcomes: list[MemberAssignmentOutcome]

    @property
    def succeeded(self) -> list[MemberAssignmentOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failed(self) -> list[MemberAssignmentOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def is_partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)


@dataclass(frozen=True)
class ProjectCapacitySummary:
    project_id: int
    total_workload: float
    member_count: int
    average_workload: float
