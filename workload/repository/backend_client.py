"""HTTP consumer of the system-of-record REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

import requests

from workload.domain.errors import (
    RemoteRejectedError,
    RemoteUnavailableError,
    ResourceNotFoundError,
)
from workload.domain.models import (
    Allocation,
    CapacitySnapshot,
    Project,
    ProjectStatus,
    Role,
    User,
    WorkloadChange,
)
from workload.repository.session import SessionContext
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)


USER_WORKLOAD_PATH = "/api/users/{user_id}/workload"
WORKLOAD_ANALYTICS_PATH = "/api/analytics/workload"
PROJECT_MEMBERS_PATH = "/api/projects/{project_id}/members"
PROJECT_MEMBER_PATH = "/api/projects/{project_id}/members/{user_id}"
MEMBER_HISTORY_PATH = "/api/projects/{project_id}/members/{user_id}/history"
HEALTH_PATH = "/api/system/health"


def parse_role(value: Any) -> Role:
    role = Role.parse(value)
    if role is Role.UNKNOWN and value not in (None, "", Role.UNKNOWN.value):
        logger.warning("Unrecognized role from backend | role=%r", value)
    return role


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_snapshot(payload: dict[str, Any]) -> CapacitySnapshot:
    active_count = payload.get("activeProjectCount")
    if active_count is None:
        active_count = payload.get("projectCount", 0)
    return CapacitySnapshot(
        user_id=int(payload["userId"]),
        total_workload=float(payload.get("totalWorkload") or 0.0),
        active_project_count=int(active_count or 0),
        user_name=str(payload.get("userName") or payload.get("fullName") or ""),
        email=str(payload.get("email") or ""),
        role=parse_role(payload.get("role")),
    )


def parse_allocation(payload: dict[str, Any], project_id: Optional[int] = None) -> Allocation:
    user_payload = payload.get("user") or None
    project_payload = payload.get("project") or None
    user = None
    if user_payload:
        user = User(
            user_id=int(user_payload["id"]),
            role=parse_role(user_payload.get("role")),
            full_name=str(user_payload.get("fullName") or ""),
            email=str(user_payload.get("email") or ""),
        )
    project = None
    if project_payload:
        project = Project(
            project_id=int(project_payload["id"]),
            name=str(project_payload.get("name") or ""),
            code=str(project_payload.get("projectCode") or ""),
            status=ProjectStatus.parse(project_payload.get("projectStatus")),
        )
    resolved_project_id = payload.get("projectId", project_id)
    if resolved_project_id is None and project is not None:
        resolved_project_id = project.project_id
    resolved_user_id = payload.get("userId")
    if resolved_user_id is None and user is not None:
        resolved_user_id = user.user_id
    return Allocation(
        user_id=int(resolved_user_id),
        project_id=int(resolved_project_id),
        workload_percentage=float(payload.get("workloadPercentage") or 0.0),
        is_active=bool(payload.get("isActive", True)),
        joined_date=_parse_date(payload.get("joinedDate")),
        left_date=_parse_date(payload.get("leftDate")),
        allocation_id=payload.get("id"),
        user=user,
        project=project,
    )


def parse_change(payload: dict[str, Any]) -> WorkloadChange:
    return WorkloadChange(
        change_timestamp=_parse_timestamp(payload["changeTimestamp"]),
        changed_by=str(payload.get("changedBy") or ""),
        old_workload_percentage=float(payload.get("oldWorkloadPercentage") or 0.0),
        new_workload_percentage=float(payload.get("newWorkloadPercentage") or 0.0),
        reason=payload.get("reason"),
    )


class BackendClient:
    """Maps REST calls onto domain models and the workload error taxonomy."""

    def __init__(
        self,
        session: SessionContext,
        settings: Optional[Settings] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session = session
        self._http = http or requests.Session()

    @property
    def session(self) -> SessionContext:
        return self._session

    def _error_message(self, body: Any, response: requests.Response) -> tuple[str, Optional[str]]:
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"]), error.get("code")
            if body.get("message"):
                return str(body["message"]), None
        return response.reason or f"HTTP {response.status_code}", None

    def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> Any:
        url = self._session.url_for(path)
        try:
            response = self._http.request(
                method,
                url,
                json=payload,
                headers=self._session.auth_headers(),
                timeout=self._settings.backend_timeout_seconds,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("Backend unreachable | method=%s | url=%s | error=%s", method, url, exc)
            raise RemoteUnavailableError(f"Backend unreachable: {exc}") from exc

        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError as exc:
                if response.ok:
                    raise RemoteUnavailableError(
                        f"Backend returned a non-JSON body for {method} {path}"
                    ) from exc

        if response.status_code >= 500:
            message, _ = self._error_message(body, response)
            logger.warning(
                "Backend failure | method=%s | url=%s | status=%s",
                method,
                url,
                response.status_code,
            )
            raise RemoteUnavailableError(message)
        if response.status_code == 404:
            message, _ = self._error_message(body, response)
            raise ResourceNotFoundError(message)
        if not response.ok:
            message, code = self._error_message(body, response)
            logger.info(
                "Backend rejected request | method=%s | url=%s | status=%s | message=%s",
                method,
                url,
                response.status_code,
                message,
            )
            raise RemoteRejectedError(message, status_code=response.status_code, error_code=code)

        if isinstance(body, dict) and "success" in body:
            if not body["success"]:
                message, code = self._error_message(body, response)
                raise RemoteRejectedError(
                    message,
                    status_code=response.status_code,
                    error_code=code,
                )
            return body.get("data")
        return body

    def get_user_workload(self, user_id: int) -> CapacitySnapshot:
        data = self._request("GET", USER_WORKLOAD_PATH.format(user_id=user_id))
        return parse_snapshot(data)

    def get_workload_analytics(self) -> list[CapacitySnapshot]:
        data = self._request("GET", WORKLOAD_ANALYTICS_PATH) or {}
        return [parse_snapshot(row) for row in data.get("topWorkloadUsers") or []]

    def list_project_members(self, project_id: int) -> list[Allocation]:
        data = self._request("GET", PROJECT_MEMBERS_PATH.format(project_id=project_id)) or []
        return [parse_allocation(row, project_id=project_id) for row in data]

    def add_project_member(
        self,
        project_id: int,
        user_id: int,
        workload_percentage: float,
        joined_date: Optional[date] = None,
    ) -> Allocation:
        payload: dict[str, Any] = {"userId": user_id, "workloadPercentage": workload_percentage}
        if joined_date is not None:
            payload["joinedDate"] = joined_date.isoformat()
        data = self._request("POST", PROJECT_MEMBERS_PATH.format(project_id=project_id), payload)
        if not isinstance(data, dict):
            return Allocation(
                user_id=user_id,
                project_id=project_id,
                workload_percentage=workload_percentage,
                joined_date=joined_date,
            )
        return parse_allocation(data, project_id=project_id)

    def update_member_workload(
        self,
        project_id: int,
        user_id: int,
        workload_percentage: float,
        reason: Optional[str] = None,
    ) -> Allocation:
        payload: dict[str, Any] = {"userId": user_id, "workloadPercentage": workload_percentage}
        if reason:
            payload["reason"] = reason
        if self._session.acting_user:
            payload["changedBy"] = self._session.acting_user
        data = self._request(
            "PUT",
            PROJECT_MEMBER_PATH.format(project_id=project_id, user_id=user_id),
            payload,
        )
        if not isinstance(data, dict):
            return Allocation(
                user_id=user_id,
                project_id=project_id,
                workload_percentage=workload_percentage,
            )
        return parse_allocation(data, project_id=project_id)

    def remove_project_member(self, project_id: int, user_id: int) -> None:
        self._request("DELETE", PROJECT_MEMBER_PATH.format(project_id=project_id, user_id=user_id))

    def get_member_workload_history(self, project_id: int, user_id: int) -> list[WorkloadChange]:
        data = self._request(
            "GET",
            MEMBER_HISTORY_PATH.format(project_id=project_id, user_id=user_id),
        ) or []
        changes = [parse_change(row) for row in data]
        return sorted(changes, key=lambda change: change.change_timestamp)

    def check_health(self) -> Any:
        return self._request("GET", HEALTH_PATH)
