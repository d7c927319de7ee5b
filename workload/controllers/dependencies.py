"""Shared FastAPI dependency providers for the controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from workload.domain.errors import (
    InvalidPercentageError,
    RemoteRejectedError,
    RemoteUnavailableError,
    ResourceNotFoundError,
    WorkloadError,
    WorkloadExceededError,
)
from workload.services.workspace import WorkloadWorkspace, WorkspaceRegistry
from workload.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)

ACTING_USER_HEADER = "X-Acting-User"


def get_workspace_registry(request: Request) -> WorkspaceRegistry:
    registry = getattr(request.app.state, "workspace_registry", None)
    if registry is None:
        registry = WorkspaceRegistry(settings=get_settings())
        request.app.state.workspace_registry = registry
    return registry


def get_workspace(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
) -> WorkloadWorkspace:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    acting_user = request.headers.get(ACTING_USER_HEADER)
    return registry.for_token(credentials.credentials, acting_user=acting_user)


def error_detail(exc: WorkloadError) -> dict[str, Any]:
    detail: dict[str, Any] = {"error": exc.code, "message": str(exc)}
    if isinstance(exc, WorkloadExceededError):
        detail["source"] = "validation"
        detail["validation"] = exc.result.to_dict()
    elif isinstance(exc, RemoteRejectedError):
        detail["source"] = "backend"
        detail["message"] = exc.message
        detail["backend_status"] = exc.status_code
    return detail


def to_http_exception(exc: WorkloadError) -> HTTPException:
    if isinstance(exc, InvalidPercentageError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, (WorkloadExceededError, RemoteRejectedError)):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ResourceNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, RemoteUnavailableError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=error_detail(exc))
