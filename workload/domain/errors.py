"""Error taxonomy for capacity validation and allocation mutations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from workload.domain.models import ValidationResult


class WorkloadError(Exception):
    """Base class for every workload capacity failure."""

    code = "WORKLOAD_ERROR"


class InvalidPercentageError(WorkloadError):
    """Raised before any capacity arithmetic when a percentage is out of (0, 100]."""

    code = "INVALID_PERCENTAGE"

    def __init__(self, value: Any, field: str = "workload_percentage") -> None:
        self.value = value
        self.field = field
        super().__init__(f"{field} must be greater than 0 and at most 100, got {value!r}")


class WorkloadExceededError(WorkloadError):
    """Raised when a proposed allocation fails local capacity validation."""

    code = "WORKLOAD_EXCEEDED"

    def __init__(self, result: "ValidationResult") -> None:
        self.result = result
        super().__init__(result.message)


class RemoteUnavailableError(WorkloadError):
    """Raised when the system of record cannot be reached."""

    code = "REMOTE_UNAVAILABLE"


class RemoteRejectedError(WorkloadError):
    """Raised when the system of record refuses a request.

    ``message`` is the backend's own wording, passed through untouched.
    """

    code = "REMOTE_REJECTED"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class ResourceNotFoundError(WorkloadError):
    """Raised when the referenced user, project, or member no longer exists."""

    code = "NOT_FOUND"
