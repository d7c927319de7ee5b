"""Capacity validation for proposed allocations.

The module-level functions are pure: given a snapshot and a request they
decide whether the user's total committed workload stays within bounds.
``WorkloadValidationService`` adds the snapshot read for interactive checks.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from workload.domain.constraints import (
    ValidationConfig,
    to_decimal,
    validate_percentage,
    validate_validation_config,
)
from workload.domain.errors import RemoteUnavailableError
from workload.domain.models import (
    USER_CAPACITY_PERCENT,
    CapacitySnapshot,
    Severity,
    ValidationResult,
)
from workload.services.capacity_service import CapacitySnapshotProvider
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_VALIDATION_CONFIG = ValidationConfig(warning_threshold=80.0, capacity_ceiling=100.0)

LOADING_MESSAGE = "loading"
CAPACITY_UNKNOWN_MESSAGE = (
    "Current workload could not be retrieved; capacity is unknown. "
    "The assignment will be checked again when it is submitted."
)

NEAR_CAPACITY_THRESHOLD = 90.0
UNDERUTILIZED_THRESHOLD = 60.0


def format_percentage(value: float | Decimal) -> str:
    """Render a percentage rounded to hundredths, without trailing zeros."""
    text = f"{float(value):.2f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text


def classify_severity(total: Decimal, config: ValidationConfig = DEFAULT_VALIDATION_CONFIG) -> Severity:
    if total > to_decimal(config.capacity_ceiling):
        return Severity.ERROR
    if total > to_decimal(config.warning_threshold):
        return Severity.WARNING
    return Severity.SUCCESS


def workload_recommendations(total_workload: float) -> tuple[str, ...]:
    if total_workload > USER_CAPACITY_PERCENT:
        return (
            "Consider redistributing tasks to reduce overload",
            "Review project priorities and deadlines",
            "Consider extending project timelines",
        )
    if total_workload > NEAR_CAPACITY_THRESHOLD:
        return (
            "User is near maximum capacity",
            "Monitor for potential burnout",
            "Avoid additional assignments",
        )
    if total_workload < UNDERUTILIZED_THRESHOLD:
        return (
            "User has significant available capacity",
            "Consider additional project assignments",
            "Good candidate for urgent tasks",
        )
    return (
        "User has optimal workload balance",
        "Can handle small additional tasks",
    )


def _message(
    severity: Severity,
    *,
    current: Decimal,
    requested: Decimal,
    total: Decimal,
    available: Decimal,
    config: ValidationConfig,
    baseline_label: str,
) -> str:
    ceiling = to_decimal(config.capacity_ceiling)
    if severity is Severity.ERROR:
        return (
            f"Workload exceeds {format_percentage(ceiling)}% capacity. "
            f"{baseline_label}: {format_percentage(current)}%, "
            f"requested: {format_percentage(requested)}%, "
            f"total after assignment: {format_percentage(total)}% "
            f"({format_percentage(total - ceiling)}% over the limit). "
            f"Available: {format_percentage(available)}%."
        )
    remaining = format_percentage(ceiling - total)
    if severity is Severity.WARNING:
        return (
            f"High workload but acceptable. Total will be {format_percentage(total)}% "
            f"({remaining}% remaining capacity)."
        )
    return (
        f"Assignment is valid. User will have {format_percentage(total)}% workload "
        f"with {remaining}% remaining capacity."
    )


def _build_result(
    *,
    current: Decimal,
    requested: Decimal,
    baseline: Decimal,
    total: Decimal,
    config: ValidationConfig,
    baseline_label: str,
) -> ValidationResult:
    severity = classify_severity(total, config)
    capacity = to_decimal(USER_CAPACITY_PERCENT)
    # A stale snapshot can report less than the allocation being replaced.
    available = min(capacity, max(Decimal("0"), capacity - baseline))
    return ValidationResult(
        is_valid=severity is not Severity.ERROR,
        severity=severity,
        current_workload=float(current),
        requested_workload=float(requested),
        total_after_assignment=float(total),
        available_capacity=float(available),
        message=_message(
            severity,
            current=current,
            requested=requested,
            total=total,
            available=available,
            config=config,
            baseline_label=baseline_label,
        ),
        recommendations=workload_recommendations(float(total)),
    )


def validate_addition(
    snapshot: CapacitySnapshot,
    requested_percentage: object,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
) -> ValidationResult:
    """Check a new allocation of ``requested_percentage`` on top of the snapshot."""
    requested = validate_percentage(requested_percentage)
    current = to_decimal(snapshot.total_workload)
    return _build_result(
        current=current,
        requested=requested,
        baseline=current,
        total=current + requested,
        config=config,
        baseline_label="Current",
    )


def validate_update(
    snapshot: CapacitySnapshot,
    current_allocation_percentage: object,
    requested_percentage: object,
    config: ValidationConfig = DEFAULT_VALIDATION_CONFIG,
) -> ValidationResult:
    """Check replacing an existing allocation against the user's other commitments."""
    requested = validate_percentage(requested_percentage)
    existing = validate_percentage(current_allocation_percentage, "current_percentage")
    current = to_decimal(snapshot.total_workload)
    baseline = current - existing
    return _build_result(
        current=current,
        requested=requested,
        baseline=baseline,
        total=baseline + requested,
        config=config,
        baseline_label="Current excluding this allocation",
    )


def _requested_or_none(value: object) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def unknown_capacity_result(requested_percentage: object) -> ValidationResult:
    """Non-blocking outcome used when the user's workload cannot be read."""
    return ValidationResult(
        is_valid=True,
        severity=Severity.WARNING,
        requested_workload=_requested_or_none(requested_percentage),
        message=CAPACITY_UNKNOWN_MESSAGE,
    )


def loading_result(requested_percentage: object) -> ValidationResult:
    return ValidationResult(
        is_valid=True,
        severity=Severity.WARNING,
        requested_workload=_requested_or_none(requested_percentage),
        message=LOADING_MESSAGE,
    )


def invalid_input_result(requested_percentage: object, message: str) -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        severity=Severity.ERROR,
        requested_workload=_requested_or_none(requested_percentage),
        message=message,
    )


def validation_config_from_settings(settings: Settings) -> ValidationConfig:
    config = ValidationConfig(
        warning_threshold=settings.validation_warning_threshold,
        capacity_ceiling=settings.validation_capacity_ceiling,
    )
    validate_validation_config(config)
    return config


class WorkloadValidationService:
    """Snapshot-backed capacity checks for interactive use.

    An unreachable backend degrades the answer to a non-blocking warning
    with unknown numbers instead of failing the caller.
    """

    def __init__(
        self,
        provider: CapacitySnapshotProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._provider = provider
        self._config = validation_config_from_settings(self._settings)

    @property
    def config(self) -> ValidationConfig:
        return self._config

    def check_addition(
        self,
        user_id: int,
        requested_percentage: object,
        *,
        refresh: bool = False,
    ) -> ValidationResult:
        validate_percentage(requested_percentage)
        try:
            snapshot = self._provider.get_user_capacity(user_id, refresh=refresh)
        except RemoteUnavailableError:
            logger.warning("Validation degraded to unknown capacity | user_id=%s", user_id)
            return unknown_capacity_result(requested_percentage)
        return validate_addition(snapshot, requested_percentage, self._config)

    def check_update(
        self,
        user_id: int,
        current_allocation_percentage: object,
        requested_percentage: object,
        *,
        refresh: bool = False,
    ) -> ValidationResult:
        validate_percentage(requested_percentage)
        validate_percentage(current_allocation_percentage, "current_percentage")
        try:
            snapshot = self._provider.get_user_capacity(user_id, refresh=refresh)
        except RemoteUnavailableError:
            logger.warning("Update validation degraded to unknown capacity | user_id=%s", user_id)
            return unknown_capacity_result(requested_percentage)
        return validate_update(
            snapshot,
            current_allocation_percentage,
            requested_percentage,
            self._config,
        )
