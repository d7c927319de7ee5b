"""Domain-level validation rules for workload percentages and thresholds."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from numbers import Real

from workload.domain.errors import InvalidPercentageError
from workload.domain.models import USER_CAPACITY_PERCENT


@dataclass(frozen=True)
class ValidationConfig:
    warning_threshold: float
    capacity_ceiling: float


@dataclass(frozen=True)
class AnalyticsConfig:
    underutilized_threshold: float
    overload_threshold: float
    top_n: int
    include_unassigned_in_average: bool


def validate_validation_config(config: ValidationConfig) -> None:
    if not 0.0 < config.capacity_ceiling <= USER_CAPACITY_PERCENT:
        raise ValueError("capacity_ceiling must be in (0, 100]")
    if not 0.0 <= config.warning_threshold <= config.capacity_ceiling:
        raise ValueError("warning_threshold must be between 0 and capacity_ceiling")


def validate_analytics_config(config: AnalyticsConfig) -> None:
    if not 0.0 <= config.underutilized_threshold <= config.overload_threshold:
        raise ValueError("underutilized_threshold must be between 0 and overload_threshold")
    if config.top_n <= 0:
        raise ValueError("top_n must be > 0")


def validate_percentage(value: object, field: str = "workload_percentage") -> Decimal:
    """Return ``value`` as an exact decimal, or raise if it is outside (0, 100]."""
    if isinstance(value, bool) or not isinstance(value, (Real, Decimal)):
        raise InvalidPercentageError(value, field)
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidPercentageError(value, field)
    amount = to_decimal(value)
    if not amount.is_finite() or amount <= 0 or amount > Decimal("100"):
        raise InvalidPercentageError(value, field)
    return amount


def to_decimal(value: float | int | Decimal) -> Decimal:
    # str() keeps the shortest round-tripping form, so 33.33 stays 33.33.
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
