"""Debounced capacity validation driven by interactive percentage input."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from workload.domain.constraints import validate_percentage
from workload.domain.errors import (
    InvalidPercentageError,
    RemoteUnavailableError,
    ResourceNotFoundError,
    WorkloadError,
)
from workload.domain.models import ValidationResult
from workload.services.capacity_service import CapacitySnapshotProvider
from workload.services.validation_service import (
    invalid_input_result,
    loading_result,
    unknown_capacity_result,
    validate_addition,
    validate_update,
    validation_config_from_settings,
)
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)


class RealtimeWorkloadValidator:
    """Re-validates after each input once the debounce window passes.

    Only the newest input may publish a result: a pending or in-flight
    validation is cancelled when new input arrives, and a late result from
    it is dropped. Until the snapshot for the newest input is read, the
    published result is a ``loading`` warning rather than a zero-workload
    answer. Nothing is ever submitted from here.
    """

    def __init__(
        self,
        provider: CapacitySnapshotProvider,
        user_id: int,
        *,
        current_allocation_percentage: Optional[float] = None,
        settings: Optional[Settings] = None,
        debounce_seconds: Optional[float] = None,
        on_result: Optional[Callable[[ValidationResult], None]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._provider = provider
        self._user_id = user_id
        self._current_allocation = current_allocation_percentage
        self._config = validation_config_from_settings(self._settings)
        self._debounce = (
            debounce_seconds
            if debounce_seconds is not None
            else self._settings.realtime_debounce_seconds
        )
        self._on_result = on_result
        self._generation = 0
        self._pending: Optional[asyncio.Task[None]] = None
        self._result: Optional[ValidationResult] = None

    @property
    def result(self) -> Optional[ValidationResult]:
        return self._result

    @property
    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def update_input(self, requested_percentage: object) -> None:
        """Schedule validation of the latest input; must run inside an event loop."""
        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        self._cancel_pending()

        try:
            validate_percentage(requested_percentage)
            if self._current_allocation is not None:
                validate_percentage(self._current_allocation, "current_percentage")
        except InvalidPercentageError as exc:
            self._publish(generation, invalid_input_result(requested_percentage, str(exc)))
            return

        self._publish(generation, loading_result(requested_percentage))
        self._pending = loop.create_task(self._validate_after_debounce(generation, requested_percentage))

    def cancel(self) -> None:
        self._generation += 1
        self._cancel_pending()

    async def wait_settled(self) -> Optional[ValidationResult]:
        """Wait until no validation is pending and return the published result."""
        while self._pending is not None and not self._pending.done():
            await asyncio.wait({self._pending})
        return self._result

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _validate_after_debounce(self, generation: int, requested_percentage: object) -> None:
        await asyncio.sleep(self._debounce)
        if generation != self._generation:
            return
        try:
            snapshot = await asyncio.to_thread(self._provider.get_user_capacity, self._user_id)
        except (ResourceNotFoundError, InvalidPercentageError) as exc:
            result = invalid_input_result(requested_percentage, str(exc))
        except RemoteUnavailableError:
            result = unknown_capacity_result(requested_percentage)
        except WorkloadError as exc:
            logger.warning(
                "Capacity read refused | user_id=%s | error=%s | message=%s",
                self._user_id,
                exc.code,
                exc,
            )
            result = unknown_capacity_result(requested_percentage)
        except Exception:
            logger.exception("Realtime validation failed | user_id=%s", self._user_id)
            result = unknown_capacity_result(requested_percentage)
        else:
            if self._current_allocation is None:
                result = validate_addition(snapshot, requested_percentage, self._config)
            else:
                result = validate_update(
                    snapshot,
                    self._current_allocation,
                    requested_percentage,
                    self._config,
                )
        self._publish(generation, result)

    def _publish(self, generation: int, result: ValidationResult) -> None:
        if generation != self._generation:
            logger.debug(
                "Discarded superseded validation | user_id=%s | generation=%s",
                self._user_id,
                generation,
            )
            return
        self._result = result
        if self._on_result is not None:
            self._on_result(result)
