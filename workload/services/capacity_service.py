"""Capacity snapshot reads against the system of record."""

from __future__ import annotations

import time
from typing import Callable, Optional

from workload.domain.errors import RemoteUnavailableError
from workload.domain.invalidation import user_capacity_key
from workload.domain.models import CapacitySnapshot
from workload.repository.backend_client import BackendClient
from workload.repository.cache import FreshnessCache
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)


class CapacitySnapshotProvider:
    """Fetches a user's current aggregate workload.

    Reads go through a short freshness window only; there is no local
    authoritative copy, because other sessions edit the same allocations.
    An unreachable backend is retried and then reported, never replaced by
    a default workload.
    """

    def __init__(
        self,
        client: BackendClient,
        cache: Optional[FreshnessCache] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._cache = cache or FreshnessCache()
        self._sleep = sleep or time.sleep

    @property
    def cache(self) -> FreshnessCache:
        return self._cache

    def get_user_capacity(self, user_id: int, *, refresh: bool = False) -> CapacitySnapshot:
        return self._cache.get_or_load(
            user_capacity_key(user_id),
            lambda: self._fetch_with_retry(user_id),
            max_age_seconds=self._settings.snapshot_freshness_seconds,
            refresh=refresh,
        )

    def invalidate_user(self, user_id: int) -> None:
        self._cache.invalidate([user_capacity_key(user_id)])

    def _backoff_delay(self, attempt: int) -> float:
        delay = self._settings.snapshot_retry_backoff_seconds * (2**attempt)
        return min(delay, self._settings.snapshot_retry_backoff_cap_seconds)

    def _fetch_with_retry(self, user_id: int) -> CapacitySnapshot:
        attempts = max(1, self._settings.snapshot_fetch_attempts)
        attempt = 0
        while True:
            try:
                snapshot = self._client.get_user_workload(user_id)
            except RemoteUnavailableError:
                attempt += 1
                if attempt >= attempts:
                    logger.error("Capacity unavailable | user_id=%s | attempts=%s", user_id, attempts)
                    raise
                delay = self._backoff_delay(attempt - 1)
                logger.warning(
                    "Capacity fetch failed, retrying | user_id=%s | attempt=%s/%s | delay=%.2fs",
                    user_id,
                    attempt,
                    attempts,
                    delay,
                )
                self._sleep(delay)
                continue
            logger.debug(
                "Capacity snapshot fetched | user_id=%s | total_workload=%.2f | active_projects=%s",
                snapshot.user_id,
                snapshot.total_workload,
                snapshot.active_project_count,
            )
            return snapshot
