"""Per-session wiring of the workload services."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Optional

import requests

from workload.repository.backend_client import BackendClient
from workload.repository.cache import FreshnessCache
from workload.repository.session import SessionContext
from workload.services.analytics_service import WorkloadAnalyticsService
from workload.services.capacity_service import CapacitySnapshotProvider
from workload.services.membership_service import ProjectMembershipService
from workload.services.realtime_validation import RealtimeWorkloadValidator
from workload.services.validation_service import WorkloadValidationService
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)

ClientFactory = Callable[[SessionContext], Any]


@dataclass(frozen=True)
class WorkloadWorkspace:
    """One session's services, sharing a single cache."""

    session: SessionContext
    settings: Settings
    cache: FreshnessCache
    capacity: CapacitySnapshotProvider
    validation: WorkloadValidationService
    membership: ProjectMembershipService
    analytics: WorkloadAnalyticsService

    def realtime_validator(self, user_id: int, **kwargs: Any) -> RealtimeWorkloadValidator:
        return RealtimeWorkloadValidator(self.capacity, user_id, settings=self.settings, **kwargs)


def build_workspace(
    session: SessionContext,
    settings: Optional[Settings] = None,
    *,
    client: Optional[BackendClient] = None,
    http: Optional[requests.Session] = None,
    cache: Optional[FreshnessCache] = None,
) -> WorkloadWorkspace:
    resolved_settings = settings or get_settings()
    backend = client or BackendClient(session, settings=resolved_settings, http=http)
    shared_cache = cache or FreshnessCache()
    capacity = CapacitySnapshotProvider(backend, cache=shared_cache, settings=resolved_settings)
    return WorkloadWorkspace(
        session=session,
        settings=resolved_settings,
        cache=shared_cache,
        capacity=capacity,
        validation=WorkloadValidationService(capacity, settings=resolved_settings),
        membership=ProjectMembershipService(
            backend,
            capacity,
            cache=shared_cache,
            settings=resolved_settings,
        ),
        analytics=WorkloadAnalyticsService(backend, cache=shared_cache, settings=resolved_settings),
    )


class WorkspaceRegistry:
    """Keeps the most recently used workspaces, one per bearer token and acting user.

    Callers sharing a token but acting as different users never share a
    workspace, since the acting user is part of the backend session.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http: Optional[requests.Session] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http or requests.Session()
        self._client_factory = client_factory
        self._workspaces: OrderedDict[tuple[str, Optional[str]], WorkloadWorkspace] = OrderedDict()
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._workspaces)

    def for_token(self, access_token: str, acting_user: Optional[str] = None) -> WorkloadWorkspace:
        """Return the workspace for this token and acting user, building it on first use."""
        key = (access_token, acting_user)
        with self._lock:
            workspace = self._workspaces.get(key)
            if workspace is not None:
                self._workspaces.move_to_end(key)
                return workspace

            session = SessionContext(
                base_url=self._settings.backend_base_url,
                access_token=access_token,
                acting_user=acting_user,
            )
            client = self._client_factory(session) if self._client_factory else None
            workspace = build_workspace(session, self._settings, client=client, http=self._http)
            self._workspaces[key] = workspace
            while len(self._workspaces) > self._settings.workspace_registry_max_sessions:
                self._workspaces.popitem(last=False)
                logger.debug("Evicted least recently used workspace")
            return workspace
