"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the shared HTTP session and the per-token workspace registry,
registers routers, and checks threshold configuration at startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import requests
from fastapi import FastAPI

from workload.controllers.capacity_controller import router as capacity_router
from workload.controllers.membership_controller import router as membership_router
from workload.domain.constraints import validate_analytics_config, validate_validation_config
from workload.services.analytics_service import analytics_config_from_settings
from workload.services.validation_service import validation_config_from_settings
from workload.services.workspace import ClientFactory, WorkspaceRegistry
from workload.utils.config import Settings, get_settings
from workload.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    One requests.Session is shared by every workspace; each bearer token
    gets its own workspace and cache through the registry on app.state.
    """
    resolved_settings = settings or get_settings()

    # Fail fast on inconsistent thresholds.
    validate_validation_config(validation_config_from_settings(resolved_settings))
    validate_analytics_config(analytics_config_from_settings(resolved_settings))

    http = requests.Session()
    registry = WorkspaceRegistry(
        resolved_settings,
        http=http,
        client_factory=client_factory,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Startup complete | backend=%s | warning_threshold=%s | ceiling=%s",
            resolved_settings.backend_base_url,
            resolved_settings.validation_warning_threshold,
            resolved_settings.validation_capacity_ceiling,
        )
        yield
        http.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=resolved_settings.app_name,
        version=resolved_settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(capacity_router)
    app.include_router(membership_router)

    app.state.settings = resolved_settings
    app.state.http = http
    app.state.workspace_registry = registry

    return app


# Module-level app object for uvicorn
app = create_app()
