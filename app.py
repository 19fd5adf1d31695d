"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.booking_controller import router as booking_router
from backend.controllers.catalog_controller import router as catalog_router
from backend.repository.data_repository import DataRepository
from backend.services.booking_service import MeetingRequestService
from backend.services.catalog_service import CatalogService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    meeting_request_service = MeetingRequestService(
        repository=repository,
        settings=settings,
    )
    catalog_service = CatalogService(
        repository=repository,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        release_task = None
        if settings.auto_release_interval_seconds > 0:
            release_task = asyncio.create_task(
                _auto_release_loop(
                    meeting_request_service,
                    settings.auto_release_interval_seconds,
                )
            )
        yield
        if release_task is not None:
            release_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await release_task

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(booking_router)
    app.include_router(catalog_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.meeting_request_service = meeting_request_service
    app.state.catalog_service = catalog_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the demo catalogue is seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo rooms and users (skipped if Rooms table not empty)")
        repository.seed_demo_data()

    logger.info("Startup complete, system ready")


async def _auto_release_loop(service: MeetingRequestService, interval_seconds: int) -> None:
    """Sweep unused bookings on a fixed interval until cancelled."""
    logger.info("Auto-release loop started | interval_seconds=%s", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(service.auto_release_unused_bookings)
        except Exception:
            logger.exception("Auto-release sweep failed")


# Module-level app object for uvicorn
app = create_app()
