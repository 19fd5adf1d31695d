"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.services.booking_service import MeetingRequestService
from backend.services.catalog_service import CatalogService


def get_meeting_request_service(request: Request) -> MeetingRequestService:
    service = getattr(request.app.state, "meeting_request_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting request service is not initialized",
        )
    return service


def get_catalog_service(request: Request) -> CatalogService:
    service = getattr(request.app.state, "catalog_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = CatalogService(repository=repository)
            request.app.state.catalog_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service is not initialized",
        )
    return service
