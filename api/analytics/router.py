"""
Analytics ingestion and dashboard endpoints.
"""

from fastapi import APIRouter, Depends, Query, Request

from auth import dependencies as auth_dependencies
from core import ratelimit, request_info

from . import schemas, service

router = APIRouter(prefix="/analytics")


@router.post("/events")
@ratelimit.limit("analytics")
async def track_event(payload: schemas.TrackedEventRequest, request: Request) -> dict:
    return await service.ingest_event(
        payload,
        ip_address=request_info.client_ip(request),
        user_agent=request_info.user_agent(request),
    )


@router.post("/attribution")
@ratelimit.limit("analytics")
async def track_attribution(payload: schemas.TrackedEventRequest, request: Request) -> dict:
    return await service.ingest_attribution(
        payload,
        ip_address=request_info.client_ip(request),
        user_agent=request_info.user_agent(request),
    )


@router.get("/revenue-dashboard")
async def revenue_dashboard(
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.revenue_dashboard()


@router.get("/attribution/report")
async def attribution_report(
    days: int = Query(30, ge=1, le=365),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.attribution_report(days=days)
