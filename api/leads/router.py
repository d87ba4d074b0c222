"""
Contact form, newsletter and lead admin endpoints.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from auth import dependencies as auth_dependencies
from core import ratelimit, request_info

from . import repository, schemas, service

router = APIRouter()


@router.post("/contact")
@ratelimit.limit("forms")
async def contact(
    payload: schemas.ContactRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict:
    return await service.submit_contact(
        payload,
        background_tasks=background_tasks,
        ip_address=request_info.client_ip(request),
        user_agent=request_info.user_agent(request),
    )


@router.post("/newsletter")
@ratelimit.limit("forms")
async def newsletter(
    payload: schemas.NewsletterRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict:
    return await service.subscribe(
        payload,
        background_tasks=background_tasks,
        ip_address=request_info.client_ip(request),
        user_agent=request_info.user_agent(request),
    )


@router.post("/newsletter/unsubscribe")
@ratelimit.limit("forms")
async def newsletter_unsubscribe(payload: schemas.NewsletterRequest, request: Request) -> dict:
    return await service.unsubscribe(payload)


@router.get("/admin/leads")
async def list_leads(
    status: schemas.LeadStatus | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return await service.list_leads(status_filter=status, limit=limit, offset=offset)


@router.patch("/admin/leads/{lead_id}")
async def update_lead(
    lead_id: int,
    payload: schemas.UpdateLeadRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    lead = await service.update_lead(lead_id, payload, updated_by=int(current_user["id"]))
    return {"lead": lead}


@router.get("/admin/newsletter/count")
async def newsletter_count(
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return {"active_subscribers": await repository.count_active_subscribers()}
