"""
Checkout and payment webhook endpoints.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request

from auth import dependencies as auth_dependencies
from core import ratelimit

from . import schemas, service

router = APIRouter()


@router.post("/checkout/session")
@ratelimit.limit("checkout")
async def create_checkout_session(payload: schemas.CheckoutSessionRequest, request: Request) -> dict:
    return await service.create_checkout_session(payload)


@router.post("/checkout/portal")
async def create_portal_session(
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    return await service.create_portal_session(str(current_user["email"]))


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: str | None = Header(default=None),
) -> dict:
    # The signature covers the raw bytes, so the body is read unparsed.
    payload = await request.body()
    return await service.handle_webhook(payload, stripe_signature, background_tasks=background_tasks)
