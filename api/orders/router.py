"""
Order lookup and download endpoints.
"""

from fastapi import APIRouter, Depends, Query, Request

from auth import dependencies as auth_dependencies
from core import ratelimit, request_info

from . import service

router = APIRouter()


@router.get("/orders/{session_id}")
async def get_order(session_id: str) -> dict:
    return await service.get_order(session_id)


@router.get("/account/orders")
async def account_orders(
    email: str | None = Query(default=None, max_length=320),
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    """
    Orders for the signed-in user. Admins may look up any customer by `email`.
    """
    if email and str(current_user.get("role")) == "admin":
        return await service.list_orders_for_email(email)
    return await service.list_orders_for_email(str(current_user["email"]))


@router.get("/download/{order_id}")
@ratelimit.limit("downloads")
async def download(
    order_id: int,
    request: Request,
    email: str = Query(..., min_length=3, max_length=320),
):
    return await service.download(
        order_id,
        email=email,
        ip_address=request_info.client_ip(request),
        user_agent=request_info.user_agent(request),
    )
