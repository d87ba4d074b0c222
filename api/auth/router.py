"""
Auth API endpoints.
"""

from fastapi import APIRouter, Depends, Query, Request

from core import ratelimit, request_info

from . import dependencies, schemas, service

router = APIRouter(prefix="/auth")


@router.post("/login")
@ratelimit.limit("auth")
async def login(payload: schemas.LoginRequest, request: Request) -> schemas.AuthResponse:
    return await service.login(
        payload,
        user_agent=request_info.user_agent(request),
        ip_address=request_info.client_ip(request),
    )


@router.post("/register", status_code=201)
@ratelimit.limit("auth")
async def register(payload: schemas.RegisterRequest, request: Request) -> schemas.AuthResponse:
    return await service.register(
        payload,
        user_agent=request_info.user_agent(request),
        ip_address=request_info.client_ip(request),
    )


@router.post("/refresh")
@ratelimit.limit("auth")
async def refresh(payload: schemas.RefreshRequest, request: Request) -> schemas.TokenPairResponse:
    return await service.refresh_tokens(
        payload,
        user_agent=request_info.user_agent(request),
        ip_address=request_info.client_ip(request),
    )


@router.post("/logout")
async def logout(
    payload: schemas.LogoutRequest,
    current_user: dict = Depends(dependencies.get_current_user),
) -> dict:
    return await service.logout(payload, current_user_id=int(current_user["id"]))


@router.get("/me")
async def me(current_user: dict = Depends(dependencies.get_current_user)) -> schemas.UserResponse:
    return service.to_user_response(current_user)


@router.get("/users")
async def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _: dict = Depends(dependencies.require_admin),
) -> dict:
    return await service.list_users(limit=limit, offset=offset)


@router.post("/users", status_code=201)
async def create_user(
    payload: schemas.CreateUserRequest,
    current_user: dict = Depends(dependencies.require_admin),
) -> schemas.UserResponse:
    return await service.create_user(payload, created_by=int(current_user["id"]))


@router.patch("/users/{user_id}")
async def update_user(
    user_id: int,
    payload: schemas.UpdateUserRequest,
    current_user: dict = Depends(dependencies.require_admin),
) -> schemas.UserResponse:
    return await service.update_user(user_id, payload, updated_by=int(current_user["id"]))
