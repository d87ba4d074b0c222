"""
Audit log, security incident and client error endpoints.
"""

from fastapi import APIRouter, Depends, Query, Request

from auth import dependencies as auth_dependencies
from core import ratelimit, request_info

from . import repository, schemas, service

router = APIRouter()


@router.post("/errors")
@ratelimit.limit("errors")
async def report_client_errors(payload: schemas.ClientErrorBatch, request: Request) -> dict:
    return await service.process_client_errors(
        payload.events,
        ip_address=request_info.client_ip(request),
        user_agent=request_info.user_agent(request),
    )


@router.get("/security/audit-logs")
async def list_audit_logs(
    event_type: str | None = Query(default=None, max_length=50),
    severity: str | None = Query(default=None, max_length=20),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    rows = await repository.list_audit_logs(
        event_type=event_type.upper() if event_type else None,
        severity=severity,
        limit=limit,
        offset=offset,
    )
    return {"logs": rows, "count": len(rows), "limit": limit, "offset": offset}


@router.delete("/security/audit-logs/expired")
async def purge_expired_audit_logs(
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    deleted = await repository.delete_expired_audit_logs()
    return {"deleted": deleted}


@router.get("/security/incidents")
async def list_incidents(
    resolved: bool | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    rows = await repository.list_security_incidents(resolved=resolved, limit=limit, offset=offset)
    return {"incidents": rows, "count": len(rows)}


@router.post("/security/incidents", status_code=201)
async def create_incident(
    payload: schemas.SecurityIncidentRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    incident = await service.create_security_incident(
        incident_type=payload.incident_type,
        severity=payload.severity,
        description=payload.description,
        user_id=int(current_user["id"]),
        ip_address=payload.ip_address,
        actions_taken=payload.actions_taken,
        metadata=payload.metadata,
    )
    return {"incident": incident}


@router.patch("/security/incidents/{incident_id}/resolve")
async def resolve_incident(
    incident_id: str,
    payload: schemas.ResolveIncidentRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    incident = await service.resolve_security_incident(
        incident_id,
        resolved_by=int(current_user["id"]),
        actions_taken=payload.actions_taken,
    )
    return {"incident": incident}
