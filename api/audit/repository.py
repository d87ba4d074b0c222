"""
Audit log and security incident persistence (raw SQL).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core import db

AUDIT_COLUMNS = """
    id, event_id, event_type, user_id, ip_address, user_agent, session_id,
    resource_type, resource_id, action, result, severity, metadata,
    error_details, retention_until, created_at
"""

INCIDENT_COLUMNS = """
    id, incident_id, alert_id, incident_type, severity, user_id, ip_address,
    description, actions_taken, resolved, resolved_at, resolved_by, metadata,
    created_at, updated_at
"""


async def insert_audit_log(
    *,
    event_id: str,
    event_type: str,
    user_id: int | None,
    ip_address: str | None,
    user_agent: str | None,
    session_id: str | None,
    resource_type: str | None,
    resource_id: str | None,
    action: str | None,
    result: str,
    severity: str,
    metadata: dict[str, Any],
    error_details: dict[str, Any] | None,
    retention_until: datetime,
) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO security_audit_logs (
          event_id, event_type, user_id, ip_address, user_agent, session_id,
          resource_type, resource_id, action, result, severity, metadata,
          error_details, retention_until
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12::jsonb, $13::jsonb, $14)
        RETURNING {AUDIT_COLUMNS}
        """,
        event_id,
        event_type,
        user_id,
        ip_address,
        user_agent,
        session_id,
        resource_type,
        resource_id,
        action,
        result,
        severity,
        db.json_arg(metadata),
        db.json_arg(error_details),
        retention_until,
    )
    if row is None:
        raise RuntimeError("Failed to insert audit log.")
    return row


async def list_audit_logs(
    *,
    event_type: str | None = None,
    severity: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {AUDIT_COLUMNS}
        FROM security_audit_logs
        WHERE ($1::text IS NULL OR event_type = $1)
          AND ($2::text IS NULL OR severity = $2)
        ORDER BY created_at DESC, id DESC
        LIMIT $3
        OFFSET $4
        """,
        event_type,
        severity,
        limit,
        offset,
    )


async def delete_expired_audit_logs() -> int:
    value = await db.fetch_val(
        """
        WITH deleted AS (
          DELETE FROM security_audit_logs
          WHERE retention_until IS NOT NULL
            AND retention_until < now()
          RETURNING 1
        )
        SELECT count(*) FROM deleted
        """
    )
    return int(value or 0)


async def insert_security_incident(
    *,
    incident_id: str,
    incident_type: str,
    severity: str,
    description: str,
    alert_id: str | None = None,
    user_id: int | None = None,
    ip_address: str | None = None,
    actions_taken: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO security_incidents (
          incident_id, alert_id, incident_type, severity, user_id, ip_address,
          description, actions_taken, metadata
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, COALESCE($9::jsonb, '{{}}'::jsonb))
        RETURNING {INCIDENT_COLUMNS}
        """,
        incident_id,
        alert_id,
        incident_type,
        severity,
        user_id,
        ip_address,
        description,
        actions_taken,
        db.json_arg(metadata),
    )
    if row is None:
        raise RuntimeError("Failed to insert security incident.")
    return row


async def list_security_incidents(
    *,
    resolved: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {INCIDENT_COLUMNS}
        FROM security_incidents
        WHERE ($1::boolean IS NULL OR resolved = $1)
        ORDER BY created_at DESC, id DESC
        LIMIT $2
        OFFSET $3
        """,
        resolved,
        limit,
        offset,
    )


async def resolve_security_incident(
    incident_id: str,
    *,
    resolved_by: int | None,
    actions_taken: str | None,
) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        UPDATE security_incidents
        SET resolved = true,
            resolved_at = now(),
            resolved_by = $2,
            actions_taken = COALESCE($3, actions_taken),
            updated_at = now()
        WHERE incident_id = $1
          AND resolved = false
        RETURNING {INCIDENT_COLUMNS}
        """,
        incident_id,
        resolved_by,
        actions_taken,
    )
