"""
Audit log business logic.

Scope:
- event ids and retention windows by event risk class
- privacy processing before anything is stored (IPv4 truncation, email hashing)
- security incidents
- client-side error reports, stored as audit entries
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import HTTPException

from . import repository, schemas

logger = logging.getLogger(__name__)

HIGH_RISK_EVENTS = frozenset(
    {
        "FILE_DOWNLOAD",
        "LOGIN_SUCCESS",
        "LOGIN_FAILURE",
        "PASSWORD_CHANGE",
        "ADMIN_ACCESS",
        "USER_CREATED",
        "USER_REGISTERED",
        "DATA_EXPORT",
        "PAYMENT_COMPLETED",
        "PAYMENT_REFUNDED",
        "SECURITY_INCIDENT",
    }
)
MEDIUM_RISK_EVENTS = frozenset(
    {
        "FILE_ACCESS",
        "ORDER_LOOKUP",
        "MODEL_VIEW",
        "NEWSLETTER_SUBSCRIBE",
        "CLIENT_ERROR",
    }
)

RETENTION_DAYS = {
    "high": 7 * 365,
    "medium": 2 * 365,
    "low": 90,
}

AUDIT_SEVERITIES = ("info", "warning", "error", "critical")
AUDIT_RESULTS = ("success", "failure", "error", "blocked")

_SEVERITY_ALIASES = {
    "debug": "info",
    "log": "info",
    "warn": "warning",
    "fatal": "critical",
}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_event_id() -> str:
    return f"{_base36(int(time.time() * 1000))}-{secrets.token_hex(8)}"


def risk_class(event_type: str) -> str:
    if event_type in HIGH_RISK_EVENTS:
        return "high"
    if event_type in MEDIUM_RISK_EVENTS:
        return "medium"
    return "low"


def retention_until(event_type: str, *, now: datetime | None = None) -> datetime:
    current = now or datetime.now(timezone.utc)
    return current + timedelta(days=RETENTION_DAYS[risk_class(event_type)])


def normalize_severity(value: str | None) -> str:
    severity = (value or "info").strip().lower()
    severity = _SEVERITY_ALIASES.get(severity, severity)
    return severity if severity in AUDIT_SEVERITIES else "info"


def anonymize_ip(ip_address: str | None) -> str | None:
    """
    Keep the first two octets of an IPv4 address. IPv6 keeps the first four groups.
    """
    if not ip_address:
        return ip_address
    parts = ip_address.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.0.0"
    if ":" in ip_address:
        groups = ip_address.split(":")
        return ":".join(groups[:4]) + "::"
    return ip_address


def scrub_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    cleaned = dict(metadata or {})
    email = cleaned.pop("email", None)
    if email:
        cleaned["email_hash"] = hashlib.sha256(str(email).strip().lower().encode("utf-8")).hexdigest()
    return cleaned


async def create_audit_log(
    event_type: str,
    *,
    user_id: int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    session_id: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    action: str | None = None,
    result: str = "success",
    severity: str = "info",
    metadata: dict[str, Any] | None = None,
    error_details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    event_type = (event_type or "").strip().upper()
    if not event_type:
        raise ValueError("Audit event type is required.")
    if result not in AUDIT_RESULTS:
        result = "error"

    return await repository.insert_audit_log(
        event_id=generate_event_id(),
        event_type=event_type,
        user_id=user_id,
        ip_address=anonymize_ip(ip_address),
        user_agent=user_agent,
        session_id=session_id,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        result=result,
        severity=normalize_severity(severity),
        metadata=scrub_metadata(metadata),
        error_details=error_details,
        retention_until=retention_until(event_type),
    )


async def record(event_type: str, **fields: Any) -> dict[str, Any] | None:
    """
    Best-effort audit write for request paths where the audit entry must not
    fail the request. Failures are logged.
    """
    try:
        return await create_audit_log(event_type, **fields)
    except Exception:
        logger.exception("audit_log_failed event_type=%s", event_type)
        return None


async def create_security_incident(
    *,
    incident_type: str,
    severity: str,
    description: str,
    alert_id: str | None = None,
    user_id: int | None = None,
    ip_address: str | None = None,
    actions_taken: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    row = await repository.insert_security_incident(
        incident_id=generate_event_id(),
        incident_type=incident_type or "unknown",
        severity=severity,
        description=description,
        alert_id=alert_id,
        user_id=user_id,
        ip_address=anonymize_ip(ip_address),
        actions_taken=actions_taken,
        metadata=scrub_metadata(metadata),
    )
    logger.warning(
        "security_incident incident_id=%s type=%s severity=%s",
        row["incident_id"],
        row["incident_type"],
        row["severity"],
    )
    return row


async def resolve_security_incident(
    incident_id: str,
    *,
    resolved_by: int | None,
    actions_taken: str | None = None,
) -> dict[str, Any]:
    row = await repository.resolve_security_incident(
        incident_id,
        resolved_by=resolved_by,
        actions_taken=actions_taken,
    )
    if row is None:
        raise HTTPException(status_code=404, detail="Open incident not found.")
    return row


async def process_client_errors(
    events: list[schemas.ClientErrorEvent],
    *,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    """
    Store client-side error reports. Events without a timestamp, or without
    both an error and a message, are skipped.
    """
    results: list[dict[str, Any]] = []
    for event in events:
        if not event.timestamp or (event.error is None and not event.message):
            continue

        error = event.error or {}
        context = event.context or {}
        try:
            await create_audit_log(
                "CLIENT_ERROR" if event.error is not None else "CLIENT_MESSAGE",
                ip_address=ip_address,
                user_agent=str(context.get("userAgent") or user_agent or ""),
                severity=event.level or ("error" if event.error is not None else "info"),
                metadata={
                    "error_name": error.get("name"),
                    "error_message": error.get("message") or event.message,
                    "error_stack": error.get("stack"),
                    "url": context.get("url"),
                    "context": context,
                    "timestamp": event.timestamp,
                },
            )
            results.append({"id": event.timestamp, "status": "logged"})
        except Exception as exc:
            logger.exception("client_error_store_failed timestamp=%s", event.timestamp)
            results.append({"id": event.timestamp, "status": "failed", "error": str(exc)})

    logged = sum(1 for r in results if r["status"] == "logged")
    await record(
        "ERROR_TRACKING",
        ip_address=ip_address,
        metadata={
            "events_received": len(events),
            "events_processed": logged,
            "events_failed": len(results) - logged,
        },
    )
    return {"success": True, "processed": len(results), "results": results}
