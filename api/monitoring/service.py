"""
Monitoring business logic: alert intake and routing, metric ingestion and
aggregate reports.

Alert routing is a set of independent side effects. Each one is attempted and
logged on failure without affecting the others.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx
from fastapi import BackgroundTasks, HTTPException, status

from analytics.service import parse_timestamp
from audit import service as audit_service
from core import db, email
from core.settings import env_str

from . import repository, schemas, scoring
from .throttle import SEVERITY_LEVELS, throttle

logger = logging.getLogger(__name__)

EXTERNAL_SOURCE = "zencap-monitoring"
MAX_ERROR_PATTERNS = 100
_BASE36 = string.digits + string.ascii_lowercase


def alert_webhook_url() -> str:
    return env_str("ALERT_WEBHOOK_URL")


def external_monitoring_url() -> str:
    return env_str("EXTERNAL_MONITORING_URL")


def external_monitoring_api_key() -> str:
    return env_str("EXTERNAL_MONITORING_API_KEY")


def generate_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _optional_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        return parse_timestamp(value)
    except (ValueError, OverflowError, OSError):
        return None


# -- alerts -------------------------------------------------------------------


def build_alert(payload: schemas.AlertRequest, *, source: str | None) -> dict[str, Any]:
    alert_type = (payload.type or "").strip()
    severity = (payload.severity or "").strip().lower()
    message = (payload.message or "").strip()
    if not alert_type or not severity or not message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: type, severity, message",
        )
    if severity not in SEVERITY_LEVELS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid severity. Expected one of: {', '.join(SEVERITY_LEVELS)}",
        )

    return {
        "id": generate_id("alert"),
        "type": alert_type,
        "severity": severity,
        "severity_level": SEVERITY_LEVELS[severity],
        "message": message,
        "metric": payload.metric,
        "error": payload.error,
        "pattern": payload.pattern,
        "metadata": payload.metadata,
        "timestamp": _utc_now(),
        "source": source,
    }


async def create_alert(
    payload: schemas.AlertRequest,
    *,
    source: str | None,
    background_tasks: BackgroundTasks,
) -> dict[str, Any]:
    alert = build_alert(payload, source=source)

    if not throttle.should_send(alert["type"], alert["severity"]):
        logger.info("alert_throttled type=%s severity=%s", alert["type"], alert["severity"])
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Alert throttled.",
        )

    try:
        await repository.insert_alert(alert)
    except Exception:
        logger.exception("alert_store_failed alert_id=%s", alert["id"])

    background_tasks.add_task(route_alert, alert)
    throttle.record(alert["type"])
    logger.info(
        "alert_accepted alert_id=%s type=%s severity=%s",
        alert["id"],
        alert["type"],
        alert["severity"],
    )
    return {"success": True, "alert_id": alert["id"], "processed": True}


async def _post_json(url: str, body: dict[str, Any], *, headers: dict[str, str], timeout_s: float = 10.0) -> None:
    async with httpx.AsyncClient(timeout=timeout_s) as client:
        resp = await client.post(url, headers=headers, content=json.dumps(body, default=str))
    resp.raise_for_status()


async def send_alert_email(alert: dict[str, Any]) -> None:
    recipients = email.alert_recipients()
    if not recipients:
        logger.info("alert_email_skipped alert_id=%s reason=no_recipients", alert["id"])
        return
    await email.send_email(email.alert_email(alert, recipients), sender_name="ZenCap Monitoring")


async def send_external_monitoring(alert: dict[str, Any]) -> None:
    url, api_key = external_monitoring_url(), external_monitoring_api_key()
    if not url or not api_key:
        return
    await _post_json(
        url,
        {
            "message": alert["message"],
            "severity": alert["severity"],
            "source": EXTERNAL_SOURCE,
            "metadata": alert,
        },
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
    )


async def create_incident(alert: dict[str, Any]) -> None:
    await repository.insert_incident(
        incident_id=generate_id("inc"),
        alert_id=alert["id"],
        title=alert["message"],
        description=json.loads(json.dumps(alert, default=str)),
        severity=alert["severity"],
    )


async def record_security_incident(alert: dict[str, Any]) -> None:
    metadata = alert.get("metadata") or {}
    await audit_service.create_security_incident(
        incident_type=str(metadata.get("incidentType") or metadata.get("incident_type") or "unknown"),
        severity=alert["severity"],
        description=alert["message"],
        alert_id=alert["id"],
        ip_address=alert.get("source"),
        metadata=metadata,
    )


async def record_error_pattern(alert: dict[str, Any]) -> None:
    pattern = alert.get("pattern") or {}
    group = pattern.get("group") or {}
    await repository.upsert_error_pattern(
        pattern_type=str(pattern.get("type") or "unknown"),
        pattern_message=str(pattern.get("message") or alert["message"]),
        pattern_data=pattern,
        occurrence_count=int(group.get("count") or 1),
        first_seen=_optional_timestamp(group.get("firstOccurrence")),
        last_seen=_optional_timestamp(group.get("lastOccurrence")),
    )


async def record_performance_alert(alert: dict[str, Any]) -> None:
    metric = alert.get("metric") or {}
    await repository.insert_performance_alert(
        alert_id=alert["id"],
        metric_name=metric.get("name"),
        threshold_value=_to_float(metric.get("threshold")),
        actual_value=_to_float(metric.get("duration")),
    )


async def send_alert_webhook(alert: dict[str, Any]) -> None:
    await _post_json(
        alert_webhook_url(),
        alert,
        headers={
            "Content-Type": "application/json",
            "X-Alert-Type": alert["type"],
            "X-Alert-Severity": alert["severity"],
        },
    )


def alert_routes(alert: dict[str, Any]) -> list[tuple[str, Callable[[dict[str, Any]], Awaitable[None]]]]:
    routes: list[tuple[str, Callable[[dict[str, Any]], Awaitable[None]]]] = []
    if alert["severity_level"] >= SEVERITY_LEVELS["high"]:
        routes.append(("email", send_alert_email))
        routes.append(("external_monitoring", send_external_monitoring))
    if alert["severity"] == "critical":
        routes.append(("incident", create_incident))
    if alert["type"] == "security":
        routes.append(("security_incident", record_security_incident))
    elif alert["type"] == "error_pattern":
        routes.append(("error_pattern", record_error_pattern))
    elif alert["type"] == "performance":
        routes.append(("performance_alert", record_performance_alert))
    if alert_webhook_url():
        routes.append(("webhook", send_alert_webhook))
    return routes


async def route_alert(alert: dict[str, Any]) -> list[str]:
    """
    BackgroundTasks entrypoint. Returns the names of routes that completed.
    """
    completed: list[str] = []
    for name, route in alert_routes(alert):
        try:
            await route(alert)
        except Exception:
            logger.exception("alert_route_failed alert_id=%s route=%s", alert["id"], name)
            continue
        completed.append(name)
    logger.info("alert_routed alert_id=%s routes=%s", alert["id"], ",".join(completed) or "-")
    return completed


async def list_alerts(*, limit: int, alert_type: str | None, min_severity: str | None) -> dict[str, Any]:
    min_level = 0
    if min_severity:
        if min_severity not in SEVERITY_LEVELS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid severity.")
        min_level = SEVERITY_LEVELS[min_severity]

    rows = await repository.list_alerts(limit=limit, alert_type=alert_type, min_level=min_level)
    for row in rows:
        for key in ("metric_data", "error_data", "pattern_data", "metadata"):
            if isinstance(row.get(key), str):
                row[key] = json.loads(row[key])
    return {"alerts": rows, "count": len(rows)}


# -- metrics ------------------------------------------------------------------


async def ingest_metrics(payload: schemas.MetricsBatchRequest) -> dict[str, Any]:
    if not payload.metrics and not payload.errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No metrics or errors provided.",
        )

    now = _utc_now()
    metric_rows = [
        (
            metric.name,
            metric.component,
            metric.duration,
            metric.memory_delta,
            metric.exceeds_threshold,
            db.json_arg(metric.metadata),
            _optional_timestamp(metric.timestamp) or now,
        )
        for metric in payload.metrics
    ]
    error_rows = [
        (
            error.category,
            error.severity,
            error.message,
            error.stack_trace,
            error.url,
            error.user_agent,
            db.json_arg(error.metadata),
            _optional_timestamp(error.timestamp) or now,
        )
        for error in payload.errors
    ]
    await repository.insert_metrics_batch(metrics=metric_rows, errors=error_rows)
    logger.info("metrics_ingested metrics=%s errors=%s", len(metric_rows), len(error_rows))
    return {"success": True, "metrics": len(metric_rows), "errors": len(error_rows)}


def range_hours(time_range: str) -> int:
    hours = scoring.TIME_RANGES.get(time_range)
    if hours is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid time range. Expected one of: {', '.join(scoring.TIME_RANGES)}",
        )
    return hours


async def performance_report(*, hours: int, category: str | None) -> dict[str, Any]:
    metrics = await repository.performance_aggregates(hours=hours, category=category)
    for metric in metrics:
        for key in ("avg_duration", "min_duration", "max_duration", "p50", "p95", "p99", "avg_memory_delta"):
            metric[key] = _to_float(metric.get(key))
        metric["performance_score"] = scoring.performance_score(metric)
    return {"metrics": metrics, "summary": scoring.performance_summary(metrics)}


async def error_report(*, hours: int, category: str | None, limit: int) -> dict[str, Any]:
    top_errors = await repository.top_errors(hours=hours, category=category, limit=limit)
    summary = await repository.error_summary(hours=hours, category=category)
    return {
        "top_errors": top_errors,
        "summary": summary,
        "error_rate": scoring.error_rate(summary, range_hours=hours),
    }


async def get_metrics(
    *,
    metric_type: str,
    time_range: str,
    category: str | None,
    limit: int,
) -> dict[str, Any]:
    hours = range_hours(time_range)

    if metric_type == "performance":
        data = await performance_report(hours=hours, category=category)
    elif metric_type == "errors":
        data = await error_report(hours=hours, category=category, limit=limit)
    elif metric_type == "summary":
        performance = await performance_report(hours=hours, category=None)
        errors = await error_report(hours=hours, category=None, limit=5)
        data = {
            "overview": {
                "performance_score": performance["summary"]["avg_performance_score"],
                "error_rate": errors["error_rate"],
            },
            "performance": performance["summary"],
            "top_errors": errors["top_errors"],
            "alerts": scoring.derived_alerts(performance, errors),
            "recommendations": scoring.recommendations(performance, errors),
        }
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid metric type")

    return {
        "success": True,
        "type": metric_type,
        "time_range": time_range,
        "timestamp": _utc_now().isoformat(),
        "data": data,
    }


async def error_patterns(*, time_range: str, limit: int, min_occurrences: int) -> dict[str, Any]:
    hours = range_hours(time_range)
    rows = await repository.list_error_patterns(
        hours=hours,
        min_occurrences=min_occurrences,
        limit=min(limit, MAX_ERROR_PATTERNS),
    )
    patterns = []
    for row in rows:
        data = row.get("pattern_data")
        if isinstance(data, str):
            data = json.loads(data)
        patterns.append(
            {
                "id": row["id"],
                "type": row["pattern_type"],
                "message": row.get("pattern_message") or "Unknown error pattern",
                "count": int(row["occurrence_count"]),
                "first_seen": row.get("first_seen"),
                "last_seen": row.get("last_seen"),
                "data": data or {},
            }
        )

    trends = [
        {"type": row["pattern_type"], "hour": row["hour"], "count": int(row["count"] or 0)}
        for row in await repository.error_pattern_trends(hours=hours)
    ]
    return {
        "success": True,
        "patterns": patterns,
        "trends": trends,
        "time_range": time_range,
        "total_patterns": len(patterns),
    }
