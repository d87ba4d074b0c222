"""
Monitoring persistence (raw SQL).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core import db


async def insert_alert(alert: dict[str, Any]) -> None:
    await db.execute(
        """
        INSERT INTO monitoring_alerts (
          alert_id, alert_type, severity, severity_level, message,
          metric_data, error_data, pattern_data, metadata, source, timestamp
        )
        VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7::jsonb, $8::jsonb, $9::jsonb, $10, $11)
        """,
        alert["id"],
        alert["type"],
        alert["severity"],
        alert["severity_level"],
        alert["message"],
        db.json_arg(alert.get("metric")),
        db.json_arg(alert.get("error")),
        db.json_arg(alert.get("pattern")),
        db.json_arg(alert.get("metadata") or {}),
        alert.get("source"),
        alert["timestamp"],
    )


async def list_alerts(
    *,
    limit: int = 50,
    alert_type: str | None = None,
    min_level: int = 0,
) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT alert_id, alert_type, severity, severity_level, message,
               metric_data, error_data, pattern_data, metadata, source, timestamp
        FROM monitoring_alerts
        WHERE ($1::text IS NULL OR alert_type = $1)
          AND severity_level >= $2
        ORDER BY timestamp DESC
        LIMIT $3
        """,
        alert_type,
        min_level,
        limit,
    )


async def insert_incident(
    *,
    incident_id: str,
    alert_id: str,
    title: str,
    description: dict[str, Any],
    severity: str,
) -> None:
    await db.execute(
        """
        INSERT INTO incidents (incident_id, alert_id, title, description, severity, status)
        VALUES ($1, $2, $3, $4::jsonb, $5, 'open')
        """,
        incident_id,
        alert_id,
        title,
        db.json_arg(description),
        severity,
    )


async def upsert_error_pattern(
    *,
    pattern_type: str,
    pattern_message: str,
    pattern_data: dict[str, Any],
    occurrence_count: int,
    first_seen: datetime | None,
    last_seen: datetime | None,
) -> None:
    await db.execute(
        """
        INSERT INTO error_patterns (
          pattern_type, pattern_message, pattern_data, occurrence_count, first_seen, last_seen
        )
        VALUES ($1, $2, $3::jsonb, $4, COALESCE($5, now()), COALESCE($6, now()))
        ON CONFLICT (pattern_type, pattern_message) DO UPDATE
        SET pattern_data = EXCLUDED.pattern_data,
            occurrence_count = error_patterns.occurrence_count + EXCLUDED.occurrence_count,
            first_seen = LEAST(error_patterns.first_seen, EXCLUDED.first_seen),
            last_seen = GREATEST(error_patterns.last_seen, EXCLUDED.last_seen)
        """,
        pattern_type,
        pattern_message,
        db.json_arg(pattern_data),
        occurrence_count,
        first_seen,
        last_seen,
    )


async def insert_performance_alert(
    *,
    alert_id: str,
    metric_name: str | None,
    threshold_value: float | None,
    actual_value: float | None,
) -> None:
    await db.execute(
        """
        INSERT INTO performance_alerts (alert_id, metric_name, threshold_value, actual_value)
        VALUES ($1, $2, $3, $4)
        """,
        alert_id,
        metric_name,
        threshold_value,
        actual_value,
    )


async def insert_metrics_batch(
    *,
    metrics: list[tuple[str, str | None, float | None, float | None, bool, str | None, datetime]],
    errors: list[tuple[str | None, str, str, str | None, str | None, str | None, str | None, datetime]],
) -> None:
    async with db.transaction() as conn:
        if metrics:
            await conn.executemany(
                """
                INSERT INTO performance_metrics (
                  metric_name, component, duration, memory_delta, exceeds_threshold,
                  metadata, timestamp
                )
                VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
                """,
                metrics,
            )
        if errors:
            await conn.executemany(
                """
                INSERT INTO error_logs (
                  category, severity, message, stack_trace, url, user_agent,
                  metadata, timestamp
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8)
                """,
                errors,
            )


async def performance_aggregates(*, hours: int, category: str | None = None) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT metric_name,
               component,
               count(*) AS count,
               avg(duration) AS avg_duration,
               min(duration) AS min_duration,
               max(duration) AS max_duration,
               percentile_cont(0.5) WITHIN GROUP (ORDER BY duration) AS p50,
               percentile_cont(0.95) WITHIN GROUP (ORDER BY duration) AS p95,
               percentile_cont(0.99) WITHIN GROUP (ORDER BY duration) AS p99,
               count(*) FILTER (WHERE exceeds_threshold) AS threshold_violations,
               avg(memory_delta) AS avg_memory_delta
        FROM performance_metrics
        WHERE timestamp >= now() - make_interval(hours => $1)
          AND ($2::text IS NULL OR component = $2)
        GROUP BY metric_name, component
        ORDER BY avg(duration) DESC NULLS LAST
        """,
        hours,
        category,
    )


async def top_errors(*, hours: int, category: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT category,
               severity,
               message,
               count(*) AS count,
               min(timestamp) AS first_occurrence,
               max(timestamp) AS last_occurrence,
               array_remove(array_agg(DISTINCT url), NULL) AS affected_urls
        FROM error_logs
        WHERE timestamp >= now() - make_interval(hours => $1)
          AND ($2::text IS NULL OR category = $2)
        GROUP BY category, severity, message
        ORDER BY count(*) DESC
        LIMIT $3
        """,
        hours,
        category,
        limit,
    )


async def error_summary(*, hours: int, category: str | None = None) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT category,
               severity,
               count(*) AS total_errors,
               count(DISTINCT message) AS unique_errors
        FROM error_logs
        WHERE timestamp >= now() - make_interval(hours => $1)
          AND ($2::text IS NULL OR category = $2)
        GROUP BY category, severity
        ORDER BY count(*) DESC
        """,
        hours,
        category,
    )


async def list_error_patterns(*, hours: int, min_occurrences: int, limit: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT id, pattern_type, pattern_message, pattern_data, occurrence_count, first_seen, last_seen
        FROM error_patterns
        WHERE last_seen >= now() - make_interval(hours => $1)
          AND occurrence_count >= $2
        ORDER BY occurrence_count DESC, last_seen DESC
        LIMIT $3
        """,
        hours,
        min_occurrences,
        limit,
    )


async def error_pattern_trends(*, hours: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT pattern_type,
               date_trunc('hour', last_seen) AS hour,
               sum(occurrence_count) AS count
        FROM error_patterns
        WHERE last_seen >= now() - make_interval(hours => $1)
        GROUP BY pattern_type, date_trunc('hour', last_seen)
        ORDER BY hour DESC, count DESC
        LIMIT 100
        """,
        hours,
    )
