"""
Pure scoring helpers for monitoring aggregates.
"""

from __future__ import annotations

from typing import Any

# Supported `time_range` values, in hours.
TIME_RANGES: dict[str, int] = {
    "1h": 1,
    "6h": 6,
    "24h": 24,
    "7d": 7 * 24,
    "30d": 30 * 24,
}

CRITICAL_SEVERITIES = ("high", "critical")


def _num(value: Any) -> float:
    return float(value) if value is not None else 0.0


def performance_score(metric: dict[str, Any]) -> float:
    """
    Start at 100 and deduct for slow averages, slow tails and the share of
    samples over their threshold. Clamped to 0..100.
    """
    avg_duration = _num(metric.get("avg_duration"))
    p95 = _num(metric.get("p95"))
    count = _num(metric.get("count"))
    violations = _num(metric.get("threshold_violations"))

    score = 100.0
    if avg_duration > 1000:
        score -= 10
    if avg_duration > 3000:
        score -= 20
    if p95 > 5000:
        score -= 15
    if p95 > 10000:
        score -= 25
    if count > 0:
        score -= (violations / count) * 100
    return max(0.0, min(100.0, score))


def performance_summary(metrics: list[dict[str, Any]]) -> dict[str, Any]:
    scores = [m["performance_score"] for m in metrics]
    return {
        "total_operations": sum(int(_num(m.get("count"))) for m in metrics),
        "avg_performance_score": sum(scores) / len(scores) if scores else 0.0,
        "critical_violations": sum(
            1 for m in metrics if _num(m.get("threshold_violations")) > _num(m.get("count")) * 0.1
        ),
    }


def error_rate(summary: list[dict[str, Any]], *, range_hours: int) -> dict[str, Any]:
    total = sum(int(_num(row.get("total_errors"))) for row in summary)
    critical = sum(
        int(_num(row.get("total_errors"))) for row in summary if row.get("severity") in CRITICAL_SEVERITIES
    )
    return {
        "total": total,
        "critical": critical,
        "rate_per_hour": total / range_hours if range_hours > 0 else 0.0,
    }


def derived_alerts(performance: dict[str, Any], errors: dict[str, Any]) -> list[dict[str, Any]]:
    alerts: list[dict[str, Any]] = []
    violations = performance["summary"]["critical_violations"]
    if violations > 0:
        alerts.append(
            {
                "type": "performance",
                "severity": "warning",
                "message": f"{violations} metrics exceeding performance thresholds",
            }
        )
    critical = errors["error_rate"]["critical"]
    if critical > 10:
        alerts.append(
            {
                "type": "error",
                "severity": "critical",
                "message": f"High critical error rate: {critical} errors",
            }
        )
    return alerts


def recommendations(performance: dict[str, Any], errors: dict[str, Any]) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    slow = [m for m in performance["metrics"] if m["performance_score"] < 70]
    if slow:
        items.append(
            {
                "category": "performance",
                "priority": "high",
                "message": f"Optimize {slow[0]['metric_name']} - average duration {_num(slow[0].get('avg_duration')):.0f}ms",
                "action": "Review code for performance bottlenecks",
            }
        )
    top_errors = errors["top_errors"]
    if top_errors and int(_num(top_errors[0].get("count"))) > 50:
        items.append(
            {
                "category": "stability",
                "priority": "critical",
                "message": f'Fix recurring error: "{top_errors[0].get("message")}"',
                "action": "Investigate and resolve root cause",
            }
        )
    return items
