"""
Per-type alert throttling.

A sliding window of send timestamps is kept in process memory for each alert
type. Critical alerts are never throttled; `security` alerts have no limit.
Types without a configured rule share a single `default` bucket.
"""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass

SEVERITY_LEVELS: dict[str, int] = {
    "low": 0,
    "medium": 1,
    "warning": 2,
    "high": 3,
    "critical": 4,
}


@dataclass(frozen=True)
class ThrottleRule:
    window_s: float
    max_alerts: float


THROTTLE_RULES: dict[str, ThrottleRule] = {
    "performance": ThrottleRule(window_s=300, max_alerts=5),
    "error": ThrottleRule(window_s=60, max_alerts=10),
    "memory": ThrottleRule(window_s=300, max_alerts=3),
    "security": ThrottleRule(window_s=0, max_alerts=math.inf),
    "system": ThrottleRule(window_s=600, max_alerts=5),
}
DEFAULT_RULE = ThrottleRule(window_s=300, max_alerts=5)


def rule_for(alert_type: str) -> ThrottleRule:
    return THROTTLE_RULES.get(alert_type, DEFAULT_RULE)


def bucket_for(alert_type: str) -> str:
    # Unconfigured types share one budget.
    return alert_type if alert_type in THROTTLE_RULES else "default"


class AlertThrottle:
    def __init__(self) -> None:
        self._sent: dict[str, deque[float]] = {}

    def _recent(self, bucket: str, now: float) -> deque[float]:
        sent = self._sent.get(bucket)
        if sent is None:
            return deque()
        window = rule_for(bucket).window_s
        while sent and now - sent[0] >= window:
            sent.popleft()
        if not sent:
            del self._sent[bucket]
        return sent

    def should_send(self, alert_type: str, severity: str, *, now: float | None = None) -> bool:
        rule = rule_for(alert_type)
        if severity == "critical" or math.isinf(rule.max_alerts):
            return True
        current = time.monotonic() if now is None else now
        return len(self._recent(bucket_for(alert_type), current)) < rule.max_alerts

    def record(self, alert_type: str, *, now: float | None = None) -> None:
        if math.isinf(rule_for(alert_type).max_alerts):
            return None
        current = time.monotonic() if now is None else now
        bucket = bucket_for(alert_type)
        self._recent(bucket, current)
        self._sent.setdefault(bucket, deque()).append(current)

    def tracked_buckets(self, *, now: float | None = None) -> list[str]:
        """
        Buckets that still hold sends inside their window.
        """
        current = time.monotonic() if now is None else now
        for bucket in list(self._sent):
            self._recent(bucket, current)
        return sorted(self._sent)

    def reset(self) -> None:
        self._sent.clear()


throttle = AlertThrottle()
