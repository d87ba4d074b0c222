"""
Pydantic schemas for monitoring endpoints.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field


class AlertRequest(BaseModel):
    # Required fields are checked in the service so the error is a 400.
    type: str | None = Field(default=None, max_length=50)
    severity: str | None = Field(default=None, max_length=20)
    message: str | None = Field(default=None, max_length=2000)
    metric: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    pattern: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class PerformanceMetric(BaseModel):
    name: str = Field(
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("name", "metric_name", "metricName"),
    )
    component: str | None = Field(default=None, max_length=100)
    duration: float | None = None
    memory_delta: float | None = Field(
        default=None,
        validation_alias=AliasChoices("memory_delta", "memoryDelta"),
    )
    exceeds_threshold: bool = Field(
        default=False,
        validation_alias=AliasChoices("exceeds_threshold", "exceedsThreshold"),
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | int | float | None = None


class ClientErrorLog(BaseModel):
    category: str | None = Field(default=None, max_length=50)
    severity: Literal["low", "medium", "high", "critical"] = "medium"
    message: str = Field(min_length=1, max_length=5000)
    stack_trace: str | None = Field(
        default=None,
        validation_alias=AliasChoices("stack_trace", "stackTrace", "stack"),
    )
    url: str | None = Field(default=None, max_length=2000)
    user_agent: str | None = Field(
        default=None,
        validation_alias=AliasChoices("user_agent", "userAgent"),
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | int | float | None = None


class MetricsBatchRequest(BaseModel):
    metrics: list[PerformanceMetric] = Field(default_factory=list, max_length=500)
    errors: list[ClientErrorLog] = Field(default_factory=list, max_length=500)
