"""
Audit API schemas (request models).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ClientErrorEvent(BaseModel):
    timestamp: str | int | None = None
    level: str | None = Field(default=None, max_length=20)
    message: str | None = Field(default=None, max_length=5000)
    error: dict[str, Any] | None = None
    context: dict[str, Any] | None = None


class ClientErrorBatch(BaseModel):
    events: list[ClientErrorEvent] = Field(..., max_length=100)


class SecurityIncidentRequest(BaseModel):
    incident_type: str = Field(..., min_length=1, max_length=50)
    severity: Literal["low", "medium", "high", "critical"]
    description: str = Field(..., min_length=1, max_length=5000)
    ip_address: str | None = Field(default=None, max_length=45)
    actions_taken: str | None = Field(default=None, max_length=5000)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResolveIncidentRequest(BaseModel):
    actions_taken: str | None = Field(default=None, max_length=5000)
