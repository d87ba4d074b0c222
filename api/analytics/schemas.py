"""
Pydantic schemas for analytics endpoints.

The browser tracker sends camelCase keys; snake_case is accepted as well.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class TrackedEventRequest(BaseModel):
    event_type: str | None = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("event_type", "eventType"),
    )
    event_data: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("event_data", "eventData"),
    )
    timestamp: str | int | float | None = None
