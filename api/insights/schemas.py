"""
Pydantic schemas for insight endpoints.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

InsightStatus = Literal["draft", "published", "archived"]


class InsightCreateRequest(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    title: str = Field(..., min_length=1, max_length=255)
    summary: str = ""
    content: str = ""
    author: str = Field(default="", max_length=100)
    cover_image_url: str = ""
    status: InsightStatus = "draft"
    tags: str = ""


class InsightUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    summary: str | None = None
    content: str | None = None
    author: str | None = Field(default=None, max_length=100)
    cover_image_url: str | None = None
    status: InsightStatus | None = None
    tags: str | None = None
