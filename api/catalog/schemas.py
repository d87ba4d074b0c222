"""
Pydantic schemas for catalog endpoints.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ModelStatus = Literal["active", "draft", "archived"]


class ModelCreateRequest(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    thumbnail_url: str | None = None
    file_url: str | None = None
    excel_url: str | None = None
    price: float | None = Field(default=None, ge=0)
    status: ModelStatus = "active"
    tags: str | None = None


class ModelUpdateRequest(BaseModel):
    """
    Partial update; only fields present in the request body are written.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    thumbnail_url: str | None = None
    file_url: str | None = None
    excel_url: str | None = None
    price: float | None = Field(default=None, ge=0)
    status: ModelStatus | None = None
    tags: str | None = None
