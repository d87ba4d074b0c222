"""
Pydantic schemas for lead and newsletter endpoints.

Required fields are checked in the service layer so missing values produce
a 400 with a readable message instead of a validation error body.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

LeadStatus = Literal["new", "contacted", "qualified", "converted", "closed"]


class ContactRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    company: str | None = Field(default=None, max_length=255)
    interest: str | None = Field(default=None, max_length=100)
    message: str | None = Field(default=None, max_length=10000)
    source: str | None = Field(default=None, max_length=100)


class NewsletterRequest(BaseModel):
    email: str | None = Field(default=None, max_length=320)
    source: str | None = Field(default=None, max_length=100)


class UpdateLeadRequest(BaseModel):
    status: LeadStatus
