"""
Pydantic schemas for checkout endpoints.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field


class CheckoutSessionRequest(BaseModel):
    """
    Identifies the product by id or slug. Any price sent by the client is
    ignored; the catalog price is charged.
    """

    model_id: int | None = Field(default=None, ge=1, validation_alias=AliasChoices("model_id", "modelId"))
    model_slug: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("model_slug", "modelSlug"),
    )
    customer_email: str | None = Field(
        default=None,
        max_length=320,
        validation_alias=AliasChoices("customer_email", "customerEmail"),
    )
    customer_name: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("customer_name", "customerName"),
    )
