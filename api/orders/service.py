"""
Order business logic.

Scope:
- turning a paid checkout session into an order (shared by the webhook and
  the order lookup fallback)
- order lookup by checkout session id
- customer order history
- gated file downloads (completed, unexpired, under the download limit)
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from fastapi import HTTPException, status
from fastapi.responses import FileResponse

from audit import service as audit_service
from core import stripe
from core.settings import download_window_days, downloads_dir, max_downloads

from . import repository

logger = logging.getLogger(__name__)

PAID_STATUSES = ("paid", "no_payment_required")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def download_expiry(now: datetime | None = None) -> datetime:
    return (now or _utc_now()) + timedelta(days=download_window_days())


def to_order(row: dict[str, Any]) -> dict[str, Any]:
    order = dict(row)
    if isinstance(order.get("amount"), Decimal):
        order["amount"] = float(order["amount"])
    # asyncpg returns jsonb as text unless a codec is registered.
    if isinstance(order.get("metadata"), str):
        try:
            order["metadata"] = json.loads(order["metadata"])
        except ValueError:
            order["metadata"] = {}
    return order


def order_fields_from_session(session: dict[str, Any]) -> dict[str, Any]:
    """
    Map a checkout session object onto order columns.
    """
    metadata = session.get("metadata") or {}
    details = session.get("customer_details") or {}

    raw_model_id = str(metadata.get("modelId") or "").strip()
    amount_total = int(session.get("amount_total") or 0)

    return {
        "session_id": str(session["id"]),
        "payment_intent_id": session.get("payment_intent") or None,
        "stripe_customer_id": session.get("customer") or None,
        "customer_email": str(details.get("email") or session.get("customer_email") or "").strip().lower(),
        "customer_name": str(details.get("name") or metadata.get("customerName") or "").strip(),
        "model_id": int(raw_model_id) if raw_model_id.isdigit() else None,
        "model_slug": str(metadata.get("modelSlug") or ""),
        "model_title": str(metadata.get("modelTitle") or "Financial Model"),
        "amount": Decimal(amount_total) / Decimal(100),
        "currency": str(session.get("currency") or "usd").lower(),
        "metadata": dict(metadata),
    }


async def record_paid_session(session: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """
    Create the order for a paid session. Returns (order, created).
    """
    fields = order_fields_from_session(session)
    if not fields["customer_email"]:
        raise ValueError(f"Checkout session {fields['session_id']} has no customer email.")
    if fields["amount"] <= 0:
        raise ValueError(f"Checkout session {fields['session_id']} has no positive amount.")

    order, created = await repository.record_paid_order(
        **fields,
        download_expires_at=download_expiry(),
        max_downloads=max_downloads(),
    )
    if created:
        logger.info(
            "order_created order_id=%s session_id=%s amount=%s",
            order["id"],
            fields["session_id"],
            fields["amount"],
        )
    return to_order(order), created


async def get_order(session_id: str) -> dict[str, Any]:
    session_id = (session_id or "").strip()
    if not session_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Session ID is required.")

    row = await repository.get_order_by_session_id(session_id)
    if row is not None:
        order = to_order(row)
    else:
        # The webhook may not have arrived yet; ask the provider directly.
        try:
            session = await stripe.retrieve_checkout_session(session_id)
        except stripe.StripeError as exc:
            logger.warning("order_lookup_provider_failed session_id=%s error=%s", session_id, exc)
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found.") from exc

        if session.get("payment_status") not in PAID_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found or payment incomplete.",
            )
        try:
            order, _ = await record_paid_session(session)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found.") from exc

    if order.get("download_expires_at") is None:
        updated = await repository.set_download_expiry(int(order["id"]), download_expiry())
        if updated is not None:
            order = to_order(updated)

    return order


async def list_orders_for_email(email: str) -> dict[str, Any]:
    email = (email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required.")
    rows = await repository.list_orders_for_email(email)
    return {"orders": [to_order(row) for row in rows], "count": len(rows)}


def _safe_filename(title: str, suffix: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", title or "model") + suffix


def resolve_download_path(order: dict[str, Any]) -> Path | None:
    """
    Files live flat in DOWNLOADS_DIR; only the basename of the stored url is used.
    """
    url = str(order.get("excel_url") or order.get("file_url") or "").strip()
    if not url:
        return None
    name = Path(url.split("?", 1)[0]).name
    if not name:
        return None
    return Path(downloads_dir()) / name


async def download(
    order_id: int,
    *,
    email: str,
    ip_address: str | None,
    user_agent: str | None,
) -> FileResponse:
    email = (email or "").strip().lower()
    audit_fields = {
        "ip_address": ip_address,
        "user_agent": user_agent,
        "resource_type": "order",
        "resource_id": str(order_id),
        "action": "download",
    }

    order = await repository.get_download_order(order_id, email) if email else None
    if order is None:
        await audit_service.record(
            "FILE_DOWNLOAD",
            result="blocked",
            severity="warning",
            metadata={"reason": "order_not_found", "email": email},
            **audit_fields,
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found.")

    path = resolve_download_path(order)
    if path is None or not path.is_file():
        logger.error("download_file_missing order_id=%s path=%s", order_id, path)
        await audit_service.record(
            "FILE_DOWNLOAD",
            result="error",
            severity="error",
            metadata={"reason": "file_missing", "email": email},
            **audit_fields,
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found.")

    claimed = await repository.claim_download(order_id)
    if claimed is None:
        await audit_service.record(
            "FILE_DOWNLOAD",
            result="blocked",
            severity="warning",
            metadata={"reason": "download_limit_exceeded_or_expired", "email": email},
            **audit_fields,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This download has expired or reached the maximum download limit.",
        )

    await audit_service.record(
        "FILE_DOWNLOAD",
        metadata={
            "email": email,
            "download_count": int(claimed["download_count"]),
            "max_downloads": int(claimed["max_downloads"]),
        },
        **audit_fields,
    )
    media_type = XLSX_MEDIA_TYPE if path.suffix in (".xlsx", ".xlsm") else "application/octet-stream"
    return FileResponse(
        path,
        media_type=media_type,
        filename=_safe_filename(str(order.get("model_title") or ""), path.suffix),
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
