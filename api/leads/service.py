"""
Lead and newsletter business logic.

Scope:
- contact form: validation, lead upsert, admin notification + confirmation email
- newsletter subscribe / unsubscribe with welcome email
- every form post is logged to `form_submissions` (success or error)
- admin lead pipeline (status changes)
"""

from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import BackgroundTasks, HTTPException, status

from audit import service as audit_service
from core import email

from . import repository, schemas

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


async def _log_submission(
    form_type: str,
    form_data: dict[str, Any],
    *,
    ip_address: str | None,
    user_agent: str | None,
    status_value: str = "success",
    error_message: str | None = None,
) -> None:
    try:
        await repository.insert_form_submission(
            form_type=form_type,
            form_data=form_data,
            ip_address=ip_address,
            user_agent=user_agent,
            status=status_value,
            error_message=error_message,
        )
    except Exception:
        logger.exception("form_submission_log_failed form_type=%s", form_type)


async def submit_contact(
    payload: schemas.ContactRequest,
    *,
    background_tasks: BackgroundTasks,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    name = (payload.name or "").strip()
    email_addr = normalize_email(payload.email)
    message = (payload.message or "").strip()
    if not name or not email_addr or not message:
        raise HTTPException(status_code=400, detail="Name, email, and message are required.")
    if not is_valid_email(email_addr):
        raise HTTPException(status_code=400, detail="Invalid email format.")

    lead_data = {
        "name": name,
        "email": email_addr,
        "company": (payload.company or "").strip() or None,
        "interest": (payload.interest or "").strip() or "general",
        "message": message,
    }

    try:
        lead = await repository.upsert_lead(
            **lead_data,
            source=payload.source,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except Exception as exc:
        logger.exception("contact_submit_failed")
        await _log_submission(
            "contact",
            payload.model_dump(),
            ip_address=ip_address,
            user_agent=user_agent,
            status_value="error",
            error_message=str(exc),
        )
        raise HTTPException(status_code=500, detail="Internal server error.") from exc

    # Emails go out after the response; failures are logged only.
    background_tasks.add_task(
        email.send_email_background,
        email.contact_notification(lead_data),
        purpose="contact_notification",
    )
    background_tasks.add_task(
        email.send_email_background,
        email.contact_confirmation(lead_data),
        purpose="contact_confirmation",
    )

    await _log_submission("contact", lead_data, ip_address=ip_address, user_agent=user_agent)
    logger.info("lead_received lead_id=%s interest=%s", lead["id"], lead_data["interest"])
    return {"success": True, "message": "Message sent successfully", "lead_id": int(lead["id"])}


async def subscribe(
    payload: schemas.NewsletterRequest,
    *,
    background_tasks: BackgroundTasks,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    email_addr = normalize_email(payload.email)
    if not email_addr:
        raise HTTPException(status_code=400, detail="Email is required.")
    if not is_valid_email(email_addr):
        raise HTTPException(status_code=400, detail="Invalid email format.")

    form_data = {"email": email_addr}
    try:
        subscriber = await repository.upsert_subscriber(
            email=email_addr,
            source=(payload.source or "").strip() or "website",
            ip_address=ip_address,
            user_agent=user_agent,
        )
    except Exception as exc:
        logger.exception("newsletter_subscribe_failed")
        await _log_submission(
            "newsletter",
            form_data,
            ip_address=ip_address,
            user_agent=user_agent,
            status_value="error",
            error_message=str(exc),
        )
        raise HTTPException(status_code=500, detail="Internal server error.") from exc

    background_tasks.add_task(
        email.send_email_background,
        email.newsletter_welcome(email_addr),
        purpose="newsletter_welcome",
    )

    await _log_submission("newsletter", form_data, ip_address=ip_address, user_agent=user_agent)
    await audit_service.record(
        "NEWSLETTER_SUBSCRIBE",
        ip_address=ip_address,
        user_agent=user_agent,
        resource_type="newsletter",
        action="subscribe",
        metadata={"email": email_addr},
    )
    return {
        "success": True,
        "message": "Successfully subscribed to newsletter",
        "subscriber_id": int(subscriber["id"]),
    }


async def unsubscribe(payload: schemas.NewsletterRequest) -> dict[str, Any]:
    email_addr = normalize_email(payload.email)
    if not is_valid_email(email_addr):
        raise HTTPException(status_code=400, detail="Invalid email format.")

    # Same answer whether or not the address was subscribed.
    changed = await repository.unsubscribe(email_addr)
    logger.info("newsletter_unsubscribe changed=%s", changed)
    return {"success": True, "message": "You have been unsubscribed."}


async def list_leads(*, status_filter: str | None, limit: int, offset: int) -> dict[str, Any]:
    rows = await repository.list_leads(status=status_filter, limit=limit, offset=offset)
    return {"leads": rows, "count": len(rows), "limit": limit, "offset": offset}


async def update_lead(lead_id: int, payload: schemas.UpdateLeadRequest, *, updated_by: int) -> dict[str, Any]:
    row = await repository.update_lead_status(lead_id, payload.status)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found.")
    await audit_service.record(
        "LEAD_UPDATED",
        user_id=updated_by,
        resource_type="lead",
        resource_id=str(lead_id),
        action="update_status",
        metadata={"status": payload.status},
    )
    return row
