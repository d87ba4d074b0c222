"""
Transactional email over the SendGrid v3 HTTP API.

Used endpoint:
- POST /v3/mail/send  -> 202 Accepted (empty body)

When `EMAIL_TEST_MODE` is on, or no `SENDGRID_API_KEY` is configured, messages
are logged instead of sent so local development never needs credentials.

Message bodies are Jinja2 templates under `core/templates/email/`; `.html`
templates are autoescaped, so lead and alert fields are inserted as given.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from .settings import env_bool, env_list, env_str, public_base_url

logger = logging.getLogger(__name__)

SENDGRID_BASE_URL = "https://api.sendgrid.com"
DEFAULT_FROM_EMAIL = "info@zencap.co"
DEFAULT_FROM_NAME = "Zenith Capital Advisors"


class EmailError(RuntimeError):
    pass


@dataclass(frozen=True)
class EmailMessage:
    to: list[str]
    subject: str
    html: str
    text: str = ""


def sendgrid_api_key() -> str:
    return env_str("SENDGRID_API_KEY")


def from_email() -> str:
    return env_str("SENDGRID_FROM_EMAIL", DEFAULT_FROM_EMAIL)


def from_name() -> str:
    return env_str("SENDGRID_FROM_NAME", DEFAULT_FROM_NAME)


def admin_notification_email() -> str:
    return env_str("ADMIN_NOTIFICATION_EMAIL", from_email())


def alert_recipients() -> list[str]:
    return env_list("ALERT_EMAIL_RECIPIENTS")


def test_mode() -> bool:
    return env_bool("EMAIL_TEST_MODE", False) or not sendgrid_api_key()


def _payload(message: EmailMessage, *, sender_name: str) -> dict[str, Any]:
    content = []
    if message.text:
        content.append({"type": "text/plain", "value": message.text})
    content.append({"type": "text/html", "value": message.html})
    return {
        "personalizations": [{"to": [{"email": addr} for addr in message.to]}],
        "from": {"email": from_email(), "name": sender_name},
        "subject": message.subject,
        "content": content,
    }


async def send_email(
    message: EmailMessage,
    *,
    sender_name: str | None = None,
    timeout_s: float = 15.0,
) -> bool:
    """
    Send one message. Returns False when running in test mode (logged only).
    """
    recipients = [addr.strip() for addr in message.to if addr and addr.strip()]
    if not recipients:
        raise EmailError("Email has no recipients.")
    message = EmailMessage(to=recipients, subject=message.subject, html=message.html, text=message.text)

    if test_mode():
        logger.info("email_test_mode to=%s subject=%s", ",".join(recipients), message.subject)
        return False

    async with httpx.AsyncClient(base_url=SENDGRID_BASE_URL, timeout=timeout_s) as client:
        resp = await client.post(
            "/v3/mail/send",
            headers={"Authorization": f"Bearer {sendgrid_api_key()}"},
            json=_payload(message, sender_name=sender_name or from_name()),
        )

    if resp.status_code not in (200, 202):
        raise EmailError(f"SendGrid send failed: {resp.status_code} {resp.text[:300]}")

    logger.info("email_sent to=%s subject=%s", ",".join(recipients), message.subject)
    return True


_templates = Environment(
    loader=PackageLoader("core", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render(template_name: str, **context: Any) -> str:
    """
    Render `templates/<template_name>`. `.html` templates are autoescaped.
    """
    return _templates.get_template(template_name).render(team_name=from_name(), **context)


def _text(value: Any, default: str = "") -> str:
    return str(value) if value not in (None, "") else default


CONTACT_FIELDS = (
    ("Name", "name"),
    ("Email", "email"),
    ("Company", "company"),
    ("Interest", "interest"),
)


def contact_notification(lead: dict[str, Any]) -> EmailMessage:
    fields = {key: _text(lead.get(key)) for key in ("name", "email", "company", "interest", "message")}
    return EmailMessage(
        to=[admin_notification_email()],
        subject=f"New Contact Form Submission from {fields['name'] or 'website visitor'}",
        html=render("email/contact_notification.html", lead=fields, fields=CONTACT_FIELDS),
    )


def contact_confirmation(lead: dict[str, Any]) -> EmailMessage:
    return EmailMessage(
        to=[_text(lead.get("email"))],
        subject=f"Thank you for contacting {from_name()}",
        html=render("email/contact_confirmation.html", name=_text(lead.get("name"), "there")),
    )


def newsletter_welcome(email: str) -> EmailMessage:
    return EmailMessage(
        to=[email],
        subject=f"Welcome to {from_name()} Newsletter",
        html=render("email/newsletter_welcome.html"),
    )


def purchase_confirmation(*, email: str, customer_name: str, model_title: str, session_id: str) -> EmailMessage:
    context = {
        "customer_name": customer_name,
        "model_title": model_title,
        "session_id": session_id,
        "order_url": f"{public_base_url()}/checkout/success?session_id={session_id}",
    }
    return EmailMessage(
        to=[email],
        subject=f"Purchase Confirmation - {model_title}",
        html=render("email/purchase_confirmation.html", **context),
        text=render("email/purchase_confirmation.txt", **context),
    )


def alert_email(alert: dict[str, Any], recipients: list[str]) -> EmailMessage:
    fields = {key: _text(alert.get(key)) for key in ("id", "type", "severity", "message", "timestamp")}
    attachments = [
        (label, json.dumps(alert[key], indent=2, default=str))
        for label, key in (("Metric Data", "metric"), ("Error Data", "error"))
        if alert.get(key)
    ]
    return EmailMessage(
        to=recipients,
        subject=f"[{fields['severity'].upper()}] {fields['type']}: {fields['message']}",
        html=render("email/alert.html", alert=fields, attachments=attachments),
    )


async def send_email_background(message: EmailMessage, *, purpose: str) -> None:
    """
    BackgroundTasks entrypoint. Email is a side effect of the request, so
    failures are logged and never raised.
    """
    try:
        await send_email(message)
    except Exception:
        logger.exception("email_failed purpose=%s subject=%s", purpose, message.subject)
