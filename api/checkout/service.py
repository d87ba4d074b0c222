"""
Checkout business logic.

Scope:
- hosted checkout session creation priced from the catalog
- billing portal session for a known customer
- webhook verification and dispatch (order fulfilment, refunds)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from fastapi import BackgroundTasks, HTTPException, status

from audit import service as audit_service
from catalog import repository as catalog_repository
from core import email, stripe
from core.settings import public_base_url, stripe_webhook_secret
from leads.service import is_valid_email
from orders import repository as orders_repository
from orders import service as orders_service

from . import schemas

logger = logging.getLogger(__name__)


async def _resolve_model(payload: schemas.CheckoutSessionRequest) -> dict[str, Any]:
    if payload.model_id is not None:
        model = await catalog_repository.get_model_by_id(payload.model_id)
    elif payload.model_slug:
        model = await catalog_repository.get_model_by_slug(payload.model_slug.strip())
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="model_id or model_slug is required.")

    if model is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model not found.")
    if model.get("price") is None or float(model["price"]) <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Model is not available for purchase.")
    return model


def build_session_params(
    model: dict[str, Any],
    *,
    customer_email: str | None,
    customer_name: str | None,
) -> dict[str, Any]:
    base_url = public_base_url()
    title = str(model["title"])
    unit_amount = int(round(float(model["price"]) * 100))
    image = model.get("thumbnail_url") or f"{base_url}/images/models/model-thumbnail.jpg"
    if image.startswith("/"):
        image = f"{base_url}{image}"

    return {
        "mode": "payment",
        "line_items": [
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": title,
                        "description": f"Professional Financial Model - {title}",
                        "images": [image],
                    },
                    "unit_amount": unit_amount,
                },
                "quantity": 1,
            }
        ],
        "allow_promotion_codes": True,
        "automatic_tax": {"enabled": False},
        "customer_email": customer_email or None,
        "metadata": {
            "modelId": str(model["id"]),
            "modelSlug": str(model.get("slug") or ""),
            "modelTitle": title,
            "customerName": customer_name or "",
        },
        # {CHECKOUT_SESSION_ID} is substituted by the provider.
        "success_url": (
            f"{base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}&modelTitle={quote(title)}"
        ),
        "cancel_url": (
            f"{base_url}/checkout/cancel?modelTitle={quote(title)}&modelSlug={quote(str(model.get('slug') or ''))}"
        ),
    }


async def create_checkout_session(payload: schemas.CheckoutSessionRequest) -> dict[str, Any]:
    customer_email = (payload.customer_email or "").strip().lower() or None
    if customer_email is not None and not is_valid_email(customer_email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format.")

    model = await _resolve_model(payload)
    params = build_session_params(
        model,
        customer_email=customer_email,
        customer_name=(payload.customer_name or "").strip() or None,
    )

    try:
        session = await stripe.create_checkout_session(params)
    except stripe.StripeError as exc:
        logger.error("checkout_session_failed model_id=%s error=%s", model["id"], exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Error creating checkout session.") from exc

    logger.info("checkout_session_created session_id=%s model_id=%s", session["id"], model["id"])
    return {"url": session["url"], "session_id": session["id"]}


async def create_portal_session(email_addr: str) -> dict[str, Any]:
    customer = await orders_repository.get_customer_by_email(email_addr)
    if customer is None or not customer.get("stripe_customer_id"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found.")

    try:
        portal = await stripe.create_billing_portal_session(
            customer=str(customer["stripe_customer_id"]),
            return_url=f"{public_base_url()}/account/purchases",
        )
    except stripe.StripeError as exc:
        logger.error("portal_session_failed customer_id=%s error=%s", customer["id"], exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Portal access failed.") from exc
    return {"url": portal["url"]}


# -- webhook -------------------------------------------------------------


async def _on_checkout_completed(session: dict[str, Any], background_tasks: BackgroundTasks) -> None:
    if session.get("payment_status") not in orders_service.PAID_STATUSES:
        # Delayed payment methods complete later with a separate event.
        logger.info("checkout_completed_unpaid session_id=%s", session.get("id"))
        return

    order, created = await orders_service.record_paid_session(session)
    if not created:
        logger.info("checkout_completed_replayed session_id=%s order_id=%s", session.get("id"), order["id"])
        return

    await audit_service.record(
        "PAYMENT_COMPLETED",
        resource_type="order",
        resource_id=str(order["id"]),
        action="checkout",
        metadata={
            "email": order["customer_email"],
            "stripe_session_id": order["stripe_session_id"],
            "model_slug": order["model_slug"],
            "amount": order["amount"],
            "currency": order["currency"],
        },
    )
    background_tasks.add_task(
        email.send_email_background,
        email.purchase_confirmation(
            email=order["customer_email"],
            customer_name=order["customer_name"] or "Valued Customer",
            model_title=order["model_title"],
            session_id=order["stripe_session_id"],
        ),
        purpose="purchase_confirmation",
    )


async def _on_charge_refunded(charge: dict[str, Any]) -> None:
    payment_intent = charge.get("payment_intent")
    if not payment_intent:
        logger.warning("charge_refunded_without_payment_intent charge_id=%s", charge.get("id"))
        return

    refunded = await orders_repository.mark_refunded(payment_intent_id=str(payment_intent))
    for order in refunded:
        await audit_service.record(
            "PAYMENT_REFUNDED",
            resource_type="order",
            resource_id=str(order["id"]),
            action="refund",
            metadata={"payment_intent": payment_intent, "charge_id": charge.get("id")},
        )
    logger.info("charge_refunded payment_intent=%s orders=%s", payment_intent, len(refunded))


async def handle_webhook(
    payload: bytes,
    signature_header: str | None,
    *,
    background_tasks: BackgroundTasks,
) -> dict[str, Any]:
    try:
        event = stripe.construct_event(payload, signature_header or "", stripe_webhook_secret())
    except stripe.StripeSignatureError as exc:
        logger.warning("webhook_signature_invalid error=%s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {exc}") from exc

    event_type = str(event["type"])
    obj = (event.get("data") or {}).get("object") or {}
    logger.info("webhook_received event_id=%s type=%s", event.get("id"), event_type)

    # Processing errors propagate (500) so the provider retries the delivery.
    if event_type == "checkout.session.completed":
        await _on_checkout_completed(obj, background_tasks)
    elif event_type == "charge.refunded":
        await _on_charge_refunded(obj)
    elif event_type == "payment_intent.succeeded":
        logger.info("payment_intent_succeeded payment_intent=%s", obj.get("id"))
    else:
        logger.info("webhook_unhandled type=%s", event_type)

    return {"received": True}
