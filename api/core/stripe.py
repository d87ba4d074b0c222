"""
Stripe REST client helpers.

Used endpoints:
- POST /v1/checkout/sessions          -> {"id": "cs_...", "url": "https://checkout.stripe.com/..."}
- GET  /v1/checkout/sessions/{id}     -> checkout session object
- POST /v1/billing_portal/sessions    -> {"url": "..."}

Stripe expects form-encoded bodies with bracketed keys for nested values
(`line_items[0][price_data][currency]=usd`); see `flatten_params`.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any

import httpx

from .settings import stripe_api_base, stripe_secret_key

API_VERSION = "2023-10-16"
DEFAULT_TOLERANCE_S = 300


# Stripe failures are explicit and separable from other runtime errors.
class StripeError(RuntimeError):
    pass


class StripeSignatureError(StripeError):
    pass


def _encode_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_params(params: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """
    Flatten nested dicts/lists into Stripe's bracketed form keys.
    None values are dropped.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        full_key = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(flatten_params(value, full_key))
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                item_key = f"{full_key}[{i}]"
                if isinstance(item, dict):
                    pairs.extend(flatten_params(item, item_key))
                elif item is not None:
                    pairs.append((item_key, _encode_scalar(item)))
        else:
            pairs.append((full_key, _encode_scalar(value)))
    return pairs


def _secret_key() -> str:
    key = stripe_secret_key()
    if not key:
        raise StripeError("STRIPE_SECRET_KEY is not set.")
    return key


def _client(timeout_s: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=stripe_api_base().rstrip("/"),
        auth=(_secret_key(), ""),
        headers={"Stripe-Version": API_VERSION},
        timeout=timeout_s,
    )


def _parse_response(resp: httpx.Response, what: str) -> dict[str, Any]:
    if resp.status_code != 200:
        message = resp.text[:300]
        try:
            message = str(resp.json().get("error", {}).get("message") or message)
        except ValueError:
            pass
        raise StripeError(f"Stripe {what} failed: {resp.status_code} {message}")

    data: dict[str, Any] = resp.json()
    return data


async def create_checkout_session(params: dict[str, Any], *, timeout_s: float = 30.0) -> dict[str, Any]:
    """
    Create a hosted checkout session.
    """
    async with _client(timeout_s) as client:
        resp = await client.post("/v1/checkout/sessions", data=flatten_params(params))
    session = _parse_response(resp, "checkout session creation")
    if not session.get("id") or not session.get("url"):
        raise StripeError("Stripe returned a checkout session without id/url.")
    return session


async def retrieve_checkout_session(session_id: str, *, timeout_s: float = 30.0) -> dict[str, Any]:
    session_id = (session_id or "").strip()
    if not session_id:
        raise StripeError("Checkout session id is empty.")

    async with _client(timeout_s) as client:
        resp = await client.get(f"/v1/checkout/sessions/{session_id}")
    return _parse_response(resp, "checkout session retrieval")


async def create_billing_portal_session(
    *,
    customer: str,
    return_url: str,
    timeout_s: float = 30.0,
) -> dict[str, Any]:
    async with _client(timeout_s) as client:
        resp = await client.post(
            "/v1/billing_portal/sessions",
            data=flatten_params({"customer": customer, "return_url": return_url}),
        )
    return _parse_response(resp, "billing portal session creation")


def _parse_signature_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in (header or "").split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as exc:
                raise StripeSignatureError("Invalid timestamp in signature header.") from exc
        elif key == "v1":
            signatures.append(value)

    if timestamp is None:
        raise StripeSignatureError("Signature header has no timestamp.")
    if not signatures:
        raise StripeSignatureError("Signature header has no v1 signature.")
    return timestamp, signatures


def compute_signature(payload: bytes, *, timestamp: int, secret: str) -> str:
    signed_payload = str(timestamp).encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def construct_event(
    payload: bytes,
    signature_header: str,
    secret: str,
    *,
    tolerance_s: int = DEFAULT_TOLERANCE_S,
    now: float | None = None,
) -> dict[str, Any]:
    """
    Verify a webhook signature and return the decoded event.
    """
    if not secret:
        raise StripeSignatureError("Webhook secret is not configured.")

    timestamp, signatures = _parse_signature_header(signature_header)
    expected = compute_signature(payload, timestamp=timestamp, secret=secret)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise StripeSignatureError("No signature matches the expected signature for payload.")

    current = time.time() if now is None else now
    if tolerance_s > 0 and abs(current - timestamp) > tolerance_s:
        raise StripeSignatureError("Timestamp outside the tolerance zone.")

    try:
        event = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise StripeSignatureError("Webhook payload is not valid JSON.") from exc

    if not isinstance(event, dict) or not event.get("type"):
        raise StripeSignatureError("Webhook payload is not an event object.")
    return event
