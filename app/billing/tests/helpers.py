"""
Stripe webhook payload builders and signing helpers for billing tests.

Builders return plain dicts shaped like the Stripe event JSON the
webhook endpoint receives. Only the fields the billing core reads are
filled in; every builder takes keyword overrides.

Usage:
    from billing.tests.helpers import checkout_session_completed, sign_payload

    payload = checkout_session_completed(group_id=group_id, user_id=user_id)
    body = json.dumps(payload)
    header = sign_payload(body, "whsec_test")
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from typing import Any

WEBHOOK_SECRET = "whsec_test_secret"


# =============================================================================
# Signing
# =============================================================================


def sign_payload(body: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header (t=...,v1=...) for a raw body."""
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{body}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


class FakeGateway:
    """
    Gateway that trusts any non-empty signature.

    Selected with the BILLING_WEBHOOK_GATEWAY setting in view tests that
    are not about signature verification.
    """

    def verify_event(self, payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        return json.loads(payload)


# =============================================================================
# Event Envelope
# =============================================================================


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def stripe_event(
    event_type: str,
    obj: dict[str, Any],
    event_id: str | None = None,
    created: int | None = None,
) -> dict[str, Any]:
    """Wrap a Stripe object in an event envelope."""
    return {
        "id": event_id or new_id("evt"),
        "object": "event",
        "type": event_type,
        "created": created if created is not None else int(time.time()),
        "data": {"object": obj},
    }


# =============================================================================
# Checkout
# =============================================================================


def checkout_session_completed(
    *,
    group_id: uuid.UUID | str | None,
    user_id: uuid.UUID | str | None,
    amount_total: int | None = 2500,
    currency: str = "eur",
    mode: str = "payment",
    payment_status: str = "paid",
    session_id: str | None = None,
    payment_intent: str | None = None,
    customer: str | dict | None = "cus_test_checkout",
    subscription: str | None = None,
    email: str | None = "member@example.com",
    metadata: dict[str, Any] | None = None,
    promotion_codes: tuple[str, ...] = (),
    event_id: str | None = None,
    created: int | None = None,
) -> dict[str, Any]:
    """checkout.session.completed for a group membership purchase."""
    session_metadata: dict[str, Any] = {}
    if group_id is not None:
        session_metadata["groupId"] = str(group_id)
    if user_id is not None:
        session_metadata["userId"] = str(user_id)
    session_metadata.update(metadata or {})

    obj = {
        "id": session_id or new_id("cs"),
        "object": "checkout.session",
        "mode": mode,
        "payment_status": payment_status,
        "amount_total": amount_total,
        "currency": currency,
        "customer": customer,
        "subscription": subscription,
        "payment_intent": payment_intent or (new_id("pi") if mode == "payment" else None),
        "customer_details": {"email": email},
        "metadata": session_metadata,
        "total_details": {
            "breakdown": {
                "discounts": [
                    {"promotion_code": code, "discount": {"id": new_id("di")}}
                    for code in promotion_codes
                ],
            },
        },
    }
    return stripe_event("checkout.session.completed", obj, event_id, created)


# =============================================================================
# Invoices
# =============================================================================


def invoice_payment_succeeded(
    *,
    subscription: str | None,
    amount_paid: int | None = 2500,
    currency: str = "eur",
    customer: str | None = "cus_test_invoice",
    charge: str | None = None,
    payment_intent: str | None = None,
    metadata: dict[str, Any] | None = None,
    promotion_code: str | None = None,
    paid_at: int | None = None,
    period_end: int | None = None,
    number: str | None = "INV-0001",
    email: str | None = "member@example.com",
    event_id: str | None = None,
    created: int | None = None,
    event_type: str = "invoice.payment_succeeded",
) -> dict[str, Any]:
    """invoice.payment_succeeded (or another invoice event via event_type)."""
    obj = {
        "id": new_id("in"),
        "object": "invoice",
        "subscription": subscription,
        "customer": customer,
        "customer_email": email,
        "charge": charge if charge is not None else new_id("ch"),
        "payment_intent": payment_intent,
        "amount_paid": amount_paid,
        "total": amount_paid,
        "currency": currency,
        "number": number,
        "hosted_invoice_url": "https://invoice.stripe.com/i/test",
        "metadata": metadata or {},
        "status_transitions": {"paid_at": paid_at},
        "discount": {"promotion_code": promotion_code} if promotion_code else None,
        "lines": {
            "data": [
                {
                    "description": "Monthly membership",
                    "period": {"start": paid_at, "end": period_end},
                }
            ],
        },
    }
    return stripe_event(event_type, obj, event_id, created)


def invoice_payment_failed(**kwargs: Any) -> dict[str, Any]:
    """invoice.payment_failed; nothing was collected."""
    kwargs.setdefault("amount_paid", 0)
    return invoice_payment_succeeded(event_type="invoice.payment_failed", **kwargs)


# =============================================================================
# Refunds
# =============================================================================


def refund_line(
    *,
    amount: int = 1500,
    status: str = "succeeded",
    refund_id: str | None = None,
    currency: str | None = "eur",
    reason: str | None = "requested_by_customer",
    created: int | None = None,
) -> dict[str, Any]:
    """One entry of charge.refunds.data."""
    return {
        "id": refund_id or new_id("re"),
        "object": "refund",
        "amount": amount,
        "currency": currency,
        "status": status,
        "reason": reason,
        "created": created if created is not None else int(time.time()),
        "balance_transaction": new_id("txn"),
    }


def charge_refunded(
    *,
    charge: str,
    refunds: list[dict[str, Any]],
    payment_intent: str | None = None,
    customer: str | None = None,
    currency: str = "eur",
    metadata: dict[str, Any] | None = None,
    event_id: str | None = None,
    created: int | None = None,
) -> dict[str, Any]:
    """charge.refunded listing the given refunds."""
    obj = {
        "id": charge,
        "object": "charge",
        "payment_intent": payment_intent,
        "customer": customer,
        "currency": currency,
        "amount_refunded": sum(line["amount"] for line in refunds),
        "metadata": metadata or {},
        "refunds": {"object": "list", "data": refunds},
    }
    return stripe_event("charge.refunded", obj, event_id, created)


# =============================================================================
# Disputes
# =============================================================================


def dispute_event(
    event_type: str,
    *,
    dispute_id: str,
    charge: str,
    status: str,
    amount: int = 2500,
    currency: str = "eur",
    payment_intent: str | None = None,
    metadata: dict[str, Any] | None = None,
    closed_at: int | None = None,
    event_id: str | None = None,
    created: int | None = None,
) -> dict[str, Any]:
    """charge.dispute.* event for one dispute."""
    obj = {
        "id": dispute_id,
        "object": "dispute",
        "charge": charge,
        "payment_intent": payment_intent,
        "amount": amount,
        "currency": currency,
        "status": status,
        "reason": "fraudulent",
        "metadata": metadata or {},
        "evidence_details": {"due_by": int(time.time()) + 7 * 24 * 3600},
        "balance_transactions": [{"id": new_id("txn")}],
    }
    if closed_at is not None:
        obj["closed_at"] = closed_at
    return stripe_event(event_type, obj, event_id, created)
