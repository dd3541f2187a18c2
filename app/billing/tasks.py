"""
Celery tasks for billing.

This module provides async tasks for:
- Sending membership payment receipts (queued after commit)
- Replaying webhook events flagged unresolved
- Periodic reconciliation of unresolved events (scheduled via celery-beat)

Usage:
    from billing.tasks import replay_webhook_event_task

    # Replay a single unresolved event
    replay_webhook_event_task.delay(str(webhook_event_id))
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives

from core.exceptions import BaseApplicationError

from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

REPLAY_BATCH_SIZE = 100


# =============================================================================
# Receipt Tasks
# =============================================================================


def format_amount(amount_cents: int, currency: str) -> str:
    """Format an amount in the smallest currency unit, e.g. "25.00 EUR"."""
    return f"{amount_cents / 100:.2f} {currency.upper()}"


@shared_task(
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_membership_receipt(
    recipient_email: str,
    group_id: str,
    amount_cents: int,
    currency: str,
    occurred_at: str,
    event_id: str,
    membership_id: str | None = None,
    invoice_number: str | None = None,
    hosted_invoice_url: str | None = None,
    coupon_code: str | None = None,
    description: str | None = None,
) -> dict:
    """
    Email a payment receipt for a membership charge.

    Args:
        recipient_email: Payer's email address
        group_id: Group the membership belongs to
        amount_cents: Charged amount in smallest currency unit
        currency: ISO 4217 currency code
        occurred_at: ISO timestamp of the payment
        event_id: Gateway event that booked the charge
        membership_id: Membership UUID, when known
        invoice_number / hosted_invoice_url: Invoice details for renewals
        coupon_code: Applied coupon, if any
        description: Purchase description

    Returns:
        Dict with send status
    """
    paid_on = datetime.fromisoformat(occurred_at).date().isoformat()
    lines = [
        "Thank you for your payment.",
        "",
        f"Amount: {format_amount(amount_cents, currency)}",
        f"Date: {paid_on}",
    ]
    if description:
        lines.append(f"Description: {description}")
    if coupon_code:
        lines.append(f"Coupon: {coupon_code}")
    if invoice_number:
        lines.append(f"Invoice: {invoice_number}")
    if hosted_invoice_url:
        lines.append(f"View invoice: {hosted_invoice_url}")
    lines.extend(["", f"Reference: {event_id}"])

    subject = (
        f"Your membership receipt {invoice_number}"
        if invoice_number
        else "Your membership receipt"
    )
    email = EmailMultiAlternatives(
        subject=subject,
        body="\n".join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[recipient_email],
    )
    email.send(fail_silently=False)

    logger.info(
        "Membership receipt sent",
        extra={
            "event_id": event_id,
            "group_id": group_id,
            "membership_id": membership_id,
        },
    )
    return {"status": "sent", "event_id": event_id}


# =============================================================================
# Reconciliation Tasks
# =============================================================================


@shared_task
def replay_webhook_event_task(webhook_event_id: str) -> dict:
    """
    Replay one unresolved webhook event.

    Args:
        webhook_event_id: UUID of the WebhookEvent to replay

    Returns:
        Dict with the replay outcome
    """
    # Import here to avoid circular imports
    from billing.webhooks.processor import replay_webhook_event

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        result = replay_webhook_event(webhook_event_id)
    except BaseApplicationError as e:
        logger.error(
            f"Webhook replay failed: {e.message}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "error_code": e.error_code,
            },
        )
        return {
            "status": "error",
            "webhook_event_id": str(webhook_event_id),
            "error_code": e.error_code,
        }

    return {
        "status": str(result.outcome),
        "webhook_event_id": str(webhook_event_id),
    }


@shared_task
def replay_unresolved_webhook_events() -> dict:
    """
    Periodic task to replay unresolved webhook events.

    Finds unresolved events that haven't exceeded the replay limit and
    re-applies them, oldest first. An invoice that arrived before its
    checkout resolves on the first replay after the checkout lands.

    This task is scheduled via celery-beat (see migration 0002).

    Returns:
        Dict with counts of replayed and resolved events
    """
    unresolved_ids = list(
        WebhookEvent.objects.filter(
            status=WebhookEventStatus.UNRESOLVED,
            retry_count__lt=settings.BILLING_MAX_REPLAY_ATTEMPTS,
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:REPLAY_BATCH_SIZE]
    )

    replayed_count = 0
    resolved_count = 0
    for webhook_event_id in unresolved_ids:
        outcome = replay_webhook_event_task(str(webhook_event_id))
        replayed_count += 1
        if outcome["status"] not in (WebhookEventStatus.UNRESOLVED, "error"):
            resolved_count += 1

    logger.info(
        f"Replayed {replayed_count} unresolved webhooks, {resolved_count} resolved",
        extra={"replayed_count": replayed_count, "resolved_count": resolved_count},
    )

    return {"replayed_count": replayed_count, "resolved_count": resolved_count}
