"""
Webhook event handlers for billing events.

This module provides a handler registry keyed by decoded event class and
the handler implementations. Handlers run inside the processor's
transaction and savepoint; they never open their own transactions and
never call the network.

Every handler returns a ServiceResult:
- success(WebhookEventStatus.APPLIED): state was changed
- success(WebhookEventStatus.SKIPPED): benign no-op (e.g. unpaid checkout)
- failure(error_code="UNRESOLVED_LINKAGE"): the event could not be tied to
  a group or member; the processor rolls back the handler's writes and
  flags the event for reconciliation

Usage:
    from billing.webhooks.handlers import dispatch_event, register_handler

    @register_handler(CheckoutSessionCompleted)
    def handle_checkout(event: CheckoutSessionCompleted) -> ServiceResult:
        ...

    result = dispatch_event(event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.conf import settings
from django.utils import timezone

from core.services import ServiceResult

from billing.exceptions import UnresolvedLinkageError
from billing.models import DisputeRecord
from billing.services import (
    AuditService,
    CouponService,
    MembershipContext,
    MembershipService,
    ReceiptParams,
    RecordEntryParams,
    RevenueService,
    queue_membership_receipt,
    resolve_membership_context,
)
from billing.state_machines import RefundStatus, RevenueEntryType, WebhookEventStatus
from billing.webhooks.events import (
    ChargeRefunded,
    CheckoutSessionCompleted,
    DisputeClosed,
    DisputeCreated,
    DisputeEvent,
    GatewayEvent,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps decoded event classes to handler functions
WEBHOOK_HANDLERS: dict[type[GatewayEvent], Callable[[GatewayEvent], ServiceResult]] = {}


def register_handler(event_class: type[GatewayEvent]) -> Callable:
    """
    Decorator to register a handler for a decoded event class.

    Args:
        event_class: The GatewayEvent subclass the handler accepts

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[GatewayEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_class] = func
        logger.debug(f"Registered webhook handler for {event_class.__name__}")
        return func

    return decorator


def dispatch_event(event: GatewayEvent) -> ServiceResult:
    """
    Dispatch a decoded event to its handler.

    Events without a registered handler are skipped rather than failed.

    Args:
        event: Decoded gateway event

    Returns:
        ServiceResult from the handler
    """
    handler = WEBHOOK_HANDLERS.get(type(event))

    if not handler:
        logger.info(
            f"No handler registered for {type(event).__name__}",
            extra={"event_id": event.event_id, "event_type": event.event_type},
        )
        return ServiceResult.success(WebhookEventStatus.SKIPPED)

    logger.info(
        f"Dispatching {event.event_type} to handler",
        extra={"event_id": event.event_id},
    )

    return handler(event)


def _applied() -> ServiceResult:
    return ServiceResult.success(WebhookEventStatus.APPLIED)


def _skipped(event: GatewayEvent, reason: str) -> ServiceResult:
    logger.info(
        f"{event.event_type}: {reason}",
        extra={"event_id": event.event_id},
    )
    return ServiceResult.success(WebhookEventStatus.SKIPPED)


def _unresolved(event: GatewayEvent, reason: str, **context) -> ServiceResult:
    logger.warning(
        f"{event.event_type}: {reason}",
        extra={"event_id": event.event_id, **context},
    )
    return ServiceResult.failure(
        reason,
        error_code=UnresolvedLinkageError.default_error_code,
    )


def _default_currency() -> str:
    return settings.BILLING_DEFAULT_CURRENCY


# =============================================================================
# Checkout Handlers
# =============================================================================


@register_handler(CheckoutSessionCompleted)
def handle_checkout_session_completed(event: CheckoutSessionCompleted) -> ServiceResult:
    """
    Grant membership for a completed checkout and book one-off payments.

    Subscription-mode checkouts only drive the membership; their money is
    booked by the invoice that follows.
    """
    if not event.is_paid:
        return _skipped(event, "checkout session is unpaid")

    group_id = event.group_id
    user_id = event.user_id
    if group_id is None or user_id is None:
        return _unresolved(
            event,
            "Checkout metadata is missing groupId or userId",
            session_id=event.session_id,
        )

    membership = MembershipService.get_or_create_locked(group_id, user_id)
    MembershipService.apply_checkout(membership, event)

    if event.is_subscription_mode:
        logger.info(
            "Subscription checkout applied, charge is booked by the invoice",
            extra={
                "event_id": event.event_id,
                "membership_id": str(membership.id),
                "subscription_ref": event.subscription_ref,
            },
        )
        return _applied()

    amount = event.amount_total
    if not amount or amount <= 0:
        return _applied()

    coupon = CouponService.resolve_checkout_coupon(event, group_id)
    entry, created = RevenueService.record_entry(
        RecordEntryParams(
            external_event_id=event.event_id,
            source_event_id=event.event_id,
            group_id=group_id,
            membership=membership,
            user_id=user_id,
            entry_type=RevenueEntryType.CHARGE,
            amount_gross_cents=amount,
            currency=event.currency or _default_currency(),
            occurred_at=event.created or timezone.now(),
            coupon=coupon,
            gateway_object_id=event.session_id,
            metadata={
                "source": event.event_type,
                "mode": event.mode,
                "payment_intent": event.payment_intent_ref,
                "customer": event.customer_ref,
                "coupon_code": event.coupon_code,
                "promotion_codes": list(event.promotion_codes),
            },
        )
    )

    if created:
        if coupon is not None:
            CouponService.record_redemption(coupon)
        queue_membership_receipt(
            ReceiptParams(
                recipient_email=event.customer_email,
                group_id=group_id,
                membership_id=membership.id,
                amount_cents=entry.amount_gross_cents,
                currency=entry.currency,
                occurred_at=entry.occurred_at,
                event_id=event.event_id,
                coupon_code=coupon.code if coupon else event.coupon_code,
                description=event.description,
            )
        )

    return _applied()


# =============================================================================
# Invoice Handlers
# =============================================================================


@register_handler(InvoicePaymentSucceeded)
def handle_invoice_payment_succeeded(event: InvoicePaymentSucceeded) -> ServiceResult:
    """
    Keep or return a subscription membership to active and book the charge.

    If the invoice arrives before its checkout but carries groupId and
    userId metadata, the membership is created from it.
    """
    if not event.subscription_ref:
        return _skipped(event, "invoice is not tied to a subscription")

    membership = MembershipService.find_by_subscription_locked(event.subscription_ref)
    if membership is None:
        if event.group_id is None or event.user_id is None:
            return _unresolved(
                event,
                "No membership for subscription and no linkage metadata",
                subscription_ref=event.subscription_ref,
            )
        membership = MembershipService.get_or_create_locked(event.group_id, event.user_id)

    MembershipService.apply_payment_success(membership, event)

    amount = event.charge_amount
    if not amount or amount <= 0:
        return _applied()

    coupon = CouponService.find_by_promotion_code(event.promotion_code, membership.group_id)
    entry, created = RevenueService.record_entry(
        RecordEntryParams(
            external_event_id=event.event_id,
            source_event_id=event.event_id,
            group_id=membership.group_id,
            membership=membership,
            user_id=membership.user_id,
            entry_type=RevenueEntryType.CHARGE,
            amount_gross_cents=amount,
            currency=event.currency or _default_currency(),
            occurred_at=event.paid_at or event.created or timezone.now(),
            coupon=coupon,
            gateway_object_id=event.invoice_id,
            gateway_charge_ref=event.charge_ref,
            metadata={
                "source": event.event_type,
                "subscription": event.subscription_ref,
                "payment_intent": event.payment_intent_ref,
                "invoice_number": event.invoice_number,
                "promotion_code": event.promotion_code,
            },
        )
    )

    if created:
        if coupon is not None:
            CouponService.record_redemption(coupon)
        queue_membership_receipt(
            ReceiptParams(
                recipient_email=event.customer_email,
                group_id=membership.group_id,
                membership_id=membership.id,
                amount_cents=entry.amount_gross_cents,
                currency=entry.currency,
                occurred_at=entry.occurred_at,
                event_id=event.event_id,
                invoice_number=event.invoice_number,
                hosted_invoice_url=event.hosted_invoice_url,
                coupon_code=coupon.code if coupon else None,
                description=event.description,
            )
        )

    return _applied()


@register_handler(InvoicePaymentFailed)
def handle_invoice_payment_failed(event: InvoicePaymentFailed) -> ServiceResult:
    """Move the subscription's membership to past due."""
    if not event.subscription_ref:
        return _skipped(event, "invoice is not tied to a subscription")

    membership = MembershipService.find_by_subscription_locked(event.subscription_ref)
    if membership is None:
        return _unresolved(
            event,
            "No membership for subscription",
            subscription_ref=event.subscription_ref,
        )

    MembershipService.apply_payment_failure(membership, event)
    return _applied()


# =============================================================================
# Refund Handlers
# =============================================================================


@register_handler(ChargeRefunded)
def handle_charge_refunded(event: ChargeRefunded) -> ServiceResult:
    """
    Record every refund listed on the charge.

    Each refund ID gets one RefundRecord, updated in place on later
    deliveries, and one refund ledger entry once it has succeeded.
    """
    context = resolve_membership_context(
        charge_ref=event.charge_ref,
        payment_intent_ref=event.payment_intent_ref,
        customer_ref=event.customer_ref,
        metadata=event.metadata,
    )
    if not context.is_resolved:
        return _unresolved(
            event,
            "Refunded charge cannot be linked to a group",
            charge_ref=event.charge_ref,
        )

    if not event.refunds:
        return _skipped(event, "charge lists no refunds")

    for line in event.refunds:
        if line.amount <= 0:
            logger.warning(
                "Skipping refund without a positive amount",
                extra={"event_id": event.event_id, "refund_id": line.refund_id},
            )
            continue

        record, _ = AuditService.upsert_refund(line, event, context, _default_currency())
        if line.status != RefundStatus.SUCCEEDED:
            continue

        RevenueService.record_entry(
            RecordEntryParams(
                external_event_id=line.refund_id,
                source_event_id=event.event_id,
                group_id=context.group_id,
                membership=context.membership,
                user_id=context.user_id,
                entry_type=RevenueEntryType.REFUND,
                amount_gross_cents=-line.amount,
                currency=record.currency,
                occurred_at=line.created or event.created or timezone.now(),
                gateway_object_id=line.refund_id,
                gateway_charge_ref=event.charge_ref,
                metadata={
                    "source": event.event_type,
                    "reason": line.reason,
                    "balance_transaction": line.balance_transaction,
                },
            )
        )

    return _applied()


# =============================================================================
# Dispute Handlers
# =============================================================================


def _dispute_context(event: DisputeEvent) -> MembershipContext:
    existing = (
        DisputeRecord.objects.select_related("membership")
        .filter(external_dispute_id=event.dispute_id)
        .first()
    )
    if existing is not None:
        if existing.membership is not None:
            return MembershipContext.from_membership(existing.membership)
        return MembershipContext(group_id=existing.group_id, user_id=existing.user_id)

    return resolve_membership_context(
        charge_ref=event.charge_ref,
        payment_intent_ref=event.payment_intent_ref,
        customer_ref=event.customer_ref,
        metadata=event.metadata,
    )


@register_handler(DisputeCreated)
def handle_dispute_created(event: DisputeCreated) -> ServiceResult:
    """Record an opened or updated dispute. No ledger entry is posted."""
    context = _dispute_context(event)
    if not context.is_resolved:
        return _unresolved(
            event,
            "Disputed charge cannot be linked to a group",
            dispute_id=event.dispute_id,
            charge_ref=event.charge_ref,
        )

    AuditService.upsert_dispute(event, context, _default_currency())
    return _applied()


@register_handler(DisputeClosed)
def handle_dispute_closed(event: DisputeClosed) -> ServiceResult:
    """
    Close a dispute and post the chargeback if it was lost.

    The chargeback is keyed by the closing event's own ID and linked from
    the dispute row, so at most one is ever posted per dispute.
    """
    context = _dispute_context(event)
    if not context.is_resolved:
        return _unresolved(
            event,
            "Disputed charge cannot be linked to a group",
            dispute_id=event.dispute_id,
            charge_ref=event.charge_ref,
        )

    dispute = AuditService.upsert_dispute(event, context, _default_currency(), closing=True)

    if not dispute.is_lost or dispute.chargeback_entry_id is not None:
        return _applied()
    if dispute.amount_cents <= 0:
        return _applied()

    entry, _ = RevenueService.record_entry(
        RecordEntryParams(
            external_event_id=event.event_id,
            source_event_id=event.event_id,
            group_id=dispute.group_id,
            membership=dispute.membership,
            user_id=dispute.user_id,
            entry_type=RevenueEntryType.CHARGEBACK,
            amount_gross_cents=-dispute.amount_cents,
            currency=dispute.currency,
            occurred_at=dispute.closed_at or timezone.now(),
            gateway_object_id=dispute.external_dispute_id,
            gateway_charge_ref=dispute.charge_ref,
            metadata={
                "source": event.event_type,
                "reason": dispute.reason,
                "balance_transaction": event.balance_transaction,
            },
        )
    )
    AuditService.attach_chargeback(dispute, entry)

    logger.warning(
        "Chargeback posted for lost dispute",
        extra={
            "dispute_id": dispute.external_dispute_id,
            "entry_id": str(entry.id),
            "amount_cents": dispute.amount_cents,
            "event_id": event.event_id,
        },
    )
    return _applied()
