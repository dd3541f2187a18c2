"""
Refund and dispute audit records.

RefundRecord and DisputeRecord rows are keyed by the gateway's refund and
dispute IDs. Every delivery either inserts the row or updates it in
place, so re-delivery under any event ID leaves exactly one row per
gateway object.

Usage:
    from billing.services import AuditService

    record, created = AuditService.upsert_refund(line, event, context)
    dispute = AuditService.upsert_dispute(event, context, closing=True)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.utils import timezone

from billing.models import DisputeRecord, RefundRecord, RevenueEntry
from billing.services.revenue_service import normalize_currency
from billing.services.types import MembershipContext
from billing.state_machines import CLOSED_DISPUTE_STATUSES

if TYPE_CHECKING:
    from billing.webhooks.events import ChargeRefunded, DisputeEvent, RefundLine

logger = logging.getLogger(__name__)


class AuditService:
    """Inserts and in-place updates of refund and dispute records."""

    # =========================================================================
    # Refunds
    # =========================================================================

    @staticmethod
    def upsert_refund(
        line: RefundLine,
        event: ChargeRefunded,
        context: MembershipContext,
        default_currency: str,
    ) -> tuple[RefundRecord, bool]:
        """
        Insert a refund record or refresh its status.

        Args:
            line: The refund as listed on the charge
            event: The charge.refunded event
            context: Resolved group/membership/user
            default_currency: Used when neither refund nor charge has one

        Returns:
            Tuple of (record, created)
        """
        currency = normalize_currency(line.currency or event.currency or default_currency)
        record, created = RefundRecord.objects.select_for_update().get_or_create(
            external_refund_id=line.refund_id,
            defaults={
                "group_id": context.group_id,
                "membership": context.membership,
                "user_id": context.user_id,
                "charge_ref": event.charge_ref,
                "payment_intent_ref": event.payment_intent_ref,
                "amount_cents": line.amount,
                "currency": currency,
                "status": line.status,
                "reason": line.reason,
                "failure_reason": line.failure_reason,
                "refunded_at": line.created or event.created,
                "last_event_id": event.event_id,
            },
        )

        if not created:
            record.status = line.status
            record.failure_reason = line.failure_reason or record.failure_reason
            record.last_event_id = event.event_id
            if record.membership_id is None and context.membership is not None:
                record.membership = context.membership
                record.user_id = context.user_id
            record.save()

        logger.info(
            "Refund record created" if created else "Refund record updated",
            extra={
                "refund_id": line.refund_id,
                "charge_ref": event.charge_ref,
                "status": line.status,
                "event_id": event.event_id,
            },
        )
        return record, created

    # =========================================================================
    # Disputes
    # =========================================================================

    @staticmethod
    def upsert_dispute(
        event: DisputeEvent,
        context: MembershipContext,
        default_currency: str,
        closing: bool = False,
    ) -> DisputeRecord:
        """
        Insert a dispute record or refresh it.

        An update from an open-status event never reopens a dispute that
        has already been closed. A closing event sets closed_at, creating
        the row if the opening event has not arrived yet.
        """
        currency = normalize_currency(event.currency or default_currency)
        closed_at = None
        if closing:
            closed_at = event.closed_at or event.created or timezone.now()

        dispute, created = DisputeRecord.objects.select_for_update().get_or_create(
            external_dispute_id=event.dispute_id,
            defaults={
                "group_id": context.group_id,
                "membership": context.membership,
                "user_id": context.user_id,
                "charge_ref": event.charge_ref,
                "payment_intent_ref": event.payment_intent_ref,
                "amount_cents": event.amount,
                "currency": currency,
                "status": event.status,
                "reason": event.reason,
                "evidence_due_at": event.evidence_due_at,
                "closed_at": closed_at,
                "last_event_id": event.event_id,
            },
        )

        if not created:
            if dispute.is_closed and not closing and event.status not in CLOSED_DISPUTE_STATUSES:
                logger.info(
                    "Ignoring open-status update for closed dispute",
                    extra={
                        "dispute_id": event.dispute_id,
                        "stored_status": dispute.status,
                        "event_status": event.status,
                        "event_id": event.event_id,
                    },
                )
                return dispute

            dispute.status = event.status
            dispute.amount_cents = event.amount or dispute.amount_cents
            dispute.evidence_due_at = event.evidence_due_at or dispute.evidence_due_at
            dispute.last_event_id = event.event_id
            if closing:
                dispute.closed_at = dispute.closed_at or closed_at
            if dispute.membership_id is None and context.membership is not None:
                dispute.membership = context.membership
                dispute.user_id = context.user_id
            dispute.save()

        logger.info(
            "Dispute record created" if created else "Dispute record updated",
            extra={
                "dispute_id": event.dispute_id,
                "charge_ref": event.charge_ref,
                "status": event.status,
                "closing": closing,
                "event_id": event.event_id,
            },
        )
        return dispute

    @staticmethod
    def attach_chargeback(dispute: DisputeRecord, entry: RevenueEntry) -> None:
        """Link the chargeback ledger entry posted for a lost dispute."""
        dispute.chargeback_entry = entry
        dispute.save(update_fields=["chargeback_entry", "updated_at"])
