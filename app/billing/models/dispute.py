"""
DisputeRecord model for gateway dispute (chargeback) auditing.

A dispute is one row for its whole life: created on charge.dispute.created,
refreshed on charge.dispute.updated and closed on charge.dispute.closed.
When the closure is lost, the row links the chargeback ledger entry so a
repeated closure cannot book a second one.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import CLOSED_DISPUTE_STATUSES, DisputeStatus


class DisputeRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Audit row for a payment dispute.

    Fields:
        external_dispute_id: Gateway dispute ID (dp_xxx), unique
        group_id / membership / user_id: Resolved linkage
        charge_ref / payment_intent_ref: Disputed payment
        amount_cents: Positive disputed amount
        currency: Uppercase ISO 4217 code
        status: Gateway dispute status, stored verbatim
        reason: Gateway dispute reason
        evidence_due_at: Deadline for submitting evidence
        closed_at: When the dispute reached a terminal status
        chargeback_entry: Ledger entry booked for a lost dispute
        last_event_id: Newest webhook event that touched the row
    """

    external_dispute_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway dispute ID (dp_xxx)",
    )

    group_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the group the disputed payment belongs to",
    )

    membership = models.ForeignKey(
        "billing.Membership",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="disputes",
        help_text="Membership the disputed payment belongs to",
    )

    user_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of the disputing member, when known",
    )

    charge_ref = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Gateway charge ID (ch_xxx)",
    )

    payment_intent_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway payment intent ID (pi_xxx)",
    )

    amount_cents = models.PositiveBigIntegerField(
        help_text="Disputed amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code (uppercase)",
    )

    status = models.CharField(
        max_length=30,
        choices=DisputeStatus.choices,
        db_index=True,
        help_text="Gateway dispute status",
    )

    reason = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Gateway dispute reason (e.g., 'fraudulent')",
    )

    evidence_due_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Deadline for submitting dispute evidence",
    )

    closed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the dispute was closed",
    )

    chargeback_entry = models.OneToOneField(
        "billing.RevenueEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="dispute",
        help_text="Chargeback ledger entry booked when the dispute was lost",
    )

    last_event_id = models.CharField(
        max_length=255,
        help_text="Newest webhook event ID that updated this row",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Dispute Record"
        verbose_name_plural = "Dispute Records"
        indexes = [
            models.Index(fields=["group_id", "status"], name="billing_dsp_group_status_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with dispute ID and status."""
        return f"DisputeRecord({self.external_dispute_id}, {self.status})"

    @property
    def is_closed(self) -> bool:
        """Check if the dispute reached a terminal status."""
        return self.status in CLOSED_DISPUTE_STATUSES

    @property
    def is_lost(self) -> bool:
        """Check if the dispute was lost."""
        return self.status == DisputeStatus.LOST
