"""
RefundRecord model for gateway refund auditing.

One row per gateway refund ID. Rows are inserted on the first
charge.refunded event that mentions the refund and updated in place when
later events report a new status. The ledger entry for a refund is
separate (billing.models.RevenueEntry) and only exists once the refund
has succeeded.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import RefundStatus


class RefundRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Audit row for a refund issued at the gateway.

    Fields:
        external_refund_id: Gateway refund ID (re_xxx), unique
        group_id / membership / user_id: Resolved linkage
        charge_ref / payment_intent_ref: Gateway references
        amount_cents: Positive refunded amount
        currency: Uppercase ISO 4217 code
        status: Gateway refund status, stored verbatim
        reason / failure_reason: Gateway-supplied reasons
        refunded_at: When the refund was created at the gateway
        last_event_id: Newest webhook event that touched the row
    """

    external_refund_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway refund ID (re_xxx)",
    )

    group_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the group the refunded payment belongs to",
    )

    membership = models.ForeignKey(
        "billing.Membership",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="refunds",
        help_text="Membership the refunded payment belongs to",
    )

    user_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of the refunded member, when known",
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
        help_text="Refunded amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code (uppercase)",
    )

    status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.PENDING,
        db_index=True,
        help_text="Gateway refund status",
    )

    reason = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="Gateway refund reason",
    )

    failure_reason = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway failure reason, if the refund failed",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the refund was created at the gateway",
    )

    last_event_id = models.CharField(
        max_length=255,
        help_text="Newest webhook event ID that updated this row",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Refund Record"
        verbose_name_plural = "Refund Records"
        indexes = [
            models.Index(fields=["group_id", "status"], name="billing_ref_group_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="refund_record_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with refund ID and status."""
        return f"RefundRecord({self.external_refund_id}, {self.status})"

    @property
    def is_succeeded(self) -> bool:
        """Check if the refund completed at the gateway."""
        return self.status == RefundStatus.SUCCEEDED
