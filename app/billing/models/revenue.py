"""
Revenue ledger model.

RevenueEntry is an append-only record of money moving in (charges) or out
(refunds, chargebacks) of a group's membership revenue. Entries are never
updated or deleted; corrections are made by appending new entries.

The unique external_event_id is the idempotency key: a charge is keyed
by the webhook event that booked it, a refund by the gateway refund ID,
and a chargeback by the dispute-closed event ID.

Usage:
    from billing.models import RevenueEntry
    from django.db.models import Sum

    balance = RevenueEntry.objects.filter(membership=membership).aggregate(
        total=Sum("amount_gross_cents")
    )["total"]
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import RevenueEntryType


class RevenueEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    Immutable signed ledger entry.

    Sign Convention:
        CHARGE: amount_gross_cents > 0
        REFUND / CHARGEBACK: amount_gross_cents < 0

    Fields:
        external_event_id: Idempotency key (event, refund or closure ID)
        source_event_id: Webhook event that produced the entry
        group_id / user_id / membership: Who the money belongs to
        entry_type: charge, refund or chargeback
        amount_gross_cents: Signed amount in the smallest currency unit
        amount_net_cents: Signed amount after gateway fees (defaults to gross)
        fee_cents: Gateway fee, when known
        currency: Uppercase ISO 4217 code
        occurred_at: When the money moved at the gateway
        coupon: Coupon redeemed by this charge, if any
        gateway_object_id: Checkout session, invoice, refund or dispute ID
        gateway_charge_ref: Gateway charge ID, used for refund/dispute linkage
        metadata: Free-form context (source event type, promotion codes)

    Note:
        No updated_at field; entries are never modified after creation.
    """

    # ==========================================================================
    # Idempotency
    # ==========================================================================

    external_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique idempotency key (event, refund or dispute-closure ID)",
    )

    source_event_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Webhook event ID that produced this entry",
    )

    # ==========================================================================
    # Ownership
    # ==========================================================================

    group_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the group the revenue belongs to",
    )

    membership = models.ForeignKey(
        "billing.Membership",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="revenue_entries",
        help_text="Membership the entry relates to, when resolvable",
    )

    user_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="UUID of the paying member, when known",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    entry_type = models.CharField(
        max_length=20,
        choices=RevenueEntryType.choices,
        db_index=True,
        help_text="Category of money movement",
    )

    amount_gross_cents = models.BigIntegerField(
        help_text="Signed gross amount in smallest currency unit",
    )

    amount_net_cents = models.BigIntegerField(
        help_text="Signed net amount after fees (equals gross when fees unknown)",
    )

    fee_cents = models.BigIntegerField(
        default=0,
        help_text="Gateway fee in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code (uppercase)",
    )

    occurred_at = models.DateTimeField(
        db_index=True,
        help_text="When the money moved at the gateway",
    )

    # ==========================================================================
    # References
    # ==========================================================================

    coupon = models.ForeignKey(
        "billing.Coupon",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="revenue_entries",
        help_text="Coupon redeemed by this charge",
    )

    gateway_object_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Gateway object ID (cs_xxx, in_xxx, re_xxx, dp_xxx)",
    )

    gateway_charge_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Gateway charge ID (ch_xxx) used for refund/dispute linkage",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context for the entry",
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the entry was recorded",
    )

    class Meta:
        ordering = ["-occurred_at", "-created_at"]
        verbose_name = "Revenue Entry"
        verbose_name_plural = "Revenue Entries"
        indexes = [
            models.Index(fields=["group_id", "occurred_at"], name="billing_rev_group_occ_idx"),
            models.Index(fields=["group_id", "currency"], name="billing_rev_group_cur_idx"),
            models.Index(fields=["membership", "occurred_at"], name="billing_rev_member_occ_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(entry_type=RevenueEntryType.CHARGE, amount_gross_cents__gt=0)
                    | Q(
                        entry_type__in=[
                            RevenueEntryType.REFUND,
                            RevenueEntryType.CHARGEBACK,
                        ],
                        amount_gross_cents__lt=0,
                    )
                ),
                name="revenue_entry_amount_sign_matches_type",
            ),
            models.CheckConstraint(
                condition=Q(currency__regex=r"^[A-Z]{3}$"),
                name="revenue_entry_currency_iso_upper",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with type and amount."""
        return (
            f"RevenueEntry({self.entry_type}, "
            f"{self.amount_gross_cents / 100:.2f} {self.currency})"
        )
