"""
Serializers for the billing read API.

Serializers:
    MembershipSerializer: Membership state for a group member
    RevenueEntrySerializer: One ledger entry
    RevenueSummarySerializer: Per-currency ledger totals for a group
    RevenueEntriesQuerySerializer: Validates the entries list query string

All serializers are read-only; billing state only changes through
verified gateway webhooks.
"""

from __future__ import annotations

from rest_framework import serializers

from billing.models import Membership, RevenueEntry


class MembershipSerializer(serializers.ModelSerializer):
    """Read-only serializer for Membership."""

    class Meta:
        model = Membership
        fields = [
            "id",
            "group_id",
            "user_id",
            "tier_id",
            "status",
            "subscription_ref",
            "customer_ref",
            "started_at",
            "renewed_at",
            "expires_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RevenueEntrySerializer(serializers.ModelSerializer):
    """
    Read-only serializer for RevenueEntry.

    coupon_code is the redeemed coupon's code, if any.
    """

    coupon_code = serializers.CharField(source="coupon.code", read_only=True, default=None)

    class Meta:
        model = RevenueEntry
        fields = [
            "id",
            "external_event_id",
            "entry_type",
            "membership_id",
            "user_id",
            "amount_gross_cents",
            "amount_net_cents",
            "fee_cents",
            "currency",
            "occurred_at",
            "coupon_code",
            "gateway_charge_ref",
            "created_at",
        ]
        read_only_fields = fields


class RevenueSummarySerializer(serializers.Serializer):
    """Totals for one currency, as returned by RevenueService.summary_for_group."""

    currency = serializers.CharField()
    gross_cents = serializers.IntegerField()
    net_cents = serializers.IntegerField()
    fee_cents = serializers.IntegerField()
    charges_cents = serializers.IntegerField()
    refunds_cents = serializers.IntegerField()
    chargebacks_cents = serializers.IntegerField()
    entry_count = serializers.IntegerField()


class RevenueEntriesQuerySerializer(serializers.Serializer):
    """Query parameters for the revenue entries list."""

    limit = serializers.IntegerField(required=False, default=50, min_value=1, max_value=500)
