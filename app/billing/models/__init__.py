"""
Billing domain models.

This module contains all membership billing models:
- Membership: Canonical subscription state of a user in a group
- LegacyMemberStatus: Derived active/inactive mirror for older features
- RevenueEntry: Append-only signed revenue ledger
- Coupon: Group discount codes with redemption counters
- RefundRecord: Audit row per gateway refund
- DisputeRecord: Audit row per gateway dispute
- WebhookEvent: Idempotency guard per gateway event
"""

from billing.models.coupon import Coupon, normalize_coupon_code
from billing.models.dispute import DisputeRecord
from billing.models.membership import LegacyMemberStatus, Membership
from billing.models.refund import RefundRecord
from billing.models.revenue import RevenueEntry
from billing.models.webhook_event import WebhookEvent

__all__ = [
    "Coupon",
    "DisputeRecord",
    "LegacyMemberStatus",
    "Membership",
    "RefundRecord",
    "RevenueEntry",
    "WebhookEvent",
    "normalize_coupon_code",
]
