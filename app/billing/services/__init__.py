"""
Billing services applied by the webhook handlers.

This module provides:
- MembershipService: Membership lifecycle and legacy status projection
- RevenueService: Append-only revenue ledger writes and read-side totals
- CouponService: Coupon lookup and redemption counting
- AuditService: Refund and dispute records
- resolve_membership_context: Linkage of charge-level events to members
- queue_membership_receipt: Post-commit receipt emails

Usage:
    from billing.services import RevenueService, RecordEntryParams

    entry, created = RevenueService.record_entry(RecordEntryParams(...))
"""

from billing.services.audit_service import AuditService
from billing.services.coupon_service import CouponService
from billing.services.linkage import resolve_membership_context
from billing.services.membership_service import MembershipService
from billing.services.receipts import queue_membership_receipt
from billing.services.revenue_service import RevenueService, normalize_currency
from billing.services.types import MembershipContext, ReceiptParams, RecordEntryParams

__all__ = [
    "AuditService",
    "CouponService",
    "MembershipContext",
    "MembershipService",
    "ReceiptParams",
    "RecordEntryParams",
    "RevenueService",
    "normalize_currency",
    "queue_membership_receipt",
    "resolve_membership_context",
]
