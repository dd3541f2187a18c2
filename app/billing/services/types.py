"""
Data types for billing service operations.

This module defines dataclasses used between the webhook handlers and
the billing services for type-safe data transfer.

Types:
    RecordEntryParams: Parameters for booking a revenue ledger entry
    MembershipContext: Resolved group/membership/user for a payment object
    ReceiptParams: Data needed to email a payment receipt

Usage:
    from billing.services.types import RecordEntryParams

    params = RecordEntryParams(
        external_event_id="evt_123",
        source_event_id="evt_123",
        group_id=group_id,
        entry_type=RevenueEntryType.CHARGE,
        amount_gross_cents=2500,
        currency="eur",
        occurred_at=timezone.now(),
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from billing.models import Coupon, Membership


@dataclass
class RecordEntryParams:
    """
    Parameters for recording a revenue ledger entry.

    Attributes:
        external_event_id: Idempotency key for the entry
        source_event_id: Webhook event that produced the entry
        group_id: Group the revenue belongs to
        entry_type: charge, refund or chargeback
        amount_gross_cents: Signed amount (positive for charges)
        currency: ISO 4217 code in any case; normalized on write
        occurred_at: When the money moved
        membership / user_id: Member linkage, when known
        amount_net_cents: Signed net amount (defaults to gross)
        fee_cents: Gateway fee (defaults to gross minus net)
        coupon: Redeemed coupon for charges
        gateway_object_id / gateway_charge_ref: Gateway references
        metadata: Additional context
    """

    external_event_id: str
    source_event_id: str
    group_id: uuid.UUID
    entry_type: str
    amount_gross_cents: int
    currency: str
    occurred_at: datetime
    membership: Membership | None = None
    user_id: uuid.UUID | None = None
    amount_net_cents: int | None = None
    fee_cents: int | None = None
    coupon: Coupon | None = None
    gateway_object_id: str = ""
    gateway_charge_ref: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MembershipContext:
    """
    Group and member a refund or dispute belongs to.

    group_id is required for anything to be recorded; membership and
    user_id are filled in when the resolver can find them.
    """

    group_id: uuid.UUID | None = None
    membership: Membership | None = None
    user_id: uuid.UUID | None = None

    @property
    def is_resolved(self) -> bool:
        return self.group_id is not None

    @classmethod
    def from_membership(cls, membership: Membership) -> MembershipContext:
        return cls(
            group_id=membership.group_id,
            membership=membership,
            user_id=membership.user_id,
        )


@dataclass
class ReceiptParams:
    """
    Data for a membership payment receipt email.

    Serialized to plain JSON types before being handed to Celery.
    """

    recipient_email: str
    group_id: uuid.UUID
    amount_cents: int
    currency: str
    occurred_at: datetime
    event_id: str
    membership_id: uuid.UUID | None = None
    invoice_number: str | None = None
    hosted_invoice_url: str | None = None
    coupon_code: str | None = None
    description: str | None = None

    def to_task_kwargs(self) -> dict[str, Any]:
        """Convert to JSON-serializable task keyword arguments."""
        return {
            "recipient_email": self.recipient_email,
            "group_id": str(self.group_id),
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "occurred_at": self.occurred_at.isoformat(),
            "event_id": self.event_id,
            "membership_id": str(self.membership_id) if self.membership_id else None,
            "invoice_number": self.invoice_number,
            "hosted_invoice_url": self.hosted_invoice_url,
            "coupon_code": self.coupon_code,
            "description": self.description,
        }
