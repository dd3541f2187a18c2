"""
Membership linkage for refunds and disputes.

Charge-level events do not carry the group and member directly, so the
owning membership is resolved from what the gateway object does carry,
in this order:

1. Membership with the same payment intent
2. Most recently renewed membership of the same gateway customer
3. A charge entry already booked in the ledger for the same charge
4. Object metadata (membershipId, then groupId + userId, then groupId)

An empty MembershipContext means nothing matched; the caller flags the
event for reconciliation.
"""

from __future__ import annotations

import logging
import uuid

from billing.models import Membership
from billing.services.membership_service import MembershipService
from billing.services.revenue_service import RevenueService
from billing.services.types import MembershipContext
from billing.webhooks.events import read_metadata_uuid

logger = logging.getLogger(__name__)


def resolve_membership_context(
    *,
    charge_ref: str | None,
    payment_intent_ref: str | None,
    customer_ref: str | None,
    metadata: dict,
) -> MembershipContext:
    """
    Resolve the group and member a charge-level object belongs to.

    Args:
        charge_ref: Gateway charge ID
        payment_intent_ref: Gateway payment intent ID
        customer_ref: Gateway customer ID
        metadata: Object metadata from the gateway

    Returns:
        MembershipContext; is_resolved is False when nothing matched
    """
    if payment_intent_ref:
        membership = MembershipService.find_by_payment_intent(payment_intent_ref)
        if membership is not None:
            return MembershipContext.from_membership(membership)

    if customer_ref:
        membership = MembershipService.find_latest_by_customer(customer_ref)
        if membership is not None:
            return MembershipContext.from_membership(membership)

    if charge_ref:
        entry = RevenueService.find_charge_by_charge_ref(charge_ref)
        if entry is not None:
            if entry.membership is not None:
                return MembershipContext.from_membership(entry.membership)
            return MembershipContext(group_id=entry.group_id, user_id=entry.user_id)

    return _context_from_metadata(metadata)


def _context_from_metadata(metadata: dict) -> MembershipContext:
    membership_id = read_metadata_uuid(metadata, "membershipId")
    if membership_id is not None:
        membership = MembershipService.find_by_id(membership_id)
        if membership is not None:
            return MembershipContext.from_membership(membership)

    group_id: uuid.UUID | None = read_metadata_uuid(metadata, "groupId")
    if group_id is None:
        return MembershipContext()

    user_id = read_metadata_uuid(metadata, "userId")
    if user_id is not None:
        membership = Membership.objects.filter(group_id=group_id, user_id=user_id).first()
        if membership is not None:
            return MembershipContext.from_membership(membership)

    logger.info(
        "Linked by metadata group only",
        extra={"group_id": str(group_id), "user_id": str(user_id) if user_id else None},
    )
    return MembershipContext(group_id=group_id, user_id=user_id)
