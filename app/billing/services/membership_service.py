"""
Membership lifecycle service.

Applies checkout and invoice events to memberships through the
django-fsm transitions on Membership, and mirrors every change into the
LegacyMemberStatus projection.

All mutating methods expect the membership row to be locked by the
caller (get_or_create_locked / find_by_subscription_locked) inside the
webhook transaction, so concurrent deliveries for the same member are
serialized.

Usage:
    from billing.services import MembershipService

    membership = MembershipService.get_or_create_locked(group_id, user_id)
    MembershipService.apply_checkout(membership, event)
"""

from __future__ import annotations

import calendar
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from django.db.models import F
from django.utils import timezone

from core.services import BaseService

from billing.models import LegacyMemberStatus, Membership
from billing.state_machines import MembershipStatus, legacy_status_for

if TYPE_CHECKING:
    from billing.webhooks.events import CheckoutSessionCompleted, InvoiceEvent


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the target month's length.

    Jan 31 + 1 month is Feb 28 (or 29), not Mar 3.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def calculate_expiration(billing_period: str | None, start: datetime) -> datetime | None:
    """
    Expiry for a checkout purchase.

    "month" adds one calendar month, "year" adds one year. Anything else
    (including lifetime purchases) has no expiry.
    """
    if billing_period == "month":
        return add_months(start, 1)
    if billing_period == "year":
        return add_months(start, 12)
    return None


class MembershipService(BaseService):
    """
    Service for membership state changes driven by gateway events.

    Methods:
        get_or_create_locked: Find or create and row-lock a membership
        find_by_subscription_locked: Row-lock the membership for a subscription
        find_by_payment_intent / find_latest_by_customer: Linkage lookups
        apply_checkout: Grant access from a completed checkout
        apply_payment_success: Activate, renew or reactivate from a paid invoice
        apply_payment_failure: Mark an active membership past due
        sync_legacy_status: Mirror status into the legacy projection
    """

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get_or_create_locked(cls, group_id: uuid.UUID, user_id: uuid.UUID) -> Membership:
        """
        Return the (group, user) membership, creating it PENDING if needed,
        locked for update.
        """
        membership, created = Membership.objects.get_or_create(
            group_id=group_id,
            user_id=user_id,
        )
        if created:
            cls.get_logger().info(
                "Created pending membership",
                extra={
                    "membership_id": str(membership.id),
                    "group_id": str(group_id),
                    "user_id": str(user_id),
                },
            )
        return Membership.objects.select_for_update().get(pk=membership.pk)

    @classmethod
    def find_by_subscription_locked(cls, subscription_ref: str) -> Membership | None:
        """Return the membership bound to a subscription, locked for update."""
        return (
            Membership.objects.select_for_update()
            .filter(subscription_ref=subscription_ref)
            .first()
        )

    @classmethod
    def find_by_payment_intent(cls, payment_intent_ref: str) -> Membership | None:
        return Membership.objects.filter(payment_intent_ref=payment_intent_ref).first()

    @classmethod
    def find_latest_by_customer(cls, customer_ref: str) -> Membership | None:
        """Most recently renewed membership for a gateway customer."""
        return (
            Membership.objects.filter(customer_ref=customer_ref)
            .order_by(F("renewed_at").desc(nulls_last=True), "-created_at")
            .first()
        )

    @classmethod
    def find_by_id(cls, membership_id: uuid.UUID) -> Membership | None:
        return Membership.objects.filter(pk=membership_id).first()

    @staticmethod
    def is_stale(membership: Membership, event_at: datetime | None) -> bool:
        """
        Check if an event is older than the last one applied.

        Events without a timestamp are never considered stale.
        """
        return (
            membership.last_event_at is not None
            and event_at is not None
            and event_at < membership.last_event_at
        )

    # =========================================================================
    # Event Application
    # =========================================================================

    @classmethod
    def apply_checkout(
        cls,
        membership: Membership,
        event: CheckoutSessionCompleted,
    ) -> Membership:
        """
        Grant access from a completed, paid checkout session.

        Args:
            membership: Locked membership row
            event: Decoded checkout event

        Returns:
            The saved membership
        """
        now = event.created or timezone.now()

        cls._fill_refs(
            membership,
            subscription_ref=event.subscription_ref,
            customer_ref=event.customer_ref,
            payment_intent_ref=event.payment_intent_ref,
        )
        membership.checkout_session_ref = event.session_id

        if cls.is_stale(membership, event.created):
            cls.get_logger().info(
                "Stale checkout event, only references updated",
                extra={"membership_id": str(membership.id), "event_id": event.event_id},
            )
            return cls._save(membership)

        if event.tier_id is not None:
            membership.tier_id = event.tier_id
        expires_at = calculate_expiration(event.billing_period, now)
        if expires_at is not None:
            membership.expires_at = expires_at

        cls._grant(membership, paid_at=now)
        cls._stamp(membership, event.event_id, event.created)
        return cls._save(membership)

    @classmethod
    def apply_payment_success(
        cls,
        membership: Membership,
        event: InvoiceEvent,
    ) -> Membership:
        """
        Apply a paid invoice.

        PENDING memberships are activated, ACTIVE ones renewed and
        PAST_DUE ones reactivated. renewed_at is the payment time and
        expires_at the end of the paid period.
        """
        cls._fill_refs(
            membership,
            subscription_ref=event.subscription_ref,
            customer_ref=event.customer_ref,
            payment_intent_ref=event.payment_intent_ref,
        )

        if cls.is_stale(membership, event.created):
            cls.get_logger().info(
                "Stale invoice payment event, only references updated",
                extra={"membership_id": str(membership.id), "event_id": event.event_id},
            )
            return cls._save(membership)

        paid_at = event.paid_at or event.created or timezone.now()
        cls._grant(membership, paid_at=paid_at)
        if event.period_end is not None:
            membership.expires_at = event.period_end
        cls._stamp(membership, event.event_id, event.created)
        return cls._save(membership)

    @classmethod
    def apply_payment_failure(
        cls,
        membership: Membership,
        event: InvoiceEvent,
    ) -> Membership:
        """
        Apply a failed invoice payment.

        Only ACTIVE memberships move to PAST_DUE; a PENDING or already
        PAST_DUE membership is left as it is.
        """
        if cls.is_stale(membership, event.created):
            cls.get_logger().info(
                "Stale invoice failure event ignored",
                extra={"membership_id": str(membership.id), "event_id": event.event_id},
            )
            return membership

        if membership.status == MembershipStatus.ACTIVE:
            membership.mark_past_due()
            cls.get_logger().warning(
                "Membership marked past due",
                extra={
                    "membership_id": str(membership.id),
                    "subscription_ref": membership.subscription_ref,
                    "event_id": event.event_id,
                },
            )

        cls._stamp(membership, event.event_id, event.created)
        return cls._save(membership)

    # =========================================================================
    # Legacy Projection
    # =========================================================================

    @classmethod
    def sync_legacy_status(cls, membership: Membership) -> LegacyMemberStatus:
        """
        Mirror the membership status into LegacyMemberStatus.

        ACTIVE maps to "active"; PENDING and PAST_DUE map to "inactive".
        joined_at is set once, on first creation.
        """
        legacy_status = legacy_status_for(membership.status)
        defaults = {"status": legacy_status}
        if membership.is_active:
            defaults["last_active_at"] = membership.renewed_at or timezone.now()

        row, _ = LegacyMemberStatus.objects.update_or_create(
            group_id=membership.group_id,
            user_id=membership.user_id,
            defaults=defaults,
            create_defaults={
                **defaults,
                "joined_at": membership.started_at or timezone.now(),
            },
        )
        return row

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    @staticmethod
    def _fill_refs(membership: Membership, **refs: str | None) -> None:
        for name, value in refs.items():
            if value:
                setattr(membership, name, value)

    @staticmethod
    def _stamp(membership: Membership, event_id: str, event_at: datetime | None) -> None:
        membership.last_event_id = event_id
        if event_at is not None:
            membership.last_event_at = event_at

    @classmethod
    def _grant(cls, membership: Membership, paid_at: datetime) -> None:
        if membership.status == MembershipStatus.PENDING:
            membership.activate()
            membership.started_at = membership.started_at or paid_at
        elif membership.status == MembershipStatus.PAST_DUE:
            membership.reactivate()
        else:
            membership.renew()
        membership.renewed_at = paid_at

        cls.get_logger().info(
            "Membership access granted",
            extra={
                "membership_id": str(membership.id),
                "group_id": str(membership.group_id),
                "user_id": str(membership.user_id),
                "expires_at": membership.expires_at.isoformat()
                if membership.expires_at
                else None,
            },
        )

    @classmethod
    def _save(cls, membership: Membership) -> Membership:
        membership.save()
        cls.sync_legacy_status(membership)
        return membership
