"""
State enums for billing models.

This module defines all state enums used by billing models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Membership States:
    pending → active (first successful checkout or invoice)
    active → past_due (invoice payment failed)
    past_due → active (invoice payment succeeded)

Legacy Member Status:
    Derived from Membership status; active maps to active, everything
    else maps to inactive.

Dispute States:
    Stored verbatim from the gateway's vocabulary. A dispute is closed
    once it reaches won, lost, warning_closed or charge_refunded.
"""

from django.db import models


class MembershipStatus(models.TextChoices):
    """
    States for the Membership model lifecycle.

    PENDING only exists inside the transaction that creates the row;
    the creating handler immediately moves it to ACTIVE.

    State Flow:
        PENDING → ACTIVE
        ACTIVE → PAST_DUE (payment failed)
        PAST_DUE → ACTIVE (payment recovered)
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past Due"


class LegacyStatus(models.TextChoices):
    """
    Backward-compatible membership flag read by older group features.

    Never written directly; always derived with legacy_status_for().
    """

    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


def legacy_status_for(status: str) -> str:
    """Map a canonical membership status to the legacy mirror value."""
    if status == MembershipStatus.ACTIVE:
        return LegacyStatus.ACTIVE
    return LegacyStatus.INACTIVE


class RevenueEntryType(models.TextChoices):
    """
    Types of revenue ledger entries.

    Charges are always positive; refunds and chargebacks are always
    negative. The sign is enforced by a database check constraint.
    """

    CHARGE = "charge", "Charge"
    REFUND = "refund", "Refund"
    CHARGEBACK = "chargeback", "Chargeback"


class RefundStatus(models.TextChoices):
    """
    Refund status as reported by the payment gateway.

    Only SUCCEEDED refunds produce a ledger entry.
    """

    PENDING = "pending", "Pending"
    REQUIRES_ACTION = "requires_action", "Requires Action"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    CANCELED = "canceled", "Canceled"


class DisputeStatus(models.TextChoices):
    """
    Dispute status as reported by the payment gateway.

    Terminal states: WON, LOST, WARNING_CLOSED, CHARGE_REFUNDED
    Only a LOST closure produces a chargeback ledger entry.
    """

    WARNING_NEEDS_RESPONSE = "warning_needs_response", "Warning: Needs Response"
    WARNING_UNDER_REVIEW = "warning_under_review", "Warning: Under Review"
    WARNING_CLOSED = "warning_closed", "Warning: Closed"
    NEEDS_RESPONSE = "needs_response", "Needs Response"
    UNDER_REVIEW = "under_review", "Under Review"
    WON = "won", "Won"
    LOST = "lost", "Lost"
    CHARGE_REFUNDED = "charge_refunded", "Charge Refunded"


CLOSED_DISPUTE_STATUSES = frozenset(
    {
        DisputeStatus.WON,
        DisputeStatus.LOST,
        DisputeStatus.WARNING_CLOSED,
        DisputeStatus.CHARGE_REFUNDED,
    }
)


class WebhookEventStatus(models.TextChoices):
    """
    Outcome recorded on the idempotency guard row of a webhook event.

    State Flow:
        APPLIED (side effects committed)
        SKIPPED (benign no-op, e.g. unpaid checkout or stale event)
        UNRESOLVED → APPLIED (flagged for reconciliation, replayed later)
    """

    APPLIED = "applied", "Applied"
    SKIPPED = "skipped", "Skipped"
    UNRESOLVED = "unresolved", "Unresolved"


class WebhookOutcome(models.TextChoices):
    """
    Result reported to the gateway for one delivery.

    Superset of WebhookEventStatus: DUPLICATE and IGNORED deliveries
    never write a guard row.
    """

    APPLIED = "applied", "Applied"
    SKIPPED = "skipped", "Skipped"
    UNRESOLVED = "unresolved", "Unresolved"
    DUPLICATE = "duplicate", "Duplicate"
    IGNORED = "ignored", "Ignored"
