"""
State machine enums and helpers for billing models.

This module defines the state enums used by billing models with django-fsm.
"""

from billing.state_machines.states import (
    CLOSED_DISPUTE_STATUSES,
    DisputeStatus,
    LegacyStatus,
    MembershipStatus,
    RefundStatus,
    RevenueEntryType,
    WebhookEventStatus,
    WebhookOutcome,
    legacy_status_for,
)

__all__ = [
    "CLOSED_DISPUTE_STATUSES",
    "DisputeStatus",
    "LegacyStatus",
    "MembershipStatus",
    "RefundStatus",
    "RevenueEntryType",
    "WebhookEventStatus",
    "WebhookOutcome",
    "legacy_status_for",
]
