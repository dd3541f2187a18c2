"""
Membership models for paid group access.

Membership tracks the canonical subscription state of one user in one
group. LegacyMemberStatus is the older, coarser active/inactive flag that
pre-existing group features still read; it is derived from Membership
and must never be written on its own.

Usage:
    from billing.models import Membership
    from billing.state_machines import MembershipStatus

    membership, created = Membership.objects.get_or_create(
        group_id=group_id,
        user_id=user_id,
    )
    membership.activate()  # pending -> active
    membership.save()

Note:
    Status writes should go through billing.services.MembershipService,
    which keeps the legacy mirror in step inside the same transaction.
"""

from __future__ import annotations

from django.db import models

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import LegacyStatus, MembershipStatus


class Membership(UUIDPrimaryKeyMixin, BaseModel):
    """
    Paid membership of a user in a group.

    Created on the first successful checkout or invoice event and updated
    by later invoice events. Never deleted by the billing core.

    State Flow:
        PENDING -> ACTIVE (first successful payment)
        ACTIVE -> ACTIVE (renewal)
        ACTIVE -> PAST_DUE (payment failure)
        PAST_DUE -> ACTIVE (recovered payment)

    Fields:
        group_id / user_id / tier_id: External collaborator identifiers
        status: Current FSM state
        subscription_ref: Gateway subscription ID (sub_xxx), unique when set
        customer_ref: Gateway customer ID (cus_xxx)
        payment_intent_ref: Most recent payment intent (pi_xxx)
        checkout_session_ref: Checkout session that created the membership
        last_event_id / last_event_at: Newest gateway event applied
        started_at / renewed_at / expires_at: Billing period timestamps
    """

    # ==========================================================================
    # Ownership
    # ==========================================================================

    # Groups, users and tiers live outside the billing core and are
    # referenced by UUID only.
    group_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the group this membership grants access to",
    )

    user_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the member",
    )

    tier_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of the purchased membership tier, if any",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=MembershipStatus.PENDING,
        choices=MembershipStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the membership (managed by FSM)",
    )

    # ==========================================================================
    # Gateway References
    # ==========================================================================

    subscription_ref = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway subscription ID (sub_xxx)",
    )

    customer_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway customer ID (cus_xxx)",
    )

    payment_intent_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Most recent gateway payment intent ID (pi_xxx)",
    )

    checkout_session_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway checkout session ID (cs_xxx) that created this membership",
    )

    # ==========================================================================
    # Event Ordering
    # ==========================================================================

    last_event_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="ID of the newest gateway event applied to this membership",
    )

    last_event_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Creation time of the newest gateway event applied",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    started_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the membership first became active",
    )

    renewed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the membership was last paid for",
    )

    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the current paid period",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata from checkout",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Membership"
        verbose_name_plural = "Memberships"
        indexes = [
            models.Index(fields=["group_id", "status"], name="billing_mem_group_status_idx"),
            models.Index(fields=["customer_ref"], name="billing_mem_customer_idx"),
            models.Index(fields=["payment_intent_ref"], name="billing_mem_intent_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["group_id", "user_id"],
                name="membership_unique_group_user",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with group, user and status."""
        return f"Membership({self.group_id}, {self.user_id}, {self.status})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=MembershipStatus.PENDING,
        target=MembershipStatus.ACTIVE,
    )
    def activate(self):
        """
        Activate a newly created membership.

        Transition: PENDING -> ACTIVE
        """
        pass

    @transition(
        field=status,
        source=MembershipStatus.ACTIVE,
        target=MembershipStatus.ACTIVE,
    )
    def renew(self):
        """
        Record a renewal payment on an active membership.

        Transition: ACTIVE -> ACTIVE
        """
        pass

    @transition(
        field=status,
        source=MembershipStatus.ACTIVE,
        target=MembershipStatus.PAST_DUE,
    )
    def mark_past_due(self):
        """
        Mark membership as past due after a failed invoice payment.

        Transition: ACTIVE -> PAST_DUE
        """
        pass

    @transition(
        field=status,
        source=MembershipStatus.PAST_DUE,
        target=MembershipStatus.ACTIVE,
    )
    def reactivate(self):
        """
        Restore access after a past-due invoice is paid.

        Transition: PAST_DUE -> ACTIVE
        """
        pass

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        """Check if membership currently grants access."""
        return self.status == MembershipStatus.ACTIVE

    @property
    def is_past_due(self) -> bool:
        """Check if membership is past due."""
        return self.status == MembershipStatus.PAST_DUE


class LegacyMemberStatus(UUIDPrimaryKeyMixin, BaseModel):
    """
    Backward-compatible membership flag for older group features.

    One row per (group_id, user_id). The status is a pure function of
    Membership.status (see billing.state_machines.legacy_status_for).

    Fields:
        group_id / user_id: Same key as Membership
        status: active or inactive
        joined_at: When the row was first written
        last_active_at: Last time the member was seen active
    """

    group_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the group",
    )

    user_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the member",
    )

    status = models.CharField(
        max_length=20,
        choices=LegacyStatus.choices,
        default=LegacyStatus.INACTIVE,
        help_text="Mirrored membership status (derived, never set directly)",
    )

    joined_at = models.DateTimeField(
        help_text="When the member first joined the group",
    )

    last_active_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time the mirrored status was active",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Legacy Member Status"
        verbose_name_plural = "Legacy Member Statuses"
        constraints = [
            models.UniqueConstraint(
                fields=["group_id", "user_id"],
                name="legacy_member_status_unique_group_user",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with group, user and status."""
        return f"LegacyMemberStatus({self.group_id}, {self.user_id}, {self.status})"
