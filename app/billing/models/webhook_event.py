"""
WebhookEvent model: the idempotency guard for gateway webhooks.

Every applied event leaves exactly one row, inserted inside the same
transaction as the event's side effects. The unique external_event_id
constraint makes a duplicate delivery (even a concurrent one) fail on
insert, which the processor treats as "already applied".

Usage:
    from billing.models import WebhookEvent
    from billing.state_machines import WebhookEventStatus

    pending_replay = WebhookEvent.objects.filter(
        status=WebhookEventStatus.UNRESOLVED,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Guard row recording that a gateway event was handled.

    Processing Flow:
        1. Webhook arrives and the signature is verified
        2. Insert WebhookEvent with external_event_id (savepoint)
        3. IntegrityError on insert -> duplicate, return 200
        4. Run the handler in a nested savepoint
        5. Record APPLIED / SKIPPED, or roll back the handler's writes and
           record UNRESOLVED when the event could not be linked
        6. Commit everything together

    Fields:
        external_event_id: Gateway event ID (evt_xxx), unique
        event_type: Gateway event type
        payload: Full verified JSON payload (kept for replay)
        status: Outcome of the last attempt
        processed_at: When the event was last processed
        error_message: Why the event is unresolved
        retry_count: Number of replay attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    external_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'invoice.payment_succeeded')",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full verified webhook payload (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.APPLIED,
        db_index=True,
        help_text="Outcome of the last processing attempt",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was last processed",
    )

    # ==========================================================================
    # Reconciliation
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Why the event could not be linked to billing records",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of replay attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="billing_whe_status_created_idx"),
            models.Index(fields=["event_type", "created_at"], name="billing_whe_type_created_idx"),
            models.Index(fields=["status", "retry_count"], name="billing_whe_status_retry_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with event ID and type."""
        return f"WebhookEvent({self.external_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_unresolved(self) -> bool:
        """Check if the event is flagged for reconciliation."""
        return self.status == WebhookEventStatus.UNRESOLVED

    @property
    def can_retry(self) -> bool:
        """Check if an unresolved event may still be replayed."""
        return (
            self.is_unresolved
            and self.retry_count < settings.BILLING_MAX_REPLAY_ATTEMPTS
        )

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_outcome(self, status: str, error_message: str | None = None) -> None:
        """
        Record the outcome of a processing attempt.

        Note: Does not save - caller must save after calling.
        """
        self.status = status
        self.error_message = error_message
        self.processed_at = timezone.now()
