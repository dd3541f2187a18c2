"""
Billing admin configuration.

Billing state is written only by the webhook processor, so most models are
read-only here. Coupons are the exception: staff create and edit them.

Key features:
- RevenueEntry is immutable (no add/edit/delete permissions)
- Membership status is protected by its state machine and never edited
- Unresolved webhook events are easy to filter for reconciliation
"""

from django.contrib import admin

from billing.models import (
    Coupon,
    DisputeRecord,
    LegacyMemberStatus,
    Membership,
    RefundRecord,
    RevenueEntry,
    WebhookEvent,
)
from billing.state_machines import WebhookEventStatus


class ReadOnlyAdminMixin:
    """Disable add, change and delete for records owned by the webhook processor."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


def format_cents(amount_cents: int, currency: str) -> str:
    return f"{amount_cents / 100:.2f} {currency}"


@admin.register(Membership)
class MembershipAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for Membership.

    Status changes happen only through gateway events, never in admin.
    """

    list_display = [
        "id",
        "group_id",
        "user_id",
        "status",
        "subscription_ref",
        "renewed_at",
        "expires_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = [
        "id",
        "group_id",
        "user_id",
        "subscription_ref",
        "customer_ref",
        "payment_intent_ref",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "group_id", "user_id", "tier_id", "status"),
            },
        ),
        (
            "Gateway References",
            {
                "fields": (
                    "subscription_ref",
                    "customer_ref",
                    "payment_intent_ref",
                    "checkout_session_ref",
                ),
            },
        ),
        (
            "Lifecycle",
            {
                "fields": (
                    "started_at",
                    "renewed_at",
                    "expires_at",
                    "last_event_id",
                    "last_event_at",
                ),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )


@admin.register(LegacyMemberStatus)
class LegacyMemberStatusAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin configuration for the legacy member status projection."""

    list_display = ["group_id", "user_id", "status", "joined_at", "last_active_at"]
    list_filter = ["status"]
    search_fields = ["group_id", "user_id"]


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    """
    Admin configuration for Coupon.

    redemption_count is maintained by the webhook processor.
    """

    list_display = [
        "code",
        "group_id",
        "external_promotion_id",
        "redemption_count",
        "max_redemptions",
        "is_active",
    ]
    list_filter = ["is_active"]
    search_fields = ["code", "group_id", "external_promotion_id"]
    readonly_fields = ["id", "redemption_count", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(RevenueEntry)
class RevenueEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for RevenueEntry.

    Ledger entries are immutable. Corrections arrive as new refund or
    chargeback entries from the gateway.
    """

    list_display = [
        "id",
        "occurred_at",
        "entry_type",
        "amount_display",
        "group_id",
        "membership",
        "external_event_id",
    ]
    list_filter = ["entry_type", "currency", "occurred_at"]
    search_fields = [
        "id",
        "external_event_id",
        "source_event_id",
        "group_id",
        "gateway_object_id",
        "gateway_charge_ref",
    ]
    date_hierarchy = "occurred_at"
    ordering = ["-occurred_at"]

    def amount_display(self, obj: RevenueEntry) -> str:
        """Display the gross amount with its currency."""
        return format_cents(obj.amount_gross_cents, obj.currency)

    amount_display.short_description = "Amount"


@admin.register(RefundRecord)
class RefundRecordAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin configuration for RefundRecord."""

    list_display = [
        "external_refund_id",
        "group_id",
        "charge_ref",
        "amount_display",
        "status",
        "refunded_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["external_refund_id", "charge_ref", "payment_intent_ref", "group_id"]
    ordering = ["-created_at"]

    def amount_display(self, obj: RefundRecord) -> str:
        return format_cents(obj.amount_cents, obj.currency)

    amount_display.short_description = "Amount"


@admin.register(DisputeRecord)
class DisputeRecordAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Admin configuration for DisputeRecord."""

    list_display = [
        "external_dispute_id",
        "group_id",
        "charge_ref",
        "amount_display",
        "status",
        "evidence_due_at",
        "closed_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["external_dispute_id", "charge_ref", "payment_intent_ref", "group_id"]
    ordering = ["-created_at"]

    def amount_display(self, obj: DisputeRecord) -> str:
        return format_cents(obj.amount_cents, obj.currency)

    amount_display.short_description = "Amount"


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into processing outcomes. Filter by status
    "unresolved" to find events awaiting reconciliation.
    """

    list_display = [
        "id",
        "external_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "external_event_id", "event_type"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["replay_selected"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "external_event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Replay selected unresolved events")
    def replay_selected(self, request, queryset):
        """Queue a replay for each selected event that is still unresolved."""
        from billing.tasks import replay_webhook_event_task

        event_ids = list(
            queryset.filter(status=WebhookEventStatus.UNRESOLVED).values_list("id", flat=True)
        )
        for event_id in event_ids:
            replay_webhook_event_task.delay(str(event_id))
        self.message_user(request, f"Queued {len(event_ids)} webhook events for replay.")
