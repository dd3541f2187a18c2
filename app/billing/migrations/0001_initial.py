import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("group_id", models.UUIDField(db_index=True, help_text="UUID of the group this coupon belongs to")),
                ("code", models.CharField(help_text="Coupon code (stored uppercase)", max_length=64)),
                ("external_promotion_id", models.CharField(blank=True, help_text="Gateway promotion code ID (promo_xxx)", max_length=255, null=True, unique=True)),
                ("redemption_count", models.PositiveIntegerField(default=0, help_text="Number of booked charges that used this coupon")),
                ("max_redemptions", models.PositiveIntegerField(blank=True, help_text="Maximum number of redemptions (null for unlimited)", null=True)),
                ("is_active", models.BooleanField(default=True, help_text="Whether the coupon is currently usable")),
            ],
            options={
                "verbose_name": "Coupon",
                "verbose_name_plural": "Coupons",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("group_id", "code"), name="coupon_unique_group_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="LegacyMemberStatus",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("group_id", models.UUIDField(db_index=True, help_text="UUID of the group")),
                ("user_id", models.UUIDField(db_index=True, help_text="UUID of the member")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive")], default="inactive", help_text="Mirrored membership status (derived, never set directly)", max_length=20)),
                ("joined_at", models.DateTimeField(help_text="When the member first joined the group")),
                ("last_active_at", models.DateTimeField(blank=True, help_text="Last time the mirrored status was active", null=True)),
            ],
            options={
                "verbose_name": "Legacy Member Status",
                "verbose_name_plural": "Legacy Member Statuses",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("group_id", "user_id"), name="legacy_member_status_unique_group_user"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Membership",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("group_id", models.UUIDField(db_index=True, help_text="UUID of the group this membership grants access to")),
                ("user_id", models.UUIDField(db_index=True, help_text="UUID of the member")),
                ("tier_id", models.UUIDField(blank=True, help_text="UUID of the purchased membership tier, if any", null=True)),
                ("status", django_fsm.FSMField(choices=[("pending", "Pending"), ("active", "Active"), ("past_due", "Past Due")], db_index=True, default="pending", help_text="Current state of the membership (managed by FSM)", max_length=50, protected=True)),
                ("subscription_ref", models.CharField(blank=True, help_text="Gateway subscription ID (sub_xxx)", max_length=255, null=True, unique=True)),
                ("customer_ref", models.CharField(blank=True, help_text="Gateway customer ID (cus_xxx)", max_length=255, null=True)),
                ("payment_intent_ref", models.CharField(blank=True, help_text="Most recent gateway payment intent ID (pi_xxx)", max_length=255, null=True)),
                ("checkout_session_ref", models.CharField(blank=True, help_text="Gateway checkout session ID (cs_xxx) that created this membership", max_length=255, null=True)),
                ("last_event_id", models.CharField(blank=True, help_text="ID of the newest gateway event applied to this membership", max_length=255, null=True)),
                ("last_event_at", models.DateTimeField(blank=True, help_text="Creation time of the newest gateway event applied", null=True)),
                ("started_at", models.DateTimeField(blank=True, help_text="When the membership first became active", null=True)),
                ("renewed_at", models.DateTimeField(blank=True, help_text="When the membership was last paid for", null=True)),
                ("expires_at", models.DateTimeField(blank=True, help_text="End of the current paid period", null=True)),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Arbitrary JSON metadata from checkout")),
            ],
            options={
                "verbose_name": "Membership",
                "verbose_name_plural": "Memberships",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["group_id", "status"], name="billing_mem_group_status_idx"),
                    models.Index(fields=["customer_ref"], name="billing_mem_customer_idx"),
                    models.Index(fields=["payment_intent_ref"], name="billing_mem_intent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("group_id", "user_id"), name="membership_unique_group_user"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RevenueEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("external_event_id", models.CharField(help_text="Unique idempotency key (event, refund or dispute-closure ID)", max_length=255, unique=True)),
                ("source_event_id", models.CharField(db_index=True, help_text="Webhook event ID that produced this entry", max_length=255)),
                ("group_id", models.UUIDField(db_index=True, help_text="UUID of the group the revenue belongs to")),
                ("user_id", models.UUIDField(blank=True, db_index=True, help_text="UUID of the paying member, when known", null=True)),
                ("entry_type", models.CharField(choices=[("charge", "Charge"), ("refund", "Refund"), ("chargeback", "Chargeback")], db_index=True, help_text="Category of money movement", max_length=20)),
                ("amount_gross_cents", models.BigIntegerField(help_text="Signed gross amount in smallest currency unit")),
                ("amount_net_cents", models.BigIntegerField(help_text="Signed net amount after fees (equals gross when fees unknown)")),
                ("fee_cents", models.BigIntegerField(default=0, help_text="Gateway fee in smallest currency unit")),
                ("currency", models.CharField(help_text="ISO 4217 currency code (uppercase)", max_length=3)),
                ("occurred_at", models.DateTimeField(db_index=True, help_text="When the money moved at the gateway")),
                ("gateway_object_id", models.CharField(blank=True, default="", help_text="Gateway object ID (cs_xxx, in_xxx, re_xxx, dp_xxx)", max_length=255)),
                ("gateway_charge_ref", models.CharField(blank=True, db_index=True, help_text="Gateway charge ID (ch_xxx) used for refund/dispute linkage", max_length=255, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Additional context for the entry")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When the entry was recorded")),
                ("coupon", models.ForeignKey(blank=True, help_text="Coupon redeemed by this charge", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="revenue_entries", to="billing.coupon")),
                ("membership", models.ForeignKey(blank=True, help_text="Membership the entry relates to, when resolvable", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="revenue_entries", to="billing.membership")),
            ],
            options={
                "verbose_name": "Revenue Entry",
                "verbose_name_plural": "Revenue Entries",
                "ordering": ["-occurred_at", "-created_at"],
                "indexes": [
                    models.Index(fields=["group_id", "occurred_at"], name="billing_rev_group_occ_idx"),
                    models.Index(fields=["group_id", "currency"], name="billing_rev_group_cur_idx"),
                    models.Index(fields=["membership", "occurred_at"], name="billing_rev_member_occ_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(("amount_gross_cents__gt", 0), ("entry_type", "charge"))
                            | models.Q(("amount_gross_cents__lt", 0), ("entry_type__in", ["refund", "chargeback"]))
                        ),
                        name="revenue_entry_amount_sign_matches_type",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RefundRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("external_refund_id", models.CharField(help_text="Gateway refund ID (re_xxx)", max_length=255, unique=True)),
                ("group_id", models.UUIDField(db_index=True, help_text="UUID of the group the refunded payment belongs to")),
                ("user_id", models.UUIDField(blank=True, help_text="UUID of the refunded member, when known", null=True)),
                ("charge_ref", models.CharField(db_index=True, help_text="Gateway charge ID (ch_xxx)", max_length=255)),
                ("payment_intent_ref", models.CharField(blank=True, help_text="Gateway payment intent ID (pi_xxx)", max_length=255, null=True)),
                ("amount_cents", models.PositiveBigIntegerField(help_text="Refunded amount in smallest currency unit")),
                ("currency", models.CharField(help_text="ISO 4217 currency code (uppercase)", max_length=3)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("requires_action", "Requires Action"), ("succeeded", "Succeeded"), ("failed", "Failed"), ("canceled", "Canceled")], db_index=True, default="pending", help_text="Gateway refund status", max_length=20)),
                ("reason", models.CharField(blank=True, help_text="Gateway refund reason", max_length=100, null=True)),
                ("failure_reason", models.CharField(blank=True, help_text="Gateway failure reason, if the refund failed", max_length=255, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, help_text="When the refund was created at the gateway", null=True)),
                ("last_event_id", models.CharField(help_text="Newest webhook event ID that updated this row", max_length=255)),
                ("membership", models.ForeignKey(blank=True, help_text="Membership the refunded payment belongs to", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="refunds", to="billing.membership")),
            ],
            options={
                "verbose_name": "Refund Record",
                "verbose_name_plural": "Refund Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["group_id", "status"], name="billing_ref_group_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount_cents__gt", 0)), name="refund_record_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DisputeRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("external_dispute_id", models.CharField(help_text="Gateway dispute ID (dp_xxx)", max_length=255, unique=True)),
                ("group_id", models.UUIDField(db_index=True, help_text="UUID of the group the disputed payment belongs to")),
                ("user_id", models.UUIDField(blank=True, help_text="UUID of the disputing member, when known", null=True)),
                ("charge_ref", models.CharField(db_index=True, help_text="Gateway charge ID (ch_xxx)", max_length=255)),
                ("payment_intent_ref", models.CharField(blank=True, help_text="Gateway payment intent ID (pi_xxx)", max_length=255, null=True)),
                ("amount_cents", models.PositiveBigIntegerField(help_text="Disputed amount in smallest currency unit")),
                ("currency", models.CharField(help_text="ISO 4217 currency code (uppercase)", max_length=3)),
                ("status", models.CharField(choices=[("warning_needs_response", "Warning: Needs Response"), ("warning_under_review", "Warning: Under Review"), ("warning_closed", "Warning: Closed"), ("needs_response", "Needs Response"), ("under_review", "Under Review"), ("won", "Won"), ("lost", "Lost"), ("charge_refunded", "Charge Refunded")], db_index=True, help_text="Gateway dispute status", max_length=30)),
                ("reason", models.CharField(blank=True, help_text="Gateway dispute reason (e.g., 'fraudulent')", max_length=100, null=True)),
                ("evidence_due_at", models.DateTimeField(blank=True, help_text="Deadline for submitting dispute evidence", null=True)),
                ("closed_at", models.DateTimeField(blank=True, help_text="When the dispute was closed", null=True)),
                ("last_event_id", models.CharField(help_text="Newest webhook event ID that updated this row", max_length=255)),
                ("chargeback_entry", models.OneToOneField(blank=True, help_text="Chargeback ledger entry booked when the dispute was lost", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="dispute", to="billing.revenueentry")),
                ("membership", models.ForeignKey(blank=True, help_text="Membership the disputed payment belongs to", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="disputes", to="billing.membership")),
            ],
            options={
                "verbose_name": "Dispute Record",
                "verbose_name_plural": "Dispute Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["group_id", "status"], name="billing_dsp_group_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("external_event_id", models.CharField(help_text="Gateway event ID (evt_xxx) - unique constraint for idempotency", max_length=255, unique=True)),
                ("event_type", models.CharField(db_index=True, help_text="Gateway event type (e.g., 'invoice.payment_succeeded')", max_length=100)),
                ("payload", models.JSONField(help_text="Full verified webhook payload (JSON)")),
                ("status", models.CharField(choices=[("applied", "Applied"), ("skipped", "Skipped"), ("unresolved", "Unresolved")], db_index=True, default="applied", help_text="Outcome of the last processing attempt", max_length=20)),
                ("processed_at", models.DateTimeField(blank=True, help_text="When the event was last processed", null=True)),
                ("error_message", models.TextField(blank=True, help_text="Why the event could not be linked to billing records", null=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0, help_text="Number of replay attempts")),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="billing_whe_status_created_idx"),
                    models.Index(fields=["event_type", "created_at"], name="billing_whe_type_created_idx"),
                    models.Index(fields=["status", "retry_count"], name="billing_whe_status_retry_idx"),
                ],
            },
        ),
    ]
