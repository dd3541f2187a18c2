"""
Tests for webhook event handlers.

Handlers are called directly here, without the processor's guard row,
so each test sees exactly the writes one handler makes.
"""

import uuid
from unittest.mock import patch

import pytest

from billing.models import Coupon, DisputeRecord, Membership, RefundRecord, RevenueEntry
from billing.state_machines import (
    DisputeStatus,
    MembershipStatus,
    RefundStatus,
    RevenueEntryType,
    WebhookEventStatus,
)
from billing.tests.factories import CouponFactory, MembershipFactory, RevenueEntryFactory
from billing.tests.helpers import (
    charge_refunded,
    checkout_session_completed,
    dispute_event,
    invoice_payment_failed,
    invoice_payment_succeeded,
    refund_line,
)
from billing.webhooks.events import EVENT_DECODERS, decode_event
from billing.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_event

SAMPLE_PAYLOADS = {
    "checkout.session.completed": lambda: checkout_session_completed(
        group_id=uuid.uuid4(), user_id=uuid.uuid4()
    ),
    "invoice.payment_succeeded": lambda: invoice_payment_succeeded(subscription="sub_1"),
    "invoice.payment_failed": lambda: invoice_payment_failed(subscription="sub_1"),
    "charge.refunded": lambda: charge_refunded(charge="ch_1", refunds=[refund_line()]),
    "charge.dispute.created": lambda: dispute_event(
        "charge.dispute.created", dispute_id="dp_1", charge="ch_1", status="needs_response"
    ),
    "charge.dispute.updated": lambda: dispute_event(
        "charge.dispute.updated", dispute_id="dp_1", charge="ch_1", status="under_review"
    ),
    "charge.dispute.closed": lambda: dispute_event(
        "charge.dispute.closed", dispute_id="dp_1", charge="ch_1", status="lost"
    ),
    "charge.dispute.funds_reinstated": lambda: dispute_event(
        "charge.dispute.funds_reinstated", dispute_id="dp_1", charge="ch_1", status="won"
    ),
}


def handle(payload):
    return dispatch_event(decode_event(payload))


@pytest.fixture
def paid_charge(db):
    """A membership with a booked charge that refunds and disputes can reference."""
    membership = MembershipFactory(payment_intent_ref="pi_paid", customer_ref="cus_paid")
    RevenueEntryFactory(
        group_id=membership.group_id,
        membership=membership,
        user_id=membership.user_id,
        gateway_charge_ref="ch_paid",
    )
    return membership


# =============================================================================
# Registry Tests
# =============================================================================


class TestHandlerRegistry:
    """Tests for the handler registry and dispatch."""

    def test_every_decoded_type_has_handler(self):
        assert set(SAMPLE_PAYLOADS) == set(EVENT_DECODERS)

        for event_type, build in SAMPLE_PAYLOADS.items():
            event = decode_event(build())
            assert type(event) in WEBHOOK_HANDLERS, event_type

    def test_unknown_event_skipped(self):
        result = handle({"id": "evt_unknown", "type": "customer.created"})

        assert result.success
        assert result.data == WebhookEventStatus.SKIPPED


# =============================================================================
# Checkout Handler Tests
# =============================================================================


class TestCheckoutSessionCompleted:
    """Tests for handle_checkout_session_completed."""

    def test_unpaid_session_skipped(self, db, group_id):
        result = handle(
            checkout_session_completed(
                group_id=group_id, user_id=uuid.uuid4(), payment_status="unpaid"
            )
        )

        assert result.data == WebhookEventStatus.SKIPPED
        assert not Membership.objects.exists()

    def test_missing_metadata_unresolved(self, db):
        result = handle(checkout_session_completed(group_id=None, user_id=uuid.uuid4()))

        assert not result.success
        assert result.error_code == "UNRESOLVED_LINKAGE"

    def test_payment_mode_books_charge(self, db, group_id):
        user_id = uuid.uuid4()
        coupon = CouponFactory(group_id=group_id)
        payload = checkout_session_completed(
            group_id=group_id,
            user_id=user_id,
            payment_intent="pi_checkout",
            metadata={"couponId": str(coupon.id), "billingPeriod": "month"},
        )

        with patch("billing.tasks.send_membership_receipt.delay") as mock_delay:
            result = handle(payload)

        assert result.data == WebhookEventStatus.APPLIED
        membership = Membership.objects.get(group_id=group_id, user_id=user_id)
        assert membership.status == MembershipStatus.ACTIVE
        assert membership.payment_intent_ref == "pi_checkout"
        assert membership.checkout_session_ref == payload["data"]["object"]["id"]
        assert membership.expires_at is not None

        entry = RevenueEntry.objects.get(external_event_id=payload["id"])
        assert entry.entry_type == RevenueEntryType.CHARGE
        assert entry.amount_gross_cents == 2500
        assert entry.currency == "EUR"
        assert entry.membership_id == membership.id
        assert entry.coupon_id == coupon.id
        assert Coupon.objects.get(pk=coupon.pk).redemption_count == 1
        # Receipts are only queued once the transaction commits
        mock_delay.assert_not_called()

    def test_receipt_queued_on_commit(self, db, group_id, django_capture_on_commit_callbacks):
        payload = checkout_session_completed(
            group_id=group_id, user_id=uuid.uuid4(), email="payer@example.com"
        )

        with patch("billing.tasks.send_membership_receipt.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                handle(payload)

        mock_delay.assert_called_once()
        kwargs = mock_delay.call_args.kwargs
        assert kwargs["recipient_email"] == "payer@example.com"
        assert kwargs["amount_cents"] == 2500
        assert kwargs["currency"] == "EUR"
        assert kwargs["event_id"] == payload["id"]

    def test_subscription_mode_books_nothing(self, db, group_id):
        user_id = uuid.uuid4()

        result = handle(
            checkout_session_completed(
                group_id=group_id,
                user_id=user_id,
                mode="subscription",
                subscription="sub_checkout",
            )
        )

        assert result.data == WebhookEventStatus.APPLIED
        membership = Membership.objects.get(group_id=group_id, user_id=user_id)
        assert membership.status == MembershipStatus.ACTIVE
        assert membership.subscription_ref == "sub_checkout"
        assert not RevenueEntry.objects.exists()

    def test_zero_amount_grants_without_entry(self, db, group_id):
        user_id = uuid.uuid4()

        result = handle(
            checkout_session_completed(group_id=group_id, user_id=user_id, amount_total=0)
        )

        assert result.data == WebhookEventStatus.APPLIED
        assert Membership.objects.get(group_id=group_id, user_id=user_id).is_active
        assert not RevenueEntry.objects.exists()


# =============================================================================
# Invoice Handler Tests
# =============================================================================


class TestInvoicePaymentSucceeded:
    """Tests for handle_invoice_payment_succeeded."""

    def test_renews_and_books_charge(self, active_membership):
        payload = invoice_payment_succeeded(
            subscription="sub_test_active",
            charge="ch_renewal",
            paid_at=1_735_689_600,
            period_end=1_738_368_000,
        )

        result = handle(payload)

        assert result.data == WebhookEventStatus.APPLIED
        membership = Membership.objects.get(pk=active_membership.pk)
        assert membership.status == MembershipStatus.ACTIVE
        assert membership.renewed_at.timestamp() == 1_735_689_600
        assert membership.expires_at.timestamp() == 1_738_368_000

        entry = RevenueEntry.objects.get(external_event_id=payload["id"])
        assert entry.gateway_charge_ref == "ch_renewal"
        assert entry.membership_id == active_membership.id
        assert entry.group_id == active_membership.group_id

    def test_reactivates_past_due(self, past_due_membership):
        handle(invoice_payment_succeeded(subscription="sub_test_past_due"))

        assert Membership.objects.get(pk=past_due_membership.pk).status == MembershipStatus.ACTIVE

    def test_creates_membership_from_metadata(self, db, group_id):
        user_id = uuid.uuid4()

        result = handle(
            invoice_payment_succeeded(
                subscription="sub_early",
                metadata={"groupId": str(group_id), "userId": str(user_id)},
            )
        )

        assert result.data == WebhookEventStatus.APPLIED
        membership = Membership.objects.get(subscription_ref="sub_early")
        assert membership.group_id == group_id
        assert membership.user_id == user_id
        assert membership.status == MembershipStatus.ACTIVE

    def test_unknown_subscription_without_metadata_unresolved(self, db):
        result = handle(invoice_payment_succeeded(subscription="sub_unknown"))

        assert not result.success
        assert result.error_code == "UNRESOLVED_LINKAGE"

    def test_invoice_without_subscription_skipped(self, db):
        result = handle(invoice_payment_succeeded(subscription=None))

        assert result.data == WebhookEventStatus.SKIPPED

    def test_promotion_code_redeems_coupon(self, active_membership):
        coupon = CouponFactory(
            group_id=active_membership.group_id, external_promotion_id="promo_renewal"
        )
        payload = invoice_payment_succeeded(
            subscription="sub_test_active", promotion_code="promo_renewal"
        )

        handle(payload)

        assert RevenueEntry.objects.get(external_event_id=payload["id"]).coupon_id == coupon.id
        assert Coupon.objects.get(pk=coupon.pk).redemption_count == 1


class TestInvoicePaymentFailed:
    """Tests for handle_invoice_payment_failed."""

    def test_marks_past_due(self, active_membership):
        result = handle(invoice_payment_failed(subscription="sub_test_active"))

        assert result.data == WebhookEventStatus.APPLIED
        assert Membership.objects.get(pk=active_membership.pk).status == MembershipStatus.PAST_DUE
        assert not RevenueEntry.objects.exists()

    def test_unknown_subscription_unresolved(self, db):
        result = handle(invoice_payment_failed(subscription="sub_unknown"))

        assert result.error_code == "UNRESOLVED_LINKAGE"


# =============================================================================
# Refund Handler Tests
# =============================================================================


class TestChargeRefunded:
    """Tests for handle_charge_refunded."""

    def test_pending_then_succeeded(self, paid_charge):
        pending = charge_refunded(
            charge="ch_paid",
            payment_intent="pi_paid",
            refunds=[refund_line(refund_id="re_1", amount=1500, status="pending")],
        )
        succeeded = charge_refunded(
            charge="ch_paid",
            payment_intent="pi_paid",
            refunds=[refund_line(refund_id="re_1", amount=1500, status="succeeded")],
        )

        handle(pending)
        assert RefundRecord.objects.get().status == RefundStatus.PENDING
        assert not RevenueEntry.objects.filter(entry_type=RevenueEntryType.REFUND).exists()

        result = handle(succeeded)

        assert result.data == WebhookEventStatus.APPLIED
        record = RefundRecord.objects.get()
        assert record.status == RefundStatus.SUCCEEDED
        assert record.membership_id == paid_charge.id
        refund = RevenueEntry.objects.get(entry_type=RevenueEntryType.REFUND)
        assert refund.amount_gross_cents == -1500
        assert refund.external_event_id == "re_1"
        assert refund.source_event_id == succeeded["id"]

    def test_redelivered_refund_booked_once(self, paid_charge):
        lines = [refund_line(refund_id="re_once")]

        handle(charge_refunded(charge="ch_paid", refunds=lines))
        handle(charge_refunded(charge="ch_paid", refunds=lines))

        assert RefundRecord.objects.count() == 1
        assert RevenueEntry.objects.filter(entry_type=RevenueEntryType.REFUND).count() == 1

    def test_linked_through_charge_entry(self, paid_charge):
        handle(charge_refunded(charge="ch_paid", refunds=[refund_line()]))

        assert RefundRecord.objects.get().group_id == paid_charge.group_id

    def test_unlinked_charge_unresolved(self, db):
        result = handle(charge_refunded(charge="ch_unknown", refunds=[refund_line()]))

        assert result.error_code == "UNRESOLVED_LINKAGE"
        assert not RefundRecord.objects.exists()

    def test_no_refund_lines_skipped(self, paid_charge):
        result = handle(charge_refunded(charge="ch_paid", refunds=[]))

        assert result.data == WebhookEventStatus.SKIPPED

    def test_zero_amount_line_ignored(self, paid_charge):
        result = handle(charge_refunded(charge="ch_paid", refunds=[refund_line(amount=0)]))

        assert result.data == WebhookEventStatus.APPLIED
        assert not RefundRecord.objects.exists()


# =============================================================================
# Dispute Handler Tests
# =============================================================================


class TestDisputes:
    """Tests for handle_dispute_created and handle_dispute_closed."""

    def test_created_records_without_entry(self, paid_charge):
        result = handle(
            dispute_event(
                "charge.dispute.created", dispute_id="dp_1", charge="ch_paid", status="needs_response"
            )
        )

        assert result.data == WebhookEventStatus.APPLIED
        dispute = DisputeRecord.objects.get()
        assert dispute.status == DisputeStatus.NEEDS_RESPONSE
        assert dispute.membership_id == paid_charge.id
        assert not RevenueEntry.objects.filter(entry_type=RevenueEntryType.CHARGEBACK).exists()

    def test_lost_posts_chargeback(self, paid_charge):
        handle(
            dispute_event(
                "charge.dispute.created", dispute_id="dp_1", charge="ch_paid", status="needs_response"
            )
        )
        closed = dispute_event(
            "charge.dispute.closed", dispute_id="dp_1", charge="ch_paid", status="lost"
        )

        handle(closed)

        dispute = DisputeRecord.objects.get()
        chargeback = RevenueEntry.objects.get(entry_type=RevenueEntryType.CHARGEBACK)
        assert dispute.status == DisputeStatus.LOST
        assert dispute.closed_at is not None
        assert dispute.chargeback_entry_id == chargeback.id
        assert chargeback.amount_gross_cents == -2500
        assert chargeback.external_event_id == closed["id"]
        assert chargeback.membership_id == paid_charge.id

    def test_won_posts_nothing(self, paid_charge):
        handle(
            dispute_event("charge.dispute.closed", dispute_id="dp_1", charge="ch_paid", status="won")
        )

        assert DisputeRecord.objects.get().status == DisputeStatus.WON
        assert not RevenueEntry.objects.filter(entry_type=RevenueEntryType.CHARGEBACK).exists()

    def test_second_closure_posts_no_second_chargeback(self, paid_charge):
        for _ in range(2):
            handle(
                dispute_event(
                    "charge.dispute.closed", dispute_id="dp_1", charge="ch_paid", status="lost"
                )
            )

        assert RevenueEntry.objects.filter(entry_type=RevenueEntryType.CHARGEBACK).count() == 1

    def test_unlinked_dispute_unresolved(self, db):
        result = handle(
            dispute_event(
                "charge.dispute.created", dispute_id="dp_x", charge="ch_unknown", status="needs_response"
            )
        )

        assert result.error_code == "UNRESOLVED_LINKAGE"
        assert not DisputeRecord.objects.exists()
