"""
End-to-end reconciliation scenarios.

Each scenario drives signed deliveries through the webhook endpoint and
checks the resulting memberships, ledger and audit records:

1. A paid checkout grants membership and books the charge
2. Redelivery of the same event changes nothing
3. A partial refund books a negative entry against the charge
4. A lost dispute posts exactly one chargeback, after closure
"""

import json
import uuid

import pytest
from django.urls import reverse

from billing.models import DisputeRecord, Membership, RefundRecord, RevenueEntry
from billing.services import RevenueService
from billing.state_machines import (
    DisputeStatus,
    MembershipStatus,
    RefundStatus,
    RevenueEntryType,
)
from billing.tests.helpers import (
    WEBHOOK_SECRET,
    charge_refunded,
    checkout_session_completed,
    dispute_event,
    invoice_payment_failed,
    invoice_payment_succeeded,
    refund_line,
    sign_payload,
)


@pytest.fixture
def deliver(client, settings, db):
    """Deliver a signed event to the webhook endpoint and return the JSON body."""
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET

    def post(payload):
        body = json.dumps(payload)
        response = client.post(
            reverse("billing:stripe_webhook"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign_payload(body),
        )
        assert response.status_code == 200, response.content
        return response.json()

    return post


@pytest.fixture
def member():
    return {"group_id": uuid.uuid4(), "user_id": uuid.uuid4()}


def paid_checkout(member, **kwargs):
    return checkout_session_completed(
        group_id=member["group_id"],
        user_id=member["user_id"],
        payment_intent="pi_member",
        **kwargs,
    )


class TestCheckoutScenario:
    """A paid checkout grants access and books one charge."""

    def test_checkout_grants_membership(self, deliver, member):
        body = deliver(paid_checkout(member, amount_total=2500, currency="eur"))

        assert body["outcome"] == "applied"
        membership = Membership.objects.get(**member)
        assert membership.status == MembershipStatus.ACTIVE
        entry = RevenueEntry.objects.get()
        assert entry.entry_type == RevenueEntryType.CHARGE
        assert entry.amount_gross_cents == 2500
        assert entry.currency == "EUR"
        assert entry.membership_id == membership.id

    def test_redelivery_changes_nothing(self, deliver, member):
        payload = paid_checkout(member)

        first = deliver(payload)
        second = deliver(payload)

        assert first["outcome"] == "applied"
        assert second["outcome"] == "duplicate"
        assert Membership.objects.filter(**member).count() == 1
        assert RevenueEntry.objects.count() == 1


class TestRefundScenario:
    """A partial refund leaves the remaining balance on the membership."""

    def test_partial_refund(self, deliver, member):
        deliver(paid_checkout(member, amount_total=2500))

        deliver(
            charge_refunded(
                charge="ch_member",
                payment_intent="pi_member",
                refunds=[refund_line(refund_id="re_member", amount=1500)],
            )
        )

        membership = Membership.objects.get(**member)
        record = RefundRecord.objects.get()
        assert record.external_refund_id == "re_member"
        assert record.status == RefundStatus.SUCCEEDED
        refund = RevenueEntry.objects.get(entry_type=RevenueEntryType.REFUND)
        assert refund.amount_gross_cents == -1500
        assert RevenueService.balance_for_membership(membership.id) == 1000


class TestDisputeScenario:
    """A lost dispute posts one chargeback, only once it is closed."""

    def test_lost_dispute(self, deliver, member):
        deliver(paid_checkout(member, amount_total=2500))

        deliver(
            dispute_event(
                "charge.dispute.created",
                dispute_id="dp_member",
                charge="ch_member",
                payment_intent="pi_member",
                status="needs_response",
            )
        )
        assert not RevenueEntry.objects.filter(entry_type=RevenueEntryType.CHARGEBACK).exists()

        closed = dispute_event(
            "charge.dispute.closed",
            dispute_id="dp_member",
            charge="ch_member",
            payment_intent="pi_member",
            status="lost",
        )
        deliver(closed)
        deliver(closed)

        dispute = DisputeRecord.objects.get()
        assert dispute.status == DisputeStatus.LOST
        chargebacks = RevenueEntry.objects.filter(entry_type=RevenueEntryType.CHARGEBACK)
        assert chargebacks.count() == 1
        assert chargebacks.get().amount_gross_cents == -2500
        assert dispute.chargeback_entry_id == chargebacks.get().id
        membership = Membership.objects.get(**member)
        assert RevenueService.balance_for_membership(membership.id) == 0


class TestSubscriptionScenario:
    """A subscription survives a failed payment and recovers on the next one."""

    def test_failure_and_recovery(self, deliver, member):
        deliver(
            checkout_session_completed(
                group_id=member["group_id"],
                user_id=member["user_id"],
                mode="subscription",
                subscription="sub_member",
            )
        )
        deliver(invoice_payment_succeeded(subscription="sub_member"))
        deliver(invoice_payment_failed(subscription="sub_member"))

        assert Membership.objects.get(**member).status == MembershipStatus.PAST_DUE

        deliver(invoice_payment_succeeded(subscription="sub_member"))

        membership = Membership.objects.get(**member)
        assert membership.status == MembershipStatus.ACTIVE
        assert RevenueEntry.objects.filter(membership=membership).count() == 2
