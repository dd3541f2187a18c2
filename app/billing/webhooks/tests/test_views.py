"""
Tests for the Stripe webhook endpoint.

Requests are signed with the configured test secret, so the endpoint
runs the real signature verification.
"""

import json
import uuid
from unittest.mock import patch

import pytest
from django.urls import reverse

from billing.exceptions import PersistenceConflictError
from billing.models import Membership, RevenueEntry, WebhookEvent
from billing.tests.helpers import (
    WEBHOOK_SECRET,
    checkout_session_completed,
    invoice_payment_succeeded,
    sign_payload,
    stripe_event,
)


@pytest.fixture
def stripe_settings(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    return settings


@pytest.fixture
def post_webhook(client, stripe_settings):
    """POST a payload to the webhook endpoint, signed unless told otherwise."""

    def post(payload, signature=None, body=None):
        body = body if body is not None else json.dumps(payload)
        headers = {}
        if signature is None:
            signature = sign_payload(body)
        if signature:
            headers["HTTP_STRIPE_SIGNATURE"] = signature
        return client.post(
            reverse("billing:stripe_webhook"),
            data=body,
            content_type="application/json",
            **headers,
        )

    return post


class TestStripeWebhookView:
    """Tests for the stripe_webhook view."""

    def test_unconfigured_gateway(self, db, client, settings):
        settings.STRIPE_SECRET_KEY = ""
        settings.STRIPE_WEBHOOK_SECRET = ""
        body = json.dumps(stripe_event("customer.created", {"id": "cus_1"}))

        response = client.post(
            reverse("billing:stripe_webhook"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign_payload(body),
        )

        assert response.status_code == 503
        assert response.json()["error_code"] == "GATEWAY_UNAVAILABLE"

    def test_missing_signature(self, db, post_webhook):
        response = post_webhook(stripe_event("customer.created", {"id": "cus_1"}), signature="")

        assert response.status_code == 400
        assert response.json()["error_code"] == "SIGNATURE_INVALID"

    def test_bad_signature(self, db, post_webhook, group_id):
        payload = checkout_session_completed(group_id=group_id, user_id=uuid.uuid4())
        body = json.dumps(payload)

        response = post_webhook(payload, signature=sign_payload(body, "whsec_wrong"))

        assert response.status_code == 400
        assert response.json()["error_code"] == "SIGNATURE_INVALID"
        assert not WebhookEvent.objects.exists()
        assert not Membership.objects.exists()

    def test_malformed_payload(self, db, post_webhook):
        response = post_webhook(None, body=json.dumps({"type": "charge.refunded"}))

        assert response.status_code == 400
        assert response.json()["error_code"] == "MALFORMED_PAYLOAD"

    def test_out_of_range_timestamp_rejected(self, db, post_webhook, group_id):
        payload = checkout_session_completed(
            group_id=group_id, user_id=uuid.uuid4(), created=10**20
        )

        response = post_webhook(payload)

        assert response.status_code == 400
        assert response.json()["error_code"] == "MALFORMED_PAYLOAD"
        assert not WebhookEvent.objects.exists()

    def test_out_of_range_amount_rejected(self, db, post_webhook, group_id):
        payload = checkout_session_completed(
            group_id=group_id, user_id=uuid.uuid4(), amount_total=10**30
        )

        response = post_webhook(payload)

        assert response.status_code == 400
        assert response.json()["error_code"] == "MALFORMED_PAYLOAD"
        assert not RevenueEntry.objects.exists()

    def test_applied(self, db, post_webhook, group_id):
        user_id = uuid.uuid4()
        payload = checkout_session_completed(group_id=group_id, user_id=user_id)

        response = post_webhook(payload)

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}
        assert Membership.objects.get(group_id=group_id, user_id=user_id).is_active
        assert RevenueEntry.objects.count() == 1

    def test_duplicate(self, db, post_webhook, group_id):
        payload = checkout_session_completed(group_id=group_id, user_id=uuid.uuid4())

        post_webhook(payload)
        response = post_webhook(payload)

        assert response.status_code == 200
        assert response.json()["outcome"] == "duplicate"
        assert RevenueEntry.objects.count() == 1

    def test_ignored(self, db, post_webhook):
        response = post_webhook(stripe_event("customer.created", {"id": "cus_1"}))

        assert response.status_code == 200
        assert response.json() == {
            "received": True,
            "outcome": "ignored",
            "ignored": "customer.created",
        }

    def test_unresolved_acknowledged(self, db, post_webhook):
        response = post_webhook(invoice_payment_succeeded(subscription="sub_nobody"))

        assert response.status_code == 200
        assert response.json()["outcome"] == "unresolved"
        assert WebhookEvent.objects.get().is_unresolved

    def test_persistence_failure(self, db, post_webhook):
        with patch(
            "billing.webhooks.views.process_webhook_event",
            side_effect=PersistenceConflictError("Webhook event could not be persisted"),
        ):
            response = post_webhook(stripe_event("customer.created", {"id": "cus_1"}))

        assert response.status_code == 500
        assert response.json()["error_code"] == "PERSISTENCE_CONFLICT"

    def test_get_not_allowed(self, db, client):
        response = client.get(reverse("billing:stripe_webhook"))

        assert response.status_code == 405
