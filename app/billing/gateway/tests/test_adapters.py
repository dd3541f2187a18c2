"""
Tests for the Stripe webhook gateway adapter.

Signatures are computed the same way Stripe computes them, so these
tests exercise the stripe SDK's real verification path.
"""

import json
import time

import pytest

from billing.exceptions import (
    GatewayUnavailableError,
    MalformedPayloadError,
    SignatureInvalidError,
)
from billing.gateway import StripeWebhookGateway, WebhookGateway, get_webhook_gateway
from billing.tests.helpers import WEBHOOK_SECRET, FakeGateway, sign_payload


@pytest.fixture
def gateway():
    return StripeWebhookGateway(tolerance=300)


@pytest.fixture
def configured_gateway(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    return settings


# =============================================================================
# Signature Verification Tests
# =============================================================================


class TestStripeWebhookGateway:
    """Tests for StripeWebhookGateway.verify_event."""

    def test_valid_signature_returns_event(self, gateway):
        body = json.dumps({"id": "evt_ok", "type": "charge.refunded"})

        event = gateway.verify_event(body.encode(), sign_payload(body), WEBHOOK_SECRET)

        assert event == {"id": "evt_ok", "type": "charge.refunded"}

    def test_wrong_secret_rejected(self, gateway):
        body = json.dumps({"id": "evt_bad"})

        with pytest.raises(SignatureInvalidError):
            gateway.verify_event(body.encode(), sign_payload(body, "whsec_other"), WEBHOOK_SECRET)

    def test_tampered_body_rejected(self, gateway):
        body = json.dumps({"id": "evt_1", "amount": 100})
        header = sign_payload(body)
        tampered = json.dumps({"id": "evt_1", "amount": 1})

        with pytest.raises(SignatureInvalidError):
            gateway.verify_event(tampered.encode(), header, WEBHOOK_SECRET)

    def test_expired_timestamp_rejected(self, gateway):
        body = json.dumps({"id": "evt_old"})
        header = sign_payload(body, timestamp=int(time.time()) - 3600)

        with pytest.raises(SignatureInvalidError):
            gateway.verify_event(body.encode(), header, WEBHOOK_SECRET)

    def test_garbage_header_rejected(self, gateway):
        with pytest.raises(SignatureInvalidError):
            gateway.verify_event(b"{}", "not-a-signature", WEBHOOK_SECRET)

    def test_signed_non_json_rejected(self, gateway):
        body = "not json"

        with pytest.raises(MalformedPayloadError):
            gateway.verify_event(body.encode(), sign_payload(body), WEBHOOK_SECRET)

    def test_signed_json_array_rejected(self, gateway):
        body = json.dumps([{"id": "evt_1"}])

        with pytest.raises(MalformedPayloadError):
            gateway.verify_event(body.encode(), sign_payload(body), WEBHOOK_SECRET)

    def test_invalid_utf8_rejected(self, gateway):
        with pytest.raises(MalformedPayloadError):
            gateway.verify_event(b"\xff\xfe", "t=1,v1=abc", WEBHOOK_SECRET)

    def test_satisfies_protocol(self, gateway):
        assert isinstance(gateway, WebhookGateway)


# =============================================================================
# Gateway Resolution Tests
# =============================================================================


class TestGetWebhookGateway:
    """Tests for get_webhook_gateway."""

    def test_unconfigured_keys(self, settings):
        settings.STRIPE_SECRET_KEY = ""
        settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET

        with pytest.raises(GatewayUnavailableError) as exc_info:
            get_webhook_gateway()

        assert exc_info.value.http_status == 503

    def test_missing_webhook_secret(self, settings):
        settings.STRIPE_SECRET_KEY = "sk_test_123"
        settings.STRIPE_WEBHOOK_SECRET = ""

        with pytest.raises(GatewayUnavailableError):
            get_webhook_gateway()

    def test_default_gateway(self, configured_gateway):
        assert isinstance(get_webhook_gateway(), StripeWebhookGateway)

    def test_custom_gateway_from_settings(self, configured_gateway):
        configured_gateway.BILLING_WEBHOOK_GATEWAY = "billing.tests.helpers.FakeGateway"

        assert isinstance(get_webhook_gateway(), FakeGateway)

    def test_unimportable_gateway(self, configured_gateway):
        configured_gateway.BILLING_WEBHOOK_GATEWAY = "billing.gateway.missing.Gateway"

        with pytest.raises(GatewayUnavailableError):
            get_webhook_gateway()
