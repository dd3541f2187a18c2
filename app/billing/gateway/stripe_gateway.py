"""
Stripe implementation of the webhook verification capability.

Uses the stripe SDK's signature check (HMAC-SHA256 over
"<timestamp>.<payload>" with replay tolerance) and then parses the body
as plain JSON, so the rest of the billing core only ever sees dicts.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key (must be set for the gateway
  to count as configured)
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_WEBHOOK_TOLERANCE_SECONDS: Maximum signature age (default: 300)
- BILLING_WEBHOOK_GATEWAY: Dotted path of the gateway class to use

Usage:
    from billing.gateway import get_webhook_gateway

    gateway = get_webhook_gateway()
    event = gateway.verify_event(request.body, signature, secret)
"""

from __future__ import annotations

import json
import logging
from typing import Any

import stripe
from django.conf import settings
from django.utils.module_loading import import_string

from billing.exceptions import (
    GatewayUnavailableError,
    MalformedPayloadError,
    SignatureInvalidError,
)
from billing.gateway.base import WebhookGateway

logger = logging.getLogger(__name__)


class StripeWebhookGateway:
    """
    Verifies Stripe webhook deliveries.

    Stateless; safe to share between requests and Celery workers.
    """

    def __init__(self, tolerance: int | None = None):
        self.tolerance = (
            tolerance
            if tolerance is not None
            else settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        )

    def verify_event(
        self,
        payload: bytes,
        signature: str,
        secret: str,
    ) -> dict[str, Any]:
        """
        Verify the Stripe-Signature header and parse the payload.

        Args:
            payload: Raw request body bytes
            signature: Stripe-Signature header value
            secret: Webhook signing secret

        Returns:
            Parsed event data dict

        Raises:
            SignatureInvalidError: Signature missing, stale or mismatched
            MalformedPayloadError: Body is not a UTF-8 JSON object
        """
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise MalformedPayloadError(
                "Webhook payload is not valid UTF-8",
                details={"error": str(e)},
            )

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                secret,
                tolerance=self.tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalidError(
                "Invalid webhook signature",
                details={"error": str(e)},
            )

        try:
            event_data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError(
                "Webhook payload is not valid JSON",
                details={"error": str(e)},
            )

        if not isinstance(event_data, dict):
            raise MalformedPayloadError("Webhook payload is not a JSON object")

        return event_data


def get_webhook_gateway() -> WebhookGateway:
    """
    Resolve the configured webhook gateway.

    Raises:
        GatewayUnavailableError: Stripe keys are not configured or the
            configured gateway class cannot be imported
    """
    if not settings.STRIPE_SECRET_KEY or not settings.STRIPE_WEBHOOK_SECRET:
        logger.error(
            "Payment gateway not configured",
            extra={
                "has_secret_key": bool(settings.STRIPE_SECRET_KEY),
                "has_webhook_secret": bool(settings.STRIPE_WEBHOOK_SECRET),
            },
        )
        raise GatewayUnavailableError("Payment gateway is not configured")

    try:
        gateway_class = import_string(settings.BILLING_WEBHOOK_GATEWAY)
    except ImportError as e:
        logger.error(
            "Configured webhook gateway cannot be imported",
            extra={"gateway": settings.BILLING_WEBHOOK_GATEWAY},
        )
        raise GatewayUnavailableError(
            "Payment gateway is not available",
            details={"gateway": settings.BILLING_WEBHOOK_GATEWAY, "error": str(e)},
        )

    return gateway_class()
