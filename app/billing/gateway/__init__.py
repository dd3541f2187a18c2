"""
Payment gateway capabilities used by the billing core.

Only webhook signature verification is needed; everything else the core
does is driven by the verified event payloads.

Usage:
    from billing.gateway import get_webhook_gateway

    gateway = get_webhook_gateway()
    event_data = gateway.verify_event(payload, signature, secret)
"""

from billing.gateway.base import WebhookGateway
from billing.gateway.stripe_gateway import StripeWebhookGateway, get_webhook_gateway

__all__ = [
    "StripeWebhookGateway",
    "WebhookGateway",
    "get_webhook_gateway",
]
