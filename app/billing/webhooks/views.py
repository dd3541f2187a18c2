"""
Webhook endpoint view for the payment gateway.

The view:
1. Resolves the configured gateway (503 if unconfigured)
2. Verifies the webhook signature (400 if missing or invalid)
3. Applies the event synchronously, exactly once
4. Returns a JSON acknowledgement with the outcome

Events are applied inside the request so the gateway only sees a 2xx once
every financial write is committed. A 5xx means nothing was written and
the gateway should retry.

Usage:
    # In urls.py
    from billing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.exceptions import (
    PersistenceConflictError,
    SignatureInvalidError,
    WebhookError,
)
from billing.gateway import get_webhook_gateway
from billing.state_machines import WebhookOutcome
from billing.webhooks.processor import process_webhook_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and apply Stripe webhook events.

    Security:
    - Signature verification prevents spoofed webhooks
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.external_event_id is unique
    - Duplicate deliveries return 200 with outcome "duplicate"

    Returns:
        JsonResponse with status:
        - 200: Event applied, skipped, unresolved, duplicate or ignored
        - 400: Missing/invalid signature or malformed payload
        - 500: Persistence failure (rolled back)
        - 503: Gateway not configured

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    try:
        gateway = get_webhook_gateway()

        if not signature:
            logger.warning("Webhook received without Stripe-Signature header")
            raise SignatureInvalidError("Missing Stripe-Signature header")

        event_data = gateway.verify_event(
            payload, signature, settings.STRIPE_WEBHOOK_SECRET
        )

        logger.info(
            f"Received Stripe webhook: {event_data.get('type')}",
            extra={
                "event_id": event_data.get("id"),
                "event_type": event_data.get("type"),
            },
        )

        result = process_webhook_event(event_data)
    except (WebhookError, PersistenceConflictError) as e:
        log = logger.error if e.http_status >= 500 else logger.warning
        log(
            f"Webhook rejected: {e.message}",
            extra={"error_code": e.error_code, "status": e.http_status},
        )
        return JsonResponse(e.to_dict(), status=e.http_status)

    body = {"received": True, "outcome": result.outcome}
    if result.outcome == WebhookOutcome.IGNORED:
        body["ignored"] = result.event_type
    return JsonResponse(body, status=200)
