"""
Webhook reconciliation for payment gateway events.

A delivery is verified by the gateway adapter, decoded into a typed event
(events.py), guarded against re-delivery and dispatched to its handler
(processor.py, handlers.py), all inside one database transaction.

Usage:
    # In urls.py
    from billing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""
