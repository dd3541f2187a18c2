"""
Billing app for group membership payments.

This app handles:
- Verification of payment gateway webhooks
- Exactly-once application of checkout, invoice, refund and dispute events
- Membership lifecycle (pending, active, past due)
- Append-only revenue ledger with per-group summaries
- Coupon redemption counts
- Reconciliation of events that could not be linked to a member

Related apps:
    - core: Base models, exceptions and service result types

Usage:
    from billing.webhooks.processor import process_webhook_event

    result = process_webhook_event(verified_event_data)
"""
