"""
Billing app configuration.

This app reconciles payment gateway webhooks into:
- Group memberships and the legacy member status projection
- An append-only revenue ledger
- Coupon redemption counts
- Refund and dispute audit records
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    """Configuration for the billing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"
