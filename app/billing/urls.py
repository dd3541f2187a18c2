"""
URL configuration for the billing app.

Routes:
    - POST /webhooks/stripe/ - Stripe webhook endpoint
    - GET /groups/<group_id>/memberships/ - Group memberships
    - GET /groups/<group_id>/revenue/entries/ - Recent ledger entries
    - GET /groups/<group_id>/revenue/summary/ - Per-currency totals

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("billing/", include("billing.urls")),
    ]
"""

from django.urls import path

from billing.views import (
    GroupMembershipListView,
    GroupRevenueEntriesView,
    GroupRevenueSummaryView,
)
from billing.webhooks.views import stripe_webhook

app_name = "billing"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    # Read API
    path(
        "groups/<uuid:group_id>/memberships/",
        GroupMembershipListView.as_view(),
        name="group_memberships",
    ),
    path(
        "groups/<uuid:group_id>/revenue/entries/",
        GroupRevenueEntriesView.as_view(),
        name="group_revenue_entries",
    ),
    path(
        "groups/<uuid:group_id>/revenue/summary/",
        GroupRevenueSummaryView.as_view(),
        name="group_revenue_summary",
    ),
]
