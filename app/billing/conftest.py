"""
Pytest fixtures shared by all billing test packages.

Provides memberships in each lifecycle state and an authenticated staff
client for the read API.

Usage:
    def test_renewal(active_membership):
        active_membership.renew()
        active_membership.save()
"""

import uuid

import pytest

from billing.state_machines import MembershipStatus
from billing.tests.factories import MembershipFactory


# =============================================================================
# Identity Fixtures
# =============================================================================


@pytest.fixture
def group_id():
    """UUID of the group under test."""
    return uuid.uuid4()


@pytest.fixture
def staff_user(db, django_user_model):
    """Create a staff user allowed to read billing data."""
    return django_user_model.objects.create_user(
        username="billing_staff",
        email="staff@example.com",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture
def staff_client(client, staff_user):
    """Django test client logged in as staff."""
    client.force_login(staff_user)
    return client


# =============================================================================
# Membership State Fixtures
# =============================================================================


@pytest.fixture
def pending_membership(db, group_id):
    """Create a pending membership that has never been paid for."""
    return MembershipFactory(
        group_id=group_id,
        status=MembershipStatus.PENDING,
        customer_ref=None,
        started_at=None,
        renewed_at=None,
    )


@pytest.fixture
def active_membership(db, group_id):
    """Create an active subscription membership."""
    return MembershipFactory(group_id=group_id, subscription_ref="sub_test_active")


@pytest.fixture
def past_due_membership(db, group_id):
    """Create a past due subscription membership."""
    return MembershipFactory(
        group_id=group_id,
        status=MembershipStatus.PAST_DUE,
        subscription_ref="sub_test_past_due",
    )
