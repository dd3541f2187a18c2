"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel. They are generic infrastructure with no billing logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Membership(UUIDPrimaryKeyMixin, BaseModel):
        group_id = models.UUIDField(db_index=True)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Billing rows are referenced from gateway metadata (membershipId) and
    from the admin API, so IDs must be non-guessable and safe to generate
    before insert.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        membership = Membership.objects.create(group_id=group_id, user_id=user_id)
        print(membership.id)  # UUID like: 550e8400-e29b-41d4-a716-446655440000
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
