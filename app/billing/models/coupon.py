"""
Coupon model for membership discount codes.

Coupons are created by group organizers outside the billing core. The
webhook side only ever increments redemption_count, using an F()
expression inside the transaction that books the matching charge.

Usage:
    from billing.models import Coupon

    coupon = Coupon.objects.create(group_id=group_id, code="spring25")
    coupon.code  # "SPRING25"
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


def normalize_coupon_code(code: str) -> str:
    """Normalize a coupon code for storage and lookup."""
    return code.strip().upper()


class Coupon(UUIDPrimaryKeyMixin, BaseModel):
    """
    A discount code scoped to one group.

    Fields:
        group_id: Group the coupon belongs to
        code: Normalized (uppercase) code, unique per group
        external_promotion_id: Gateway promotion code ID (promo_xxx)
        redemption_count: Number of charges booked with this coupon
        max_redemptions: Optional usage cap (informational)
        is_active: Whether the coupon can still be used at checkout
    """

    group_id = models.UUIDField(
        db_index=True,
        help_text="UUID of the group this coupon belongs to",
    )

    code = models.CharField(
        max_length=64,
        help_text="Coupon code (stored uppercase)",
    )

    external_promotion_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway promotion code ID (promo_xxx)",
    )

    redemption_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of booked charges that used this coupon",
    )

    max_redemptions = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum number of redemptions (null for unlimited)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether the coupon is currently usable",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Coupon"
        verbose_name_plural = "Coupons"
        constraints = [
            models.UniqueConstraint(
                fields=["group_id", "code"],
                name="coupon_unique_group_code",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with code and usage."""
        return f"Coupon({self.code}, used={self.redemption_count})"

    def save(self, *args, **kwargs):
        """Save with the code normalized to uppercase."""
        if self.code:
            self.code = normalize_coupon_code(self.code)
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self) -> bool:
        """Check if the coupon has reached its redemption cap."""
        return (
            self.max_redemptions is not None
            and self.redemption_count >= self.max_redemptions
        )
