"""
Coupon redemption tracking.

A redemption is counted exactly once per charge entry: the handlers only
call record_redemption when the ledger insert created a new row, so a
re-delivered event never increments the counter twice.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.db.models import F

from billing.models import Coupon

if TYPE_CHECKING:
    from billing.webhooks.events import CheckoutSessionCompleted

logger = logging.getLogger(__name__)


class CouponService:
    """Lookups and redemption counting for group coupons."""

    @staticmethod
    def resolve_checkout_coupon(
        event: CheckoutSessionCompleted,
        group_id: uuid.UUID,
    ) -> Coupon | None:
        """
        Resolve the coupon named by checkout metadata (couponId).

        Promotion codes from the session's discount breakdown are not
        used here; they are recorded on the ledger entry as telemetry.
        A coupon that belongs to a different group is ignored.
        """
        coupon_id = event.coupon_id
        if coupon_id is None:
            return None

        coupon = Coupon.objects.filter(pk=coupon_id).first()
        if coupon is None:
            logger.warning(
                "Checkout references unknown coupon",
                extra={"coupon_id": str(coupon_id), "event_id": event.event_id},
            )
            return None

        if coupon.group_id != group_id:
            logger.warning(
                "Checkout coupon belongs to another group",
                extra={
                    "coupon_id": str(coupon_id),
                    "coupon_group_id": str(coupon.group_id),
                    "group_id": str(group_id),
                    "event_id": event.event_id,
                },
            )
            return None

        return coupon

    @staticmethod
    def find_by_promotion_code(
        promotion_code: str | None,
        group_id: uuid.UUID,
    ) -> Coupon | None:
        """Resolve a coupon by the gateway promotion code ID within a group."""
        if not promotion_code:
            return None
        return Coupon.objects.filter(
            external_promotion_id=promotion_code,
            group_id=group_id,
        ).first()

    @staticmethod
    def record_redemption(coupon: Coupon) -> None:
        """
        Increment the redemption counter atomically.

        Uses an F() expression so concurrent redemptions of the same coupon
        never lose an increment.
        """
        Coupon.objects.filter(pk=coupon.pk).update(
            redemption_count=F("redemption_count") + 1
        )
        logger.info(
            "Coupon redeemed",
            extra={"coupon_id": str(coupon.pk), "code": coupon.code},
        )
