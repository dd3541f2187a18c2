"""
Membership payment receipts.

Receipts are queued after the webhook transaction commits. Failing to
queue or send a receipt is logged and never affects the financial writes
it describes.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction

from billing.services.types import ReceiptParams

logger = logging.getLogger(__name__)


def queue_membership_receipt(params: ReceiptParams) -> bool:
    """
    Schedule a receipt email for after the current transaction commits.

    Returns:
        True if a receipt was scheduled, False if receipts are disabled or
        there is no recipient
    """
    if not settings.BILLING_RECEIPTS_ENABLED:
        return False

    if not params.recipient_email:
        logger.info(
            "No recipient for membership receipt",
            extra={"event_id": params.event_id, "group_id": str(params.group_id)},
        )
        return False

    kwargs = params.to_task_kwargs()

    def _enqueue() -> None:
        from billing.tasks import send_membership_receipt

        try:
            send_membership_receipt.delay(**kwargs)
        except Exception as e:
            logger.error(
                f"Failed to queue membership receipt: {e}",
                extra={"event_id": params.event_id},
                exc_info=True,
            )

    transaction.on_commit(_enqueue)
    return True
