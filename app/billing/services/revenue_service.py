"""
Revenue ledger service.

This module provides the RevenueService class which encapsulates all
business logic for the append-only revenue ledger. All ledger writes go
through this service to ensure sign validation, currency normalization,
and idempotent inserts.

Usage:
    from billing.services import RevenueService
    from billing.services.types import RecordEntryParams

    entry, created = RevenueService.record_entry(RecordEntryParams(
        external_event_id="evt_123",
        source_event_id="evt_123",
        group_id=group_id,
        entry_type=RevenueEntryType.CHARGE,
        amount_gross_cents=2500,
        currency="eur",
        occurred_at=timezone.now(),
    ))

    balance = RevenueService.balance_for_membership(membership.id)
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce

from core.exceptions import ValidationError

from billing.metrics import LEDGER_ENTRIES
from billing.models import RevenueEntry
from billing.services.types import RecordEntryParams
from billing.state_machines import RevenueEntryType

logger = logging.getLogger(__name__)


def normalize_currency(currency: str) -> str:
    """
    Normalize a currency code to uppercase ISO 4217.

    Raises:
        ValidationError: If the code is not three letters
    """
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(
            f"Invalid currency code: {currency!r}",
            details={"currency": currency},
        )
    return code


class RevenueService:
    """
    Service class for revenue ledger operations.

    Key features:
    - Idempotency via unique external_event_id (safe to retry)
    - Sign validation per entry type
    - Uppercase currency normalization
    - Read-side balances and per-currency summaries

    All methods are static - no instance state is maintained.
    """

    # =========================================================================
    # Writes
    # =========================================================================

    @staticmethod
    def record_entry(params: RecordEntryParams) -> tuple[RevenueEntry, bool]:
        """
        Append an entry to the ledger, or return the existing one.

        Runs in a savepoint so a duplicate key only undoes this insert,
        not the caller's enclosing transaction.

        Args:
            params: Entry parameters

        Returns:
            Tuple of (entry, created). created is False when an entry with
            the same external_event_id already exists.

        Raises:
            ValidationError: Zero amount, wrong sign or bad currency
            IntegrityError: Any constraint violation other than a duplicate key
        """
        amount = params.amount_gross_cents
        if amount == 0:
            raise ValidationError(
                "Ledger entries must have a non-zero amount",
                details={"external_event_id": params.external_event_id},
            )
        if params.entry_type == RevenueEntryType.CHARGE and amount < 0:
            raise ValidationError(
                "Charge entries must be positive",
                details={"amount_gross_cents": amount},
            )
        if params.entry_type != RevenueEntryType.CHARGE and amount > 0:
            raise ValidationError(
                f"{params.entry_type} entries must be negative",
                details={"amount_gross_cents": amount},
            )

        currency = normalize_currency(params.currency)
        net = params.amount_net_cents if params.amount_net_cents is not None else amount
        fee = params.fee_cents if params.fee_cents is not None else amount - net

        try:
            with transaction.atomic():
                entry = RevenueEntry.objects.create(
                    external_event_id=params.external_event_id,
                    source_event_id=params.source_event_id,
                    group_id=params.group_id,
                    membership=params.membership,
                    user_id=params.user_id,
                    entry_type=params.entry_type,
                    amount_gross_cents=amount,
                    amount_net_cents=net,
                    fee_cents=fee,
                    currency=currency,
                    occurred_at=params.occurred_at,
                    coupon=params.coupon,
                    gateway_object_id=params.gateway_object_id,
                    gateway_charge_ref=params.gateway_charge_ref,
                    metadata=params.metadata,
                )
        except IntegrityError:
            existing = RevenueEntry.objects.filter(
                external_event_id=params.external_event_id
            ).first()
            if existing is None:
                raise
            logger.info(
                "Revenue entry already recorded",
                extra={
                    "external_event_id": params.external_event_id,
                    "entry_id": str(existing.id),
                },
            )
            return existing, False

        transaction.on_commit(
            lambda: LEDGER_ENTRIES.labels(
                entry_type=params.entry_type, currency=currency
            ).inc()
        )
        logger.info(
            f"Recorded {params.entry_type} entry",
            extra={
                "entry_id": str(entry.id),
                "external_event_id": params.external_event_id,
                "group_id": str(params.group_id),
                "amount_gross_cents": amount,
                "currency": currency,
            },
        )
        return entry, True

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def find_charge_by_charge_ref(charge_ref: str) -> RevenueEntry | None:
        """Find the charge entry booked for a gateway charge ID."""
        return (
            RevenueEntry.objects.select_related("membership")
            .filter(
                gateway_charge_ref=charge_ref,
                entry_type=RevenueEntryType.CHARGE,
            )
            .order_by("occurred_at")
            .first()
        )

    @staticmethod
    def balance_for_membership(membership_id: uuid.UUID) -> int:
        """
        Net running balance of a membership.

        Equal to charges minus refunds minus chargebacks, because refund
        and chargeback entries are stored negative.
        """
        return RevenueEntry.objects.filter(membership_id=membership_id).aggregate(
            balance=Coalesce(Sum("amount_gross_cents"), 0)
        )["balance"]

    @staticmethod
    def summary_for_group(group_id: uuid.UUID) -> list[dict[str, Any]]:
        """
        Per-currency revenue totals for a group.

        Returns:
            One dict per currency with gross, net, fee, charge, refund and
            chargeback totals and the entry count, ordered by currency.
        """
        return list(
            RevenueEntry.objects.filter(group_id=group_id)
            .values("currency")
            .annotate(
                gross_cents=Coalesce(Sum("amount_gross_cents"), 0),
                net_cents=Coalesce(Sum("amount_net_cents"), 0),
                fee_cents=Coalesce(Sum("fee_cents"), 0),
                charges_cents=Coalesce(
                    Sum(
                        "amount_gross_cents",
                        filter=Q(entry_type=RevenueEntryType.CHARGE),
                    ),
                    0,
                ),
                refunds_cents=Coalesce(
                    Sum(
                        "amount_gross_cents",
                        filter=Q(entry_type=RevenueEntryType.REFUND),
                    ),
                    0,
                ),
                chargebacks_cents=Coalesce(
                    Sum(
                        "amount_gross_cents",
                        filter=Q(entry_type=RevenueEntryType.CHARGEBACK),
                    ),
                    0,
                ),
                entry_count=Count("id"),
            )
            .order_by("currency")
        )

    @staticmethod
    def entries_for_group(group_id: uuid.UUID, limit: int = 50):
        """Most recent ledger entries for a group, newest first."""
        return RevenueEntry.objects.filter(group_id=group_id).select_related(
            "coupon"
        ).order_by("-occurred_at", "-created_at")[:limit]
