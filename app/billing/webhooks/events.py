"""
Typed webhook event variants.

A verified gateway payload is decoded exactly once, here, into a frozen
dataclass. Handlers never dig through raw dicts; everything they need is
a typed attribute, and every ID field has already been collapsed from
"string or expanded object" to a plain string.

Variants:
    CheckoutSessionCompleted - checkout.session.completed
    InvoicePaymentSucceeded  - invoice.payment_succeeded
    InvoicePaymentFailed     - invoice.payment_failed
    ChargeRefunded           - charge.refunded
    DisputeCreated           - charge.dispute.created / charge.dispute.updated
    DisputeClosed            - charge.dispute.closed / charge.dispute.funds_reinstated
    UnknownEvent             - any other type (acknowledged and ignored)

Usage:
    from billing.webhooks.events import decode_event

    event = decode_event(event_data)
    if isinstance(event, InvoicePaymentFailed):
        ...
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from billing.exceptions import MalformedPayloadError
from billing.state_machines import DisputeStatus, RefundStatus


# =============================================================================
# Payload Helpers
# =============================================================================


def as_gateway_id(value: Any) -> str | None:
    """Collapse a gateway reference (ID string or expanded object) to its ID."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        ref = value.get("id")
        return ref if isinstance(ref, str) and ref else None
    return None


def unix_to_datetime(value: Any) -> datetime | None:
    """
    Convert a unix timestamp to an aware UTC datetime.

    Raises:
        MalformedPayloadError: The timestamp is outside the representable range
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, ValueError, OSError) as e:
        raise MalformedPayloadError(
            "Webhook payload holds an out-of-range timestamp",
            details={"value": str(value)},
        ) from e


# Ledger amounts are stored in BigIntegerField columns and negated for
# refunds and chargebacks, so both signs must fit.
MAX_AMOUNT = 2**63 - 1


def as_amount(value: Any) -> int | None:
    """
    Return an integer amount in the smallest currency unit, or None.

    Raises:
        MalformedPayloadError: The amount does not fit a ledger column
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if abs(value) > MAX_AMOUNT:
        raise MalformedPayloadError(
            "Webhook payload holds an out-of-range amount",
            details={"value": str(value)},
        )
    return value


def read_metadata_string(metadata: dict[str, Any], key: str) -> str | None:
    """Read a trimmed, non-empty string from gateway metadata."""
    value = metadata.get(key)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def read_metadata_uuid(metadata: dict[str, Any], key: str) -> uuid.UUID | None:
    """Read a UUID from gateway metadata; malformed values read as missing."""
    value = read_metadata_string(metadata, key)
    if value is None:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _require_id(obj: dict[str, Any], key: str, event_type: str) -> str:
    ref = as_gateway_id(obj.get(key))
    if ref is None:
        raise MalformedPayloadError(
            f"{event_type} payload is missing '{key}'",
            details={"event_type": event_type, "field": key},
        )
    return ref


# =============================================================================
# Event Variants
# =============================================================================


@dataclass(frozen=True)
class GatewayEvent:
    """
    Fields shared by every decoded event.

    Attributes:
        event_id: Gateway event ID (evt_xxx)
        event_type: Gateway event type string
        created: When the gateway created the event (None if absent)
    """

    event_id: str
    event_type: str
    created: datetime | None


@dataclass(frozen=True)
class MetadataMixin:
    """Typed accessors for the identifiers carried in gateway metadata."""

    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def group_id(self) -> uuid.UUID | None:
        return read_metadata_uuid(self.metadata, "groupId")

    @property
    def user_id(self) -> uuid.UUID | None:
        return read_metadata_uuid(self.metadata, "userId")

    @property
    def membership_id(self) -> uuid.UUID | None:
        return read_metadata_uuid(self.metadata, "membershipId")


@dataclass(frozen=True)
class CheckoutSessionCompleted(MetadataMixin, GatewayEvent):
    """
    A checkout session finished.

    In subscription mode the money is booked by the first invoice event,
    so this variant only drives the membership in that case.
    """

    session_id: str = ""
    mode: str | None = None
    payment_status: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    subscription_ref: str | None = None
    customer_ref: str | None = None
    payment_intent_ref: str | None = None
    customer_email: str | None = None
    promotion_codes: tuple[str, ...] = ()

    @property
    def tier_id(self) -> uuid.UUID | None:
        return read_metadata_uuid(self.metadata, "tierId")

    @property
    def coupon_id(self) -> uuid.UUID | None:
        return read_metadata_uuid(self.metadata, "couponId")

    @property
    def coupon_code(self) -> str | None:
        return read_metadata_string(self.metadata, "couponCode")

    @property
    def billing_period(self) -> str | None:
        return read_metadata_string(self.metadata, "billingPeriod")

    @property
    def description(self) -> str | None:
        return read_metadata_string(self.metadata, "description")

    @property
    def is_subscription_mode(self) -> bool:
        return self.mode == "subscription"

    @property
    def is_paid(self) -> bool:
        """Unpaid sessions (e.g. delayed payment methods) grant nothing yet."""
        return self.payment_status != "unpaid"


@dataclass(frozen=True)
class InvoiceEvent(MetadataMixin, GatewayEvent):
    """Fields shared by invoice payment events."""

    invoice_id: str = ""
    subscription_ref: str | None = None
    customer_ref: str | None = None
    customer_email: str | None = None
    payment_intent_ref: str | None = None
    charge_ref: str | None = None
    amount_paid: int | None = None
    total: int | None = None
    currency: str | None = None
    paid_at: datetime | None = None
    period_end: datetime | None = None
    promotion_code: str | None = None
    invoice_number: str | None = None
    hosted_invoice_url: str | None = None
    description: str | None = None

    @property
    def charge_amount(self) -> int | None:
        """Amount actually collected, falling back to the invoice total."""
        return self.amount_paid if self.amount_paid is not None else self.total


@dataclass(frozen=True)
class InvoicePaymentSucceeded(InvoiceEvent):
    """An invoice (first or renewal) was paid."""


@dataclass(frozen=True)
class InvoicePaymentFailed(InvoiceEvent):
    """An invoice payment attempt failed."""


@dataclass(frozen=True)
class RefundLine:
    """One refund listed on a refunded charge."""

    refund_id: str
    amount: int
    currency: str | None
    status: str
    reason: str | None
    failure_reason: str | None
    created: datetime | None
    balance_transaction: str | None


@dataclass(frozen=True)
class ChargeRefunded(MetadataMixin, GatewayEvent):
    """A charge was fully or partially refunded."""

    charge_ref: str = ""
    payment_intent_ref: str | None = None
    customer_ref: str | None = None
    currency: str | None = None
    refunds: tuple[RefundLine, ...] = ()


@dataclass(frozen=True)
class DisputeEvent(MetadataMixin, GatewayEvent):
    """Fields shared by dispute events."""

    dispute_id: str = ""
    charge_ref: str = ""
    payment_intent_ref: str | None = None
    customer_ref: str | None = None
    amount: int = 0
    currency: str | None = None
    status: str = DisputeStatus.UNDER_REVIEW
    reason: str | None = None
    evidence_due_at: datetime | None = None
    closed_at: datetime | None = None
    balance_transaction: str | None = None


@dataclass(frozen=True)
class DisputeCreated(DisputeEvent):
    """A dispute was opened or its status changed while open."""


@dataclass(frozen=True)
class DisputeClosed(DisputeEvent):
    """A dispute reached a final outcome."""


@dataclass(frozen=True)
class UnknownEvent(GatewayEvent):
    """Any event type the billing core does not handle."""


# =============================================================================
# Decoders
# =============================================================================


def _decode_checkout(base: dict[str, Any], obj: dict[str, Any]) -> GatewayEvent:
    discounts = _as_dict(_as_dict(obj.get("total_details")).get("breakdown")).get(
        "discounts"
    )
    promotion_codes = tuple(
        code
        for code in (
            as_gateway_id(_as_dict(discount).get("promotion_code"))
            for discount in (discounts if isinstance(discounts, list) else [])
        )
        if code
    )
    customer_details = _as_dict(obj.get("customer_details"))

    return CheckoutSessionCompleted(
        **base,
        metadata=_as_dict(obj.get("metadata")),
        session_id=_require_id(obj, "id", base["event_type"]),
        mode=_as_str(obj.get("mode")),
        payment_status=_as_str(obj.get("payment_status")),
        amount_total=as_amount(obj.get("amount_total")),
        currency=_as_str(obj.get("currency")),
        subscription_ref=as_gateway_id(obj.get("subscription")),
        customer_ref=as_gateway_id(obj.get("customer")),
        payment_intent_ref=as_gateway_id(obj.get("payment_intent")),
        customer_email=_as_str(customer_details.get("email"))
        or _as_str(obj.get("customer_email")),
        promotion_codes=promotion_codes,
    )


def _decode_invoice(
    variant: type[InvoiceEvent],
) -> Callable[[dict[str, Any], dict[str, Any]], GatewayEvent]:
    def decode(base: dict[str, Any], obj: dict[str, Any]) -> GatewayEvent:
        parent_details = _as_dict(
            _as_dict(obj.get("parent")).get("subscription_details")
        )
        legacy_details = _as_dict(obj.get("subscription_details"))
        # Subscription metadata first, invoice metadata wins on conflict
        metadata = {
            **_as_dict(legacy_details.get("metadata")),
            **_as_dict(parent_details.get("metadata")),
            **_as_dict(obj.get("metadata")),
        }

        lines = _as_dict(obj.get("lines")).get("data")
        first_line = _as_dict(lines[0]) if isinstance(lines, list) and lines else {}
        created = unix_to_datetime(obj.get("created"))

        return variant(
            **base,
            metadata=metadata,
            invoice_id=_require_id(obj, "id", base["event_type"]),
            subscription_ref=as_gateway_id(obj.get("subscription"))
            or as_gateway_id(parent_details.get("subscription")),
            customer_ref=as_gateway_id(obj.get("customer")),
            customer_email=_as_str(obj.get("customer_email")),
            payment_intent_ref=as_gateway_id(obj.get("payment_intent")),
            charge_ref=as_gateway_id(obj.get("charge")),
            amount_paid=as_amount(obj.get("amount_paid")),
            total=as_amount(obj.get("total")),
            currency=_as_str(obj.get("currency")),
            paid_at=unix_to_datetime(
                _as_dict(obj.get("status_transitions")).get("paid_at")
            )
            or created,
            period_end=unix_to_datetime(_as_dict(first_line.get("period")).get("end")),
            promotion_code=as_gateway_id(
                _as_dict(obj.get("discount")).get("promotion_code")
            ),
            invoice_number=_as_str(obj.get("number")),
            hosted_invoice_url=_as_str(obj.get("hosted_invoice_url"))
            or _as_str(obj.get("invoice_pdf")),
            description=_as_str(first_line.get("description")),
        )

    return decode


def _validate_status(
    status: Any,
    allowed: type[RefundStatus] | type[DisputeStatus],
    event_type: str,
) -> str:
    if status not in allowed.values:
        raise MalformedPayloadError(
            f"{event_type} payload has unknown status",
            details={"event_type": event_type, "status": status},
        )
    return status


def _decode_refund_line(
    raw: dict[str, Any], event_type: str
) -> RefundLine | None:
    refund_id = as_gateway_id(raw.get("id"))
    amount = as_amount(raw.get("amount"))
    if refund_id is None or amount is None:
        return None

    status = raw.get("status") or RefundStatus.PENDING
    return RefundLine(
        refund_id=refund_id,
        amount=amount,
        currency=_as_str(raw.get("currency")),
        status=_validate_status(status, RefundStatus, event_type),
        reason=_as_str(raw.get("reason")),
        failure_reason=_as_str(raw.get("failure_reason")),
        created=unix_to_datetime(raw.get("created")),
        balance_transaction=as_gateway_id(raw.get("balance_transaction")),
    )


def _decode_charge_refunded(base: dict[str, Any], obj: dict[str, Any]) -> GatewayEvent:
    event_type = base["event_type"]
    raw_refunds = _as_dict(obj.get("refunds")).get("data")
    refunds = tuple(
        line
        for line in (
            _decode_refund_line(_as_dict(raw), event_type)
            for raw in (raw_refunds if isinstance(raw_refunds, list) else [])
        )
        if line is not None
    )

    return ChargeRefunded(
        **base,
        metadata=_as_dict(obj.get("metadata")),
        charge_ref=_require_id(obj, "id", event_type),
        payment_intent_ref=as_gateway_id(obj.get("payment_intent")),
        customer_ref=as_gateway_id(obj.get("customer")),
        currency=_as_str(obj.get("currency")),
        refunds=refunds,
    )


def _decode_dispute(
    variant: type[DisputeEvent],
) -> Callable[[dict[str, Any], dict[str, Any]], GatewayEvent]:
    def decode(base: dict[str, Any], obj: dict[str, Any]) -> GatewayEvent:
        event_type = base["event_type"]
        balance_transactions = obj.get("balance_transactions")
        if isinstance(balance_transactions, dict):
            balance_transactions = balance_transactions.get("data")
        first_balance_transaction = (
            as_gateway_id(balance_transactions[0])
            if isinstance(balance_transactions, list) and balance_transactions
            else None
        )

        return variant(
            **base,
            metadata=_as_dict(obj.get("metadata")),
            dispute_id=_require_id(obj, "id", event_type),
            charge_ref=_require_id(obj, "charge", event_type),
            payment_intent_ref=as_gateway_id(obj.get("payment_intent")),
            customer_ref=as_gateway_id(obj.get("customer")),
            amount=as_amount(obj.get("amount")) or 0,
            currency=_as_str(obj.get("currency")),
            status=_validate_status(obj.get("status"), DisputeStatus, event_type),
            reason=_as_str(obj.get("reason")),
            evidence_due_at=unix_to_datetime(
                _as_dict(obj.get("evidence_details")).get("due_by")
            ),
            closed_at=unix_to_datetime(obj.get("closed_at")),
            balance_transaction=first_balance_transaction,
        )

    return decode


EVENT_DECODERS: dict[str, Callable[[dict[str, Any], dict[str, Any]], GatewayEvent]] = {
    "checkout.session.completed": _decode_checkout,
    "invoice.payment_succeeded": _decode_invoice(InvoicePaymentSucceeded),
    "invoice.payment_failed": _decode_invoice(InvoicePaymentFailed),
    "charge.refunded": _decode_charge_refunded,
    "charge.dispute.created": _decode_dispute(DisputeCreated),
    "charge.dispute.updated": _decode_dispute(DisputeCreated),
    "charge.dispute.closed": _decode_dispute(DisputeClosed),
    "charge.dispute.funds_reinstated": _decode_dispute(DisputeClosed),
}


def decode_event(event_data: dict[str, Any]) -> GatewayEvent:
    """
    Decode a verified gateway payload into a typed event.

    Args:
        event_data: Verified event dict (id, type, created, data.object)

    Returns:
        The matching GatewayEvent variant, or UnknownEvent

    Raises:
        MalformedPayloadError: id/type missing, data.object missing for a
            known type, or a status outside the gateway's vocabulary
    """
    event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not isinstance(event_id, str) or not event_id:
        raise MalformedPayloadError("Webhook event is missing 'id'")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedPayloadError(
            "Webhook event is missing 'type'",
            details={"event_id": event_id},
        )

    base = {
        "event_id": event_id,
        "event_type": event_type,
        "created": unix_to_datetime(event_data.get("created")),
    }

    decoder = EVENT_DECODERS.get(event_type)
    if decoder is None:
        return UnknownEvent(**base)

    obj = _as_dict(event_data.get("data")).get("object")
    if not isinstance(obj, dict):
        raise MalformedPayloadError(
            f"{event_type} payload is missing data.object",
            details={"event_id": event_id, "event_type": event_type},
        )

    return decoder(base, obj)
