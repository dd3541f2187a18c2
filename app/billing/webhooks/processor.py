"""
Exactly-once application of verified webhook events.

Each event is applied inside one database transaction that starts by
inserting a WebhookEvent guard row keyed by the gateway event ID:

    BEGIN
      SAVEPOINT guard    INSERT webhook_event   -- duplicate? -> no-op
      SAVEPOINT handler  ... handler writes ... -- unresolved? -> rollback to here
      UPDATE webhook_event SET status = ...
    COMMIT

A concurrent or repeated delivery of the same event fails on the guard
insert and is reported as a duplicate. An event the handler cannot link
to a group or member keeps its guard row, flagged unresolved, while all
of the handler's partial writes are discarded. Database errors roll back
everything and surface as PersistenceConflictError so the gateway
retries.

Usage:
    from billing.webhooks.processor import process_webhook_event

    result = process_webhook_event(event_data)
    result.outcome  # "applied", "duplicate", ...
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError

from billing.exceptions import (
    DuplicateEventError,
    MalformedPayloadError,
    PersistenceConflictError,
    UnresolvedLinkageError,
)
from billing.metrics import (
    WEBHOOK_DUPLICATES,
    WEBHOOK_EVENTS,
    WEBHOOK_PROCESSING_LATENCY,
    WEBHOOK_UNRESOLVED,
)
from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus, WebhookOutcome
from billing.webhooks.events import GatewayEvent, UnknownEvent, decode_event
from billing.webhooks.handlers import dispatch_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingResult:
    """
    Outcome of applying one webhook event.

    Attributes:
        outcome: WebhookOutcome value reported to the gateway
        event_id: Gateway event ID
        event_type: Gateway event type
        error: Reason the event was flagged unresolved, if it was
    """

    outcome: str
    event_id: str
    event_type: str
    error: str | None = None


def process_webhook_event(event_data: dict[str, Any]) -> ProcessingResult:
    """
    Decode and apply a verified webhook payload exactly once.

    Args:
        event_data: Verified event dict from the gateway adapter

    Returns:
        ProcessingResult with the outcome

    Raises:
        MalformedPayloadError: Payload cannot be decoded or holds invalid values
        PersistenceConflictError: A database error rolled the event back
    """
    event = decode_event(event_data)

    if isinstance(event, UnknownEvent):
        logger.info(
            f"Ignoring unhandled webhook event type: {event.event_type}",
            extra={"event_id": event.event_id, "event_type": event.event_type},
        )
        WEBHOOK_EVENTS.labels(
            event_type=event.event_type, outcome=WebhookOutcome.IGNORED
        ).inc()
        return ProcessingResult(
            outcome=WebhookOutcome.IGNORED,
            event_id=event.event_id,
            event_type=event.event_type,
        )

    started = time.monotonic()
    try:
        with transaction.atomic():
            try:
                guard = _insert_guard(event, event_data)
            except DuplicateEventError:
                logger.info(
                    "Duplicate webhook delivery, already applied",
                    extra={"event_id": event.event_id, "event_type": event.event_type},
                )
                WEBHOOK_DUPLICATES.labels(event_type=event.event_type).inc()
                result = ProcessingResult(
                    outcome=WebhookOutcome.DUPLICATE,
                    event_id=event.event_id,
                    event_type=event.event_type,
                )
            else:
                result = _apply(guard, event)
    except ValidationError as e:
        logger.warning(
            f"Webhook event rejected: {e.message}",
            extra={"event_id": event.event_id, "event_type": event.event_type},
        )
        raise MalformedPayloadError(
            e.message,
            details={"event_id": event.event_id, **e.details},
        ) from e
    except DatabaseError as e:
        logger.error(
            f"Webhook event rolled back: {type(e).__name__}",
            extra={"event_id": event.event_id, "event_type": event.event_type},
            exc_info=True,
        )
        raise PersistenceConflictError(
            "Webhook event could not be persisted",
            details={"event_id": event.event_id, "event_type": event.event_type},
        ) from e

    WEBHOOK_PROCESSING_LATENCY.labels(event_type=event.event_type).observe(
        time.monotonic() - started
    )
    _count_outcome(result)
    return result


def replay_webhook_event(webhook_event_id: uuid.UUID) -> ProcessingResult:
    """
    Re-apply an unresolved event from its stored payload.

    Used by the periodic reconciliation task once the missing linkage
    (usually an earlier checkout) may have arrived. Events that are no
    longer unresolved are returned untouched.

    The attempt is counted in its own transaction before the event is
    applied, so a replay that fails still uses up one of the
    BILLING_MAX_REPLAY_ATTEMPTS.

    Args:
        webhook_event_id: Primary key of the WebhookEvent row

    Raises:
        NotFoundError: No such WebhookEvent
        MalformedPayloadError: The stored payload no longer decodes or holds
            invalid values
        PersistenceConflictError: A database error rolled the replay back
    """
    try:
        guard = _claim_replay_attempt(webhook_event_id)
        if not guard.is_unresolved:
            return ProcessingResult(
                outcome=guard.status,
                event_id=guard.external_event_id,
                event_type=guard.event_type,
            )

        with transaction.atomic():
            guard = WebhookEvent.objects.select_for_update().get(pk=webhook_event_id)
            if not guard.is_unresolved:
                return ProcessingResult(
                    outcome=guard.status,
                    event_id=guard.external_event_id,
                    event_type=guard.event_type,
                )
            event = decode_event(guard.payload)
            result = _apply(guard, event)
    except (ValidationError, MalformedPayloadError) as e:
        logger.warning(
            f"Webhook replay rejected: {e.message}",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        _record_replay_failure(webhook_event_id, e.message)
        raise MalformedPayloadError(
            e.message,
            details={"webhook_event_id": str(webhook_event_id), **e.details},
        ) from e
    except DatabaseError as e:
        logger.error(
            f"Webhook replay rolled back: {type(e).__name__}",
            extra={"webhook_event_id": str(webhook_event_id)},
            exc_info=True,
        )
        _record_replay_failure(webhook_event_id, "Webhook replay could not be persisted")
        raise PersistenceConflictError(
            "Webhook replay could not be persisted",
            details={"webhook_event_id": str(webhook_event_id)},
        ) from e

    logger.info(
        f"Replayed webhook event: {result.outcome}",
        extra={
            "event_id": result.event_id,
            "webhook_event_id": str(webhook_event_id),
            "retry_count": guard.retry_count,
        },
    )
    _count_outcome(result)
    return result


def _claim_replay_attempt(webhook_event_id: uuid.UUID) -> WebhookEvent:
    """Lock the guard row and count one replay attempt if it is unresolved."""
    with transaction.atomic():
        guard = (
            WebhookEvent.objects.select_for_update()
            .filter(pk=webhook_event_id)
            .first()
        )
        if guard is None:
            raise NotFoundError(
                "Webhook event not found",
                details={"webhook_event_id": str(webhook_event_id)},
            )
        if guard.is_unresolved:
            guard.retry_count += 1
            guard.save(update_fields=["retry_count", "updated_at"])
    return guard


def _record_replay_failure(webhook_event_id: uuid.UUID, message: str) -> None:
    """Store why a replay failed; the event stays unresolved."""
    try:
        WebhookEvent.objects.filter(
            pk=webhook_event_id, status=WebhookEventStatus.UNRESOLVED
        ).update(error_message=message, processed_at=timezone.now())
    except DatabaseError:
        logger.error(
            "Could not record webhook replay failure",
            extra={"webhook_event_id": str(webhook_event_id)},
            exc_info=True,
        )


def _insert_guard(event: GatewayEvent, event_data: dict[str, Any]) -> WebhookEvent:
    """
    Insert the guard row for an event inside its own savepoint.

    Raises:
        DuplicateEventError: A row for this gateway event ID already exists
    """
    try:
        with transaction.atomic():
            return WebhookEvent.objects.create(
                external_event_id=event.event_id,
                event_type=event.event_type,
                payload=event_data,
            )
    except IntegrityError as e:
        raise DuplicateEventError(
            "Webhook event already applied",
            details={"event_id": event.event_id, "event_type": event.event_type},
        ) from e


def _apply(guard: WebhookEvent, event: GatewayEvent) -> ProcessingResult:
    """Run the handler in a savepoint and record its outcome on the guard row."""
    try:
        with transaction.atomic():
            result = dispatch_event(event)
            if not result.success:
                raise UnresolvedLinkageError(
                    result.error or "Event could not be linked",
                    details={"event_id": event.event_id},
                )
    except UnresolvedLinkageError as e:
        status = WebhookEventStatus.UNRESOLVED
        error = e.message
    else:
        status = result.data or WebhookEventStatus.APPLIED
        error = None

    guard.mark_outcome(status, error)
    guard.save()

    return ProcessingResult(
        outcome=status,
        event_id=event.event_id,
        event_type=event.event_type,
        error=error,
    )


def _count_outcome(result: ProcessingResult) -> None:
    WEBHOOK_EVENTS.labels(event_type=result.event_type, outcome=result.outcome).inc()
    if result.outcome == WebhookOutcome.UNRESOLVED:
        WEBHOOK_UNRESOLVED.labels(event_type=result.event_type).inc()
