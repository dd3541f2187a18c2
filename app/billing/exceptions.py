"""
Billing-specific exceptions for webhook reconciliation.

This module provides the exceptions raised while receiving, verifying and
applying payment gateway webhooks. Each maps to exactly one HTTP outcome
at the webhook endpoint.

Exception Hierarchy:
    WebhookError (base for webhook handling)
    ├── SignatureInvalidError - Missing or bad signature (400)
    ├── MalformedPayloadError - Body is not a usable event (400)
    ├── GatewayUnavailableError - Gateway/secret not configured (503)
    └── UnresolvedLinkageError - Event cannot be tied to billing rows (200, flagged)

    DuplicateEventError - Event already applied (inherits ConflictError, 200 no-op)
    PersistenceConflictError - Write failed, rolled back (inherits ConflictError, 500)

Usage:
    from billing.exceptions import SignatureInvalidError

    try:
        event = gateway.verify_event(payload, signature, secret)
    except SignatureInvalidError as e:
        return JsonResponse(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ConflictError


# =============================================================================
# Webhook Exceptions
# =============================================================================


class WebhookError(BaseApplicationError):
    """
    Base exception for webhook reception and processing.

    Attributes:
        http_status: Status code returned to the gateway for this error
    """

    default_error_code = "WEBHOOK_ERROR"
    http_status = 400


class SignatureInvalidError(WebhookError):
    """
    The Stripe-Signature header is missing or does not match the payload.

    Raised before any persistence; the gateway should not retry a request
    that fails verification.
    """

    default_error_code = "SIGNATURE_INVALID"
    http_status = 400


class MalformedPayloadError(WebhookError):
    """
    The verified body is not a usable event.

    Raised when the body is not JSON, when id/type are missing, or when a
    known event type carries a status outside the gateway's vocabulary.
    """

    default_error_code = "MALFORMED_PAYLOAD"
    http_status = 400


class GatewayUnavailableError(WebhookError):
    """
    The payment gateway is not configured.

    Returned as 503 so the gateway retries once configuration is fixed.
    """

    default_error_code = "GATEWAY_UNAVAILABLE"
    http_status = 503


class UnresolvedLinkageError(WebhookError):
    """
    The event is valid but cannot be tied to a membership or group.

    Acknowledged with 200 so the gateway stops retrying; the event is
    stored as unresolved for the reconciliation replay task.
    """

    default_error_code = "UNRESOLVED_LINKAGE"
    http_status = 200


# =============================================================================
# Persistence Exceptions
# =============================================================================


class DuplicateEventError(ConflictError):
    """
    The event ID has already been applied.

    Raised when the guard row insert hits the unique event ID; the
    processor reports it as the "duplicate" outcome with a 200.
    """

    default_error_code = "DUPLICATE_EVENT"
    http_status = 200


class PersistenceConflictError(ConflictError):
    """
    A database write failed while applying an event.

    All writes for the event are rolled back; the gateway retries.
    """

    default_error_code = "PERSISTENCE_CONFLICT"
    http_status = 500
