"""
Protocol for the payment gateway's webhook verification capability.

The billing core never talks to the gateway SDK directly. It depends on
this small interface so tests (and alternative gateways) can inject their
own implementation through the BILLING_WEBHOOK_GATEWAY setting.

Usage:
    from billing.gateway import WebhookGateway

    class FakeGateway:
        def verify_event(self, payload, signature, secret):
            return json.loads(payload)

    gateway: WebhookGateway = FakeGateway()
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class WebhookGateway(Protocol):
    """
    Verifies a raw webhook body against its signature header.

    Implementations must raise billing.exceptions.SignatureInvalidError
    when the signature does not match and
    billing.exceptions.MalformedPayloadError when the verified body is not
    a JSON object. They must not touch the database.
    """

    def verify_event(
        self,
        payload: bytes,
        signature: str,
        secret: str,
    ) -> dict[str, Any]:
        """Return the verified event as a plain dict."""
        ...
