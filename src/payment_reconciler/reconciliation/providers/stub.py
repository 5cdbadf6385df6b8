"""Stub provider gateway for local development and testing.

Replace with an adapter over the real provider SDK for production.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

from payment_reconciler.reconciliation.types import (
    PaymentAction,
    PaymentSessionStatus,
    ProviderStatus,
    WebhookActionAndData,
)

# Stripe-style webhook event types and the actions they resolve to
EVENT_ACTIONS: dict[str, str] = {
    "payment_intent.succeeded": PaymentAction.SUCCESSFUL.value,
    "payment_intent.amount_capturable_updated": PaymentAction.AUTHORIZED.value,
    "payment_intent.payment_failed": PaymentAction.FAILED.value,
    "payment_intent.canceled": PaymentAction.CANCELED.value,
    "payment_intent.requires_action": PaymentAction.REQUIRES_MORE.value,
    "payment_intent.processing": PaymentAction.REQUIRES_MORE.value,
}


class StubProviderGateway:
    """Stub provider gateway.

    Keeps provider-side intents in memory, keyed by the intent id stored in
    the session data under "id". Unknown intents report as pending.
    """

    def __init__(self, latency: float = 0.0):
        """Initialize stub gateway.

        Args:
            latency: Seconds each call sleeps before answering.
        """
        self.latency = latency
        self._intents: dict[str, dict[str, Any]] = {}
        self._failures: dict[str, Exception] = {}
        self.status_calls: list[str] = []

    def set_status(
        self,
        intent_id: str,
        status: str | PaymentSessionStatus,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Set the provider-side status of an intent."""
        if isinstance(status, PaymentSessionStatus):
            status = status.value
        intent = self._intents.setdefault(intent_id, {"id": intent_id})
        intent.update(data or {})
        intent["status"] = status

    def fail_next(self, intent_id: str, error: Exception) -> None:
        """Make the next get_status call for an intent raise."""
        self._failures[intent_id] = error

    async def get_status(self, provider_id: str, data: dict[str, Any]) -> ProviderStatus:
        """Return the stored status of the intent referenced by data["id"]."""
        intent_id = str((data or {}).get("id", ""))
        self.status_calls.append(intent_id)
        if self.latency:
            await asyncio.sleep(self.latency)

        if intent_id in self._failures:
            raise self._failures.pop(intent_id)

        intent = self._intents.get(intent_id)
        if intent is None:
            return ProviderStatus(status=PaymentSessionStatus.PENDING.value, data=data)

        refreshed = {**(data or {}), **{k: v for k, v in intent.items() if k != "status"}}
        return ProviderStatus(status=intent["status"], data=refreshed)

    async def get_webhook_action_and_data(
        self, event: dict[str, Any]
    ) -> WebhookActionAndData:
        """Resolve a Stripe-style event body to an action and session data."""
        if self.latency:
            await asyncio.sleep(self.latency)

        body = (event.get("payload") or {}).get("data")
        if not isinstance(body, dict):
            return WebhookActionAndData(action=None, data=None)

        obj = (body.get("data") or {}).get("object")
        if not isinstance(obj, dict):
            return WebhookActionAndData(action=None, data=None)

        session_id = (obj.get("metadata") or {}).get("session_id")
        if not session_id:
            return WebhookActionAndData(action=None, data=None)

        action = EVENT_ACTIONS.get(body.get("type", ""), PaymentAction.NOT_SUPPORTED.value)
        amount = obj.get("amount_received") or obj.get("amount")
        return WebhookActionAndData(
            action=action,
            data={
                "session_id": session_id,
                "amount": Decimal(str(amount)) if amount is not None else None,
            },
        )
