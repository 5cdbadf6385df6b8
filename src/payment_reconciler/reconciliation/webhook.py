"""Webhook ingress and consumer.

Ingress (stage a) turns an inbound provider call into a ReconciliationTask
published on the event bus with a delivery delay and bounded retry.

The consumer (stage b) handles delivered tasks. It never trusts the pushed
payload directly: the action and data are re-resolved through the provider
gateway. Deliberate drops return a WebhookOutcome; gateway and settlement
failures raise so the bus retries the delivery.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from payment_reconciler.reconciliation.config import WebhookConfig
from payment_reconciler.reconciliation.errors import GatewayTimeout, SettlementTimeout, require
from payment_reconciler.reconciliation.events import WEBHOOK_EVENT, EventBus
from payment_reconciler.reconciliation.policy import (
    NON_ACTIONABLE_WEBHOOK_ACTIONS,
    is_card_payment,
)
from payment_reconciler.reconciliation.providers.base import ProviderGateway
from payment_reconciler.reconciliation.settlement import SettlementWorkflow
from payment_reconciler.reconciliation.types import ReconciliationTask, SettlementRequest

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    """Result of handling a webhook task."""

    SETTLED = "settled"
    DROPPED_UNDECODABLE = "dropped_undecodable"
    DROPPED_CARD = "dropped_card"
    DROPPED_NON_ACTIONABLE = "dropped_non_actionable"


class WebhookIngress:
    """Publishes inbound webhook calls as reconciliation tasks."""

    def __init__(self, bus: EventBus, config: WebhookConfig | None = None):
        require("WebhookIngress", bus=bus)
        self.bus = bus
        self.config = config or WebhookConfig()

    def receive(
        self,
        provider: str,
        body: Any,
        raw_body: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> ReconciliationTask:
        """Queue an inbound webhook for delayed processing."""
        task = ReconciliationTask(
            provider=provider,
            payload={"data": body, "raw_data": raw_body, "headers": dict(headers or {})},
            session_ref=_session_hint(body),
        )
        self.bus.publish(
            WEBHOOK_EVENT,
            {
                "provider": task.provider,
                "payload": task.payload,
                "received_at": task.received_at.isoformat(),
                "session_ref": task.session_ref,
            },
            delay=self.config.delay_seconds,
            attempts=self.config.attempts,
        )
        return task


class WebhookConsumer:
    """Handles reconciliation tasks delivered by the event bus.

    Deliveries may be duplicated and may arrive concurrently or out of
    order; settlement idempotence makes that safe.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        settlement: SettlementWorkflow,
        config: WebhookConfig | None = None,
    ):
        require("WebhookConsumer", gateway=gateway, settlement=settlement)
        self.gateway = gateway
        self.settlement = settlement
        self.config = config or WebhookConfig()

    async def handle_event(self, payload: dict[str, Any]) -> WebhookOutcome:
        """Event bus entry point."""
        return await self.handle(ReconciliationTask.from_payload(payload))

    async def handle(self, task: ReconciliationTask) -> WebhookOutcome:
        """Resolve, filter and settle one webhook task."""
        resolved = await self._resolve(task)
        data = resolved.data
        if not data or not data.get("session_id"):
            logger.debug("Webhook from %s resolved no session data, dropping", task.provider)
            return WebhookOutcome.DROPPED_UNDECODABLE

        session_id = str(data["session_id"])

        if is_card_payment(None, task.payload.get("data")):
            logger.info("Card webhook for %s skipped", session_id)
            return WebhookOutcome.DROPPED_CARD

        if resolved.action is None or resolved.action in NON_ACTIONABLE_WEBHOOK_ACTIONS:
            logger.debug(
                "Webhook action %s for %s is not actionable, dropping",
                resolved.action,
                session_id,
            )
            return WebhookOutcome.DROPPED_NON_ACTIONABLE

        raw_amount = data.get("amount")
        try:
            amount = _parse_amount(raw_amount)
        except InvalidOperation:
            logger.warning(
                "Webhook for %s carries malformed amount %r, dropping", session_id, raw_amount
            )
            return WebhookOutcome.DROPPED_UNDECODABLE

        request = SettlementRequest(action=resolved.action, session_id=session_id, amount=amount)
        timeout = self.config.settlement_timeout_seconds
        try:
            await asyncio.wait_for(self.settlement.run(request), timeout=timeout)
        except asyncio.TimeoutError:
            raise SettlementTimeout(session_id, timeout) from None

        logger.info("Webhook settled %s with action %s", session_id, request.action)
        return WebhookOutcome.SETTLED

    async def _resolve(self, task: ReconciliationTask):
        timeout = self.config.gateway_timeout_seconds
        try:
            return await asyncio.wait_for(
                self.gateway.get_webhook_action_and_data(task.to_event()),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise GatewayTimeout("get_webhook_action_and_data", timeout) from None


def _parse_amount(value: Any) -> Decimal | None:
    if value is None:
        return None
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise InvalidOperation(f"non-finite amount {value!r}")
    return amount


def _session_hint(body: Any) -> str | None:
    """Best-effort session id from a Stripe-style event body."""
    if not isinstance(body, dict):
        return None
    obj = (body.get("data") or {}).get("object") if isinstance(body.get("data"), dict) else None
    if not isinstance(obj, dict):
        return None
    metadata = obj.get("metadata")
    if isinstance(metadata, dict) and metadata.get("session_id"):
        return str(metadata["session_id"])
    return None
