"""Tests for webhook ingress and consumer.

Tests verify:
1. Only successful and authorized actions reach settlement
2. Undecodable, card and non-actionable events are dropped
3. Gateway and settlement failures propagate for bus retry
4. Ingress publishes tasks that the bus delivers to the consumer
"""

import asyncio
from datetime import datetime, timezone

import pytest

from payment_reconciler.reconciliation.config import WebhookConfig
from payment_reconciler.reconciliation.events import WEBHOOK_EVENT, AsyncEventBus
from payment_reconciler.reconciliation.errors import GatewayTimeout, MissingCollaboratorError
from payment_reconciler.reconciliation.settlement import RecordingSettlementWorkflow
from payment_reconciler.reconciliation.types import (
    PaymentAction,
    ReconciliationTask,
    WebhookActionAndData,
)
from payment_reconciler.reconciliation.webhook import (
    WebhookConsumer,
    WebhookIngress,
    WebhookOutcome,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
def consumer(gateway, settlement, webhook_config) -> WebhookConsumer:
    return WebhookConsumer(gateway, settlement, webhook_config)


def task_for(body) -> ReconciliationTask:
    return ReconciliationTask(
        provider="stripe",
        payload={"data": body, "raw_data": b"{}", "headers": {}},
    )


class TestWebhookConsumer:
    """Test webhook task handling."""

    async def test_succeeded_event_is_settled(self, consumer, settlement, event_body):
        """A capture event runs settlement with the resolved action and amount."""
        outcome = await consumer.handle(task_for(event_body("payment_intent.succeeded", "S1", amount=9990)))

        assert outcome == WebhookOutcome.SETTLED
        assert len(settlement.requests) == 1
        request = settlement.requests[0]
        assert request.session_id == "S1"
        assert request.action == PaymentAction.SUCCESSFUL.value
        assert str(request.amount) == "9990"

    async def test_authorized_event_is_settled(self, consumer, settlement, event_body):
        """Authorization is actionable on the webhook path."""
        outcome = await consumer.handle(
            task_for(event_body("payment_intent.amount_capturable_updated", "S1"))
        )

        assert outcome == WebhookOutcome.SETTLED
        assert settlement.requests[0].action == PaymentAction.AUTHORIZED.value

    async def test_requires_more_is_dropped(self, consumer, settlement, event_body):
        """A requires-more event is dropped without settlement."""
        outcome = await consumer.handle(task_for(event_body("payment_intent.requires_action", "S3")))

        assert outcome == WebhookOutcome.DROPPED_NON_ACTIONABLE
        assert settlement.requests == []

    @pytest.mark.parametrize(
        "event_type",
        ["payment_intent.payment_failed", "payment_intent.canceled", "charge.dispute.created"],
    )
    async def test_non_actionable_events_are_dropped(self, event_type, consumer, settlement, event_body):
        """Failed, canceled and unsupported events never settle from here."""
        outcome = await consumer.handle(task_for(event_body(event_type, "S4")))

        assert outcome == WebhookOutcome.DROPPED_NON_ACTIONABLE
        assert settlement.requests == []

    async def test_card_event_is_dropped(self, consumer, settlement, event_body):
        """Card events are left to the confirmation flow."""
        body = event_body("payment_intent.succeeded", "S2", payment_method_types=["card"])

        outcome = await consumer.handle(task_for(body))

        assert outcome == WebhookOutcome.DROPPED_CARD
        assert settlement.requests == []

    async def test_undecodable_event_is_dropped(self, consumer, settlement):
        """Events without resolvable data are a no-op, not an error."""
        outcome = await consumer.handle(task_for("not json at all"))

        assert outcome == WebhookOutcome.DROPPED_UNDECODABLE
        assert settlement.requests == []

    async def test_event_without_session_is_dropped(self, consumer, settlement, event_body):
        """Events that name no session are dropped."""
        outcome = await consumer.handle(task_for(event_body("payment_intent.succeeded", None)))

        assert outcome == WebhookOutcome.DROPPED_UNDECODABLE
        assert settlement.requests == []

    async def test_payload_is_resolved_through_gateway(self, settlement, webhook_config, event_body):
        """The consumer acts on the gateway's resolution, not the pushed body."""

        class DowngradingGateway:
            async def get_status(self, provider_id, data):
                raise NotImplementedError

            async def get_webhook_action_and_data(self, event):
                return WebhookActionAndData(
                    action=PaymentAction.CANCELED.value,
                    data={"session_id": "S5"},
                )

        consumer = WebhookConsumer(DowngradingGateway(), settlement, webhook_config)
        outcome = await consumer.handle(task_for(event_body("payment_intent.succeeded", "S5")))

        assert outcome == WebhookOutcome.DROPPED_NON_ACTIONABLE
        assert settlement.requests == []

    @pytest.mark.parametrize("amount", ["12,50", "abc", "NaN", "Infinity"])
    async def test_malformed_amount_is_dropped(self, amount, settlement, webhook_config, event_body):
        """A malformed resolved amount is dropped, not retried."""

        class MalformedAmountGateway:
            async def get_status(self, provider_id, data):
                raise NotImplementedError

            async def get_webhook_action_and_data(self, event):
                return WebhookActionAndData(
                    action=PaymentAction.SUCCESSFUL.value,
                    data={"session_id": "S5", "amount": amount},
                )

        consumer = WebhookConsumer(MalformedAmountGateway(), settlement, webhook_config)
        outcome = await consumer.handle(task_for(event_body("payment_intent.succeeded", "S5")))

        assert outcome == WebhookOutcome.DROPPED_UNDECODABLE
        assert settlement.requests == []

    async def test_settlement_failure_propagates(self, gateway, webhook_config, event_body):
        """Settlement errors raise so the bus can retry."""
        failing = RecordingSettlementWorkflow(error=RuntimeError("workflow down"))
        consumer = WebhookConsumer(gateway, failing, webhook_config)

        with pytest.raises(RuntimeError, match="workflow down"):
            await consumer.handle(task_for(event_body("payment_intent.succeeded", "S6")))

    async def test_gateway_timeout_propagates(self, settlement, event_body):
        """A hung resolution raises GatewayTimeout."""

        class HangingGateway:
            async def get_status(self, provider_id, data):
                raise NotImplementedError

            async def get_webhook_action_and_data(self, event):
                await asyncio.sleep(10)

        consumer = WebhookConsumer(
            HangingGateway(), settlement, WebhookConfig(gateway_timeout_seconds=0.05)
        )
        with pytest.raises(GatewayTimeout):
            await consumer.handle(task_for(event_body("payment_intent.succeeded", "S7")))

    async def test_missing_collaborator_fails_fast(self, gateway):
        """Construction without a settlement workflow raises."""
        with pytest.raises(MissingCollaboratorError):
            WebhookConsumer(gateway, None)


class TestReconciliationTask:
    """Test task payload round trip through the bus."""

    async def test_restores_buffer_raw_body(self):
        """JSON-serialized Buffer bodies come back as bytes."""
        task = ReconciliationTask.from_payload({
            "provider": "stripe",
            "payload": {"data": {}, "raw_data": {"type": "Buffer", "data": [123, 125]}},
            "received_at": "2026-01-05T10:00:00+00:00",
        })

        assert task.payload["raw_data"] == b"{}"
        assert task.received_at == datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)

    async def test_restores_text_raw_body(self):
        """Text raw bodies are re-encoded byte for byte."""
        task = ReconciliationTask.from_payload(
            {"provider": "stripe", "payload": {"data": {}, "raw_data": '{"a":"bcd"}'}}
        )

        assert task.payload["raw_data"] == b'{"a":"bcd"}'

    async def test_text_raw_body_keeps_non_ascii(self):
        """Non-ASCII text survives the restore as UTF-8."""
        body = '{"name": "Jo\u00e3o"}'
        task = ReconciliationTask.from_payload({"provider": "stripe", "payload": {"raw_data": body}})

        assert task.payload["raw_data"] == body.encode("utf-8")
        assert task.payload["raw_data"].decode("utf-8") == body

    async def test_rejects_unknown_raw_body_type(self):
        """Raw bodies of other types are a decoding error."""
        with pytest.raises(TypeError):
            ReconciliationTask.from_payload({"provider": "stripe", "payload": {"raw_data": 42}})

    async def test_keeps_bytes_raw_body(self):
        """Bytes bodies are passed through."""
        task = ReconciliationTask.from_payload({"provider": "stripe", "payload": {"raw_data": b"x"}})

        assert task.payload["raw_data"] == b"x"


class TestWebhookIngress:
    """Test ingress publishing and bus delivery."""

    async def test_ingress_publishes_and_consumer_settles(self, consumer, settlement, webhook_config, event_body):
        """A received webhook is delivered to the consumer and settled."""
        bus = AsyncEventBus()
        bus.subscribe(WEBHOOK_EVENT, consumer.handle_event)
        ingress = WebhookIngress(bus, webhook_config)

        task = ingress.receive("stripe", event_body("payment_intent.succeeded", "S8"), raw_body=b"{}")
        await bus.drain()

        assert task.session_ref == "S8"
        assert [r.session_id for r in settlement.requests] == ["S8"]
        assert bus.deliveries[0].succeeded is True

    async def test_failing_delivery_is_retried(self, gateway, webhook_config, event_body):
        """Settlement failures are retried up to the configured attempts."""
        attempts = 0

        class FlakySettlement:
            async def run(self, request):
                nonlocal attempts
                attempts += 1
                if attempts < 3:
                    raise ConnectionError("flaky")

        bus = AsyncEventBus()
        consumer = WebhookConsumer(gateway, FlakySettlement(), webhook_config)
        bus.subscribe(WEBHOOK_EVENT, consumer.handle_event)

        WebhookIngress(bus, webhook_config).receive(
            "stripe", event_body("payment_intent.succeeded", "S9")
        )
        await bus.drain()

        assert attempts == 3
        assert bus.deliveries[0].succeeded is True
        assert bus.deliveries[0].attempts == 3

    async def test_delivery_waits_for_delay(self, consumer, settlement, event_body):
        """Tasks are delivered only after the configured delay."""
        bus = AsyncEventBus()
        bus.subscribe(WEBHOOK_EVENT, consumer.handle_event)
        WebhookIngress(bus, WebhookConfig(delay_seconds=0.1)).receive(
            "stripe", event_body("payment_intent.succeeded", "S10")
        )

        await asyncio.sleep(0.02)
        assert settlement.requests == []

        await bus.drain()
        assert len(settlement.requests) == 1
