"""Reconciler Facade - wires both reconciliation paths together.

Usage:
    reconciler = Reconciler(
        gateway=gateway,
        store=SqlSessionStore(session_factory),
        settlement=settlement_workflow,
        config=ReconcilerConfig.from_settings(get_settings()),
    )

    await reconciler.start()         # subscribe consumer, launch poll loop
    reconciler.ingress.receive(...)  # from the webhook route
    await reconciler.poll_once()     # one sweep, e.g. from a scheduler
    await reconciler.stop()

The poll path and the webhook path share one gateway, one settlement
workflow and one classification policy, so they converge on the same result
whichever sees a provider change first.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from payment_reconciler.reconciliation.config import ReconcilerConfig
from payment_reconciler.reconciliation.errors import require
from payment_reconciler.reconciliation.events import WEBHOOK_EVENT, AsyncEventBus
from payment_reconciler.reconciliation.poller import PollScheduler, PollTickResult
from payment_reconciler.reconciliation.providers.base import ProviderGateway
from payment_reconciler.reconciliation.providers.stub import StubProviderGateway
from payment_reconciler.reconciliation.settlement import (
    RecordingSettlementWorkflow,
    SettlementWorkflow,
)
from payment_reconciler.reconciliation.store import (
    InMemorySessionStore,
    SessionStore,
    SqlSessionStore,
)
from payment_reconciler.reconciliation.types import PaymentSession, PaymentSessionStatus
from payment_reconciler.reconciliation.webhook import WebhookConsumer, WebhookIngress

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

WEBHOOK_SUBSCRIBER_ID = "payment-webhook-consumer"


class Reconciler:
    """Payment session reconciliation engine."""

    def __init__(
        self,
        gateway: ProviderGateway,
        store: SessionStore,
        settlement: SettlementWorkflow,
        config: ReconcilerConfig | None = None,
        bus: AsyncEventBus | None = None,
    ):
        require("Reconciler", gateway=gateway, store=store, settlement=settlement)
        self.config = config or ReconcilerConfig()
        self.bus = bus or AsyncEventBus()
        self.poller = PollScheduler(gateway, store, settlement, self.config.poller)
        self.consumer = WebhookConsumer(gateway, settlement, self.config.webhook)
        self.ingress = WebhookIngress(self.bus, self.config.webhook)
        self.bus.subscribe(WEBHOOK_EVENT, self.consumer.handle_event, WEBHOOK_SUBSCRIBER_ID)
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        """Launch the poll loop."""
        if self.running:
            return
        self._poll_task = asyncio.create_task(self.poller.run_forever())
        logger.info(
            "Reconciler started (interval=%ss, batch=%d)",
            self.config.poller.sweep_interval_seconds,
            self.config.poller.batch_size,
        )

    async def stop(self) -> None:
        """Stop the poll loop and cancel in-flight webhook deliveries."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None
        await self.bus.close()
        logger.info("Reconciler stopped")

    async def poll_once(self) -> PollTickResult:
        """Run a single poll tick."""
        return await self.poller.run_tick()


def create_sandbox_reconciler(config: ReconcilerConfig | None = None) -> Reconciler:
    """
    Create a reconciler over in-memory stubs for local development.

    Seeds one pending session whose intent has already been captured, so the
    first tick shows a full settlement.
    """
    gateway = StubProviderGateway()
    store = InMemorySessionStore([
        PaymentSession(
            id="payses_sandbox_1",
            provider_id="pp_stripe_stripe",
            status=PaymentSessionStatus.PENDING.value,
            data={"id": "pi_sandbox_1", "payment_method_type": "pix"},
            amount=Decimal("100.00"),
            currency_code="brl",
        ),
    ])
    gateway.set_status("pi_sandbox_1", PaymentSessionStatus.CAPTURED)
    return Reconciler(
        gateway=gateway,
        store=store,
        settlement=RecordingSettlementWorkflow(),
        config=config,
    )


def create_database_reconciler(
    session_factory: async_sessionmaker[AsyncSession],
    config: ReconcilerConfig | None = None,
    gateway: ProviderGateway | None = None,
    settlement: SettlementWorkflow | None = None,
) -> Reconciler:
    """
    Create a reconciler over the payment_session table.

    Gateway and settlement default to the development stubs until real
    adapters are passed in.
    """
    if gateway is None or settlement is None:
        logger.warning("Reconciler running with stub provider gateway or settlement workflow")
    return Reconciler(
        gateway=gateway or StubProviderGateway(),
        store=SqlSessionStore(session_factory),
        settlement=settlement or RecordingSettlementWorkflow(),
        config=config,
    )
