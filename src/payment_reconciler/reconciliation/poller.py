"""Poll Scheduler - periodic sweep of pending payment sessions.

Each tick lists sessions still in the pending set, asks the provider for
their current status and either mirrors the status back onto the session or
runs settlement. This is the durable path: even if every webhook is lost,
sessions converge within one sweep of the provider reporting a final state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from payment_reconciler.reconciliation.config import PollerConfig
from payment_reconciler.reconciliation.errors import GatewayTimeout, SettlementTimeout, require
from payment_reconciler.reconciliation.policy import classify_status, is_card_payment
from payment_reconciler.reconciliation.providers.base import ProviderGateway
from payment_reconciler.reconciliation.settlement import SettlementWorkflow
from payment_reconciler.reconciliation.store import SessionStore
from payment_reconciler.reconciliation.types import (
    PENDING_STATUSES,
    PaymentAction,
    PaymentSession,
    SettlementRequest,
)

logger = logging.getLogger(__name__)


class SessionOutcome(str, Enum):
    """What a tick did with one session."""

    UNCHANGED = "unchanged"  # Still pending at the provider
    MIRRORED = "mirrored"  # Status persisted, no settlement action
    CARD_SKIPPED = "card_skipped"  # Card session, status persisted only
    SETTLED = "settled"  # Settlement run, status persisted
    TIMED_OUT = "timed_out"  # Abandoned for this tick
    FAILED = "failed"  # Error, retried next tick


@dataclass
class PollTickResult:
    """Result of a poll tick."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sessions_listed: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    errors: list[dict[str, Any]] = field(default_factory=list)
    duration_seconds: float = 0.0

    def record(self, outcome: SessionOutcome) -> None:
        self.outcomes[outcome.value] = self.outcomes.get(outcome.value, 0) + 1

    def count(self, outcome: SessionOutcome) -> int:
        return self.outcomes.get(outcome.value, 0)

    @property
    def success(self) -> bool:
        """Whether every session was processed without error."""
        return not self.errors


class PollScheduler:
    """Periodic reconciliation of pending sessions against the provider.

    Collaborators are injected and required; there is no fallback lookup.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        store: SessionStore,
        settlement: SettlementWorkflow,
        config: PollerConfig | None = None,
    ):
        require("PollScheduler", gateway=gateway, store=store, settlement=settlement)
        self.gateway = gateway
        self.store = store
        self.settlement = settlement
        self.config = config or PollerConfig()
        self.last_result: PollTickResult | None = None
        self._tick_lock = asyncio.Lock()

    async def run_tick(self) -> PollTickResult:
        """Run one sweep over pending sessions.

        Ticks never overlap; a tick requested while another is running waits
        for it. Per-session failures are recorded on the result, never raised.
        """
        async with self._tick_lock:
            result = PollTickResult()
            started = time.monotonic()

            sessions = await self.store.list_pending(
                provider_prefix=self.config.provider_prefix,
                limit=self.config.batch_size,
            )
            result.sessions_listed = len(sessions)

            semaphore = asyncio.Semaphore(self.config.max_concurrency)

            async def worker(session: PaymentSession) -> None:
                async with semaphore:
                    await self._process_isolated(session, result)

            await asyncio.gather(*(worker(s) for s in sessions))

            result.duration_seconds = time.monotonic() - started
            self.last_result = result
            logger.info(
                "Poll tick processed %d sessions in %.2fs: %s",
                result.sessions_listed,
                result.duration_seconds,
                result.outcomes,
            )
            return result

    async def run_forever(self) -> None:
        """Run ticks at the configured interval until cancelled.

        The interval is measured from the start of one tick to the start of
        the next; a tick that overruns delays the next one instead of
        overlapping it.
        """
        interval = self.config.sweep_interval_seconds
        while True:
            started = time.monotonic()
            try:
                await self.run_tick()
            except Exception:
                logger.exception("Poll tick failed")
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, interval - elapsed))

    async def _process_isolated(self, session: PaymentSession, result: PollTickResult) -> None:
        """Process one session; failures stay with the session."""
        try:
            outcome = await self.process_session(session)
        except (GatewayTimeout, SettlementTimeout) as e:
            logger.warning("Poll abandoned %s this tick: %s", session.id, e)
            result.record(SessionOutcome.TIMED_OUT)
            result.errors.append({
                "code": "TIMEOUT",
                "session_id": session.id,
                "message": str(e),
            })
        except Exception as e:
            logger.warning("Poll failed for %s: %s", session.id, e, exc_info=True)
            result.record(SessionOutcome.FAILED)
            result.errors.append({
                "code": "SESSION_ERROR",
                "session_id": session.id,
                "message": str(e),
            })
        else:
            result.record(outcome)

    async def process_session(self, session: PaymentSession) -> SessionOutcome:
        """Reconcile a single session with the provider.

        Raises on transport, settlement or store failure.
        """
        provider_status = await self._get_status(session)

        next_status = provider_status.status
        next_data = provider_status.data if provider_status.data is not None else session.data

        if not next_status or next_status in PENDING_STATUSES:
            if next_data != session.data:
                await self.store.update(session.id, data=next_data)
            return SessionOutcome.UNCHANGED

        action = classify_status(next_status)

        if is_card_payment(session.data, next_data):
            logger.info("Card session %s skipped (%s)", session.id, next_status)
            await self.store.update(session.id, status=next_status, data=next_data)
            return SessionOutcome.CARD_SKIPPED

        # Authorization alone is informational on this path
        if action is None or action == PaymentAction.AUTHORIZED.value:
            await self.store.update(session.id, status=next_status, data=next_data)
            return SessionOutcome.MIRRORED

        await self._settle(
            SettlementRequest(action=action, session_id=session.id, amount=session.amount)
        )
        await self.store.update(session.id, status=next_status, data=next_data)
        return SessionOutcome.SETTLED

    async def _get_status(self, session: PaymentSession):
        timeout = self.config.gateway_timeout_seconds
        try:
            return await asyncio.wait_for(
                self.gateway.get_status(session.provider_id, session.data),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise GatewayTimeout("get_status", timeout) from None

    async def _settle(self, request: SettlementRequest) -> None:
        timeout = self.config.settlement_timeout_seconds
        try:
            await asyncio.wait_for(self.settlement.run(request), timeout=timeout)
        except asyncio.TimeoutError:
            raise SettlementTimeout(request.session_id, timeout) from None
