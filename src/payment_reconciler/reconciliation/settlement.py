"""Settlement workflow protocol and wrappers.

The settlement workflow performs the authoritative state transition for a
payment session. Both reconciliation paths may run it for the same session,
so it must be idempotent per (session, action). When a downstream cannot
guarantee that, wrap it in LockingSettlementWorkflow.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Protocol

from payment_reconciler.reconciliation.errors import SessionLockedError, require
from payment_reconciler.reconciliation.types import SettlementRequest

logger = logging.getLogger(__name__)

# Completed (session_id, action) pairs remembered by LockingSettlementWorkflow
DEFAULT_MAX_COMPLETED = 10_000


class SettlementWorkflow(Protocol):
    """Protocol for the settlement workflow."""

    async def run(self, request: SettlementRequest) -> None:
        """Run settlement for a session. Raises on failure."""
        ...


class LockingSettlementWorkflow:
    """Per-session mutual exclusion around a non-idempotent workflow.

    A session can only be settled by one caller at a time; a concurrent
    caller gets SessionLockedError (and retries through its own path).
    The most recent `max_completed` (session_id, action) pairs are remembered
    so a repeat becomes a no-op; older pairs fall back on the downstream.
    """

    def __init__(self, inner: SettlementWorkflow, max_completed: int = DEFAULT_MAX_COMPLETED):
        require("LockingSettlementWorkflow", inner=inner)
        if max_completed < 1:
            raise ValueError("max_completed must be at least 1")
        self.inner = inner
        self.max_completed = max_completed
        self._locks: set[str] = set()
        self._completed: OrderedDict[tuple[str, str], None] = OrderedDict()

    async def run(self, request: SettlementRequest) -> None:
        key = (request.session_id, request.action)
        if self._seen(key):
            logger.info(
                "Settlement already completed for %s (%s), skipping",
                request.session_id,
                request.action,
            )
            return

        self._acquire(request.session_id)
        try:
            if self._seen(key):
                return
            await self.inner.run(request)
            self._remember(key)
        finally:
            self._release(request.session_id)

    @property
    def completed_count(self) -> int:
        return len(self._completed)

    def _seen(self, key: tuple[str, str]) -> bool:
        if key not in self._completed:
            return False
        self._completed.move_to_end(key)
        return True

    def _remember(self, key: tuple[str, str]) -> None:
        self._completed[key] = None
        self._completed.move_to_end(key)
        while len(self._completed) > self.max_completed:
            self._completed.popitem(last=False)

    def _acquire(self, session_id: str) -> None:
        if session_id in self._locks:
            raise SessionLockedError(session_id)
        self._locks.add(session_id)

    def _release(self, session_id: str) -> None:
        self._locks.discard(session_id)


class RecordingSettlementWorkflow:
    """Settlement workflow stub for development and testing.

    Records every request. Set `error` to make runs fail.
    """

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.requests: list[SettlementRequest] = []

    async def run(self, request: SettlementRequest) -> None:
        if self.error is not None:
            raise self.error
        self.requests.append(request)
        logger.info("Settled %s with action %s", request.session_id, request.action)

    def calls_for(self, session_id: str) -> list[SettlementRequest]:
        """Requests recorded for a session."""
        return [r for r in self.requests if r.session_id == session_id]
