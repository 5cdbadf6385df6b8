"""Payment session stores.

The reconciler reads pending sessions and writes back status and provider
data. Writes are conditional on the stored status not being terminal, so a
late write from one path can never undo a terminal status recorded by the
other.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_reconciler.models.payment_session import PaymentSessionRecord
from payment_reconciler.reconciliation.types import (
    PENDING_STATUSES,
    TERMINAL_STATUSES,
    PaymentSession,
)


class SessionStore(Protocol):
    """Protocol for payment session persistence."""

    async def list_pending(self, *, provider_prefix: str, limit: int) -> list[PaymentSession]:
        """List sessions in the pending set for providers matching a prefix.

        At most `limit` sessions are returned, in no guaranteed order.
        """
        ...

    async def update(
        self,
        session_id: str,
        *,
        status: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Update status and/or data of a session.

        Returns False when nothing was written because the session is
        missing or already terminal.
        """
        ...


class SqlSessionStore:
    """SQLAlchemy-backed session store.

    Opens one AsyncSession per operation so concurrent workers never share a
    session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_pending(self, *, provider_prefix: str, limit: int) -> list[PaymentSession]:
        """List pending sessions for a provider prefix."""
        stmt = (
            select(PaymentSessionRecord)
            .where(PaymentSessionRecord.status.in_(sorted(PENDING_STATUSES)))
            .where(PaymentSessionRecord.provider_id.startswith(provider_prefix, autoescape=True))
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_to_session(record) for record in result.scalars()]

    async def update(
        self,
        session_id: str,
        *,
        status: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Conditionally update a session that is not terminal."""
        values: dict[str, Any] = {}
        if status is not None:
            values["status"] = status
        if data is not None:
            values["data"] = data
        if not values:
            return False

        stmt = (
            update(PaymentSessionRecord)
            .where(PaymentSessionRecord.id == session_id)
            .where(PaymentSessionRecord.status.not_in(sorted(TERMINAL_STATUSES)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def get(self, session_id: str) -> PaymentSession | None:
        """Get a session by id."""
        async with self.session_factory() as session:
            record = await session.get(PaymentSessionRecord, session_id)
            return _to_session(record) if record else None


def _to_session(record: PaymentSessionRecord) -> PaymentSession:
    return PaymentSession(
        id=record.id,
        provider_id=record.provider_id,
        status=record.status,
        data=dict(record.data or {}),
        amount=Decimal(str(record.amount)),
        currency_code=record.currency_code,
    )


class InMemorySessionStore:
    """In-memory session store for development and testing."""

    def __init__(self, sessions: list[PaymentSession] | None = None):
        self._sessions: dict[str, PaymentSession] = {}
        self.updates: list[dict[str, Any]] = []
        for session in sessions or []:
            self.add(session)

    def add(self, session: PaymentSession) -> None:
        """Add or replace a session."""
        self._sessions[session.id] = session

    async def list_pending(self, *, provider_prefix: str, limit: int) -> list[PaymentSession]:
        """List pending sessions for a provider prefix."""
        matching = [
            s for s in self._sessions.values()
            if s.is_pending and s.provider_id.startswith(provider_prefix)
        ]
        return matching[:limit]

    async def update(
        self,
        session_id: str,
        *,
        status: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Conditionally update a session that is not terminal."""
        current = self._sessions.get(session_id)
        if current is None or current.status in TERMINAL_STATUSES:
            return False
        if status is None and data is None:
            return False

        self._sessions[session_id] = PaymentSession(
            id=current.id,
            provider_id=current.provider_id,
            status=status if status is not None else current.status,
            data=data if data is not None else current.data,
            amount=current.amount,
            currency_code=current.currency_code,
        )
        self.updates.append({"id": session_id, "status": status, "data": data})
        return True

    async def get(self, session_id: str) -> PaymentSession | None:
        """Get a session by id."""
        return self._sessions.get(session_id)
