"""Reconciliation test fixtures with in-memory collaborators."""

from decimal import Decimal
from typing import Any, Callable

import pytest

from payment_reconciler.reconciliation.config import PollerConfig, WebhookConfig
from payment_reconciler.reconciliation.providers.stub import StubProviderGateway
from payment_reconciler.reconciliation.settlement import RecordingSettlementWorkflow
from payment_reconciler.reconciliation.store import InMemorySessionStore
from payment_reconciler.reconciliation.types import PaymentSession, PaymentSessionStatus

PROVIDER_ID = "pp_stripe_stripe"


@pytest.fixture
def gateway() -> StubProviderGateway:
    """Stub provider gateway."""
    return StubProviderGateway()


@pytest.fixture
def store() -> InMemorySessionStore:
    """Empty in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def settlement() -> RecordingSettlementWorkflow:
    """Settlement workflow that records requests."""
    return RecordingSettlementWorkflow()


@pytest.fixture
def poller_config() -> PollerConfig:
    """Poller config with short timeouts for tests."""
    return PollerConfig(
        provider_prefix="pp_stripe",
        sweep_interval_seconds=0.05,
        batch_size=200,
        max_concurrency=5,
        gateway_timeout_seconds=0.5,
        settlement_timeout_seconds=0.5,
    )


@pytest.fixture
def webhook_config() -> WebhookConfig:
    """Webhook config with no delivery delay."""
    return WebhookConfig(
        delay_seconds=0,
        attempts=3,
        gateway_timeout_seconds=0.5,
        settlement_timeout_seconds=0.5,
    )


@pytest.fixture
def make_session(store: InMemorySessionStore) -> Callable[..., PaymentSession]:
    """Create a pending session in the store."""

    def _make(
        session_id: str,
        *,
        intent_id: str | None = None,
        provider_id: str = PROVIDER_ID,
        status: str = PaymentSessionStatus.PENDING.value,
        amount: str = "150.00",
        **data: Any,
    ) -> PaymentSession:
        session = PaymentSession(
            id=session_id,
            provider_id=provider_id,
            status=status,
            data={"id": intent_id or f"pi_{session_id}", **data},
            amount=Decimal(amount),
            currency_code="brl",
        )
        store.add(session)
        return session

    return _make


def stripe_event(
    event_type: str,
    session_id: str | None,
    *,
    amount: int = 15000,
    payment_method_types: list[str] | None = None,
) -> dict[str, Any]:
    """Build a Stripe-style webhook body."""
    obj: dict[str, Any] = {
        "id": f"pi_{session_id}",
        "amount": amount,
        "metadata": {"session_id": session_id} if session_id else {},
        "payment_method_types": payment_method_types or ["pix"],
    }
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


@pytest.fixture
def event_body() -> Callable[..., dict[str, Any]]:
    """Factory for Stripe-style webhook bodies."""
    return stripe_event
