"""Integration fixtures: SQLite-backed store and API client."""

from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from payment_reconciler.api.app import create_app
from payment_reconciler.database import create_tables
from payment_reconciler.models import PaymentSessionRecord
from payment_reconciler.reconciliation import (
    Reconciler,
    ReconcilerConfig,
    RecordingSettlementWorkflow,
    SqlSessionStore,
    StubProviderGateway,
    WebhookConfig,
)

# One shared in-memory SQLite connection per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with the schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def sql_store(session_factory) -> SqlSessionStore:
    return SqlSessionStore(session_factory)


@pytest_asyncio.fixture
async def seed(session_factory):
    """Insert payment session rows."""

    async def _seed(*rows: dict) -> None:
        async with session_factory() as session:
            for row in rows:
                session.add(
                    PaymentSessionRecord(
                        id=row["id"],
                        provider_id=row.get("provider_id", "pp_stripe_stripe"),
                        status=row.get("status", "pending"),
                        data=row.get("data", {"id": f"pi_{row['id']}"}),
                        amount=Decimal(row.get("amount", "100.00")),
                        currency_code=row.get("currency_code", "brl"),
                    )
                )
            await session.commit()

    return _seed


@pytest.fixture
def gateway() -> StubProviderGateway:
    return StubProviderGateway()


@pytest.fixture
def settlement() -> RecordingSettlementWorkflow:
    return RecordingSettlementWorkflow()


@pytest.fixture
def reconciler(gateway, sql_store, settlement) -> Reconciler:
    return Reconciler(
        gateway=gateway,
        store=sql_store,
        settlement=settlement,
        config=ReconcilerConfig(webhook=WebhookConfig(delay_seconds=0)),
    )


@pytest_asyncio.fixture
async def client(reconciler) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app (lifespan not run, poll loop stopped)."""
    app = create_app(reconciler)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await reconciler.bus.close()
