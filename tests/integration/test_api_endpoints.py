"""API endpoint integration tests.

Tests the webhook ingress route and health endpoints.
"""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


def succeeded_event(session_id: str, payment_method_types: list[str] | None = None) -> dict:
    return {
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": f"pi_{session_id}",
                "amount": 5000,
                "metadata": {"session_id": session_id},
                "payment_method_types": payment_method_types or ["pix"],
            }
        },
    }


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint reports the stopped poller as degraded."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "degraded"
        assert data["poller"] == "stopped"
        assert data["last_tick"] is None

    async def test_health_reports_last_tick(self, client: AsyncClient, reconciler):
        """After a tick, the summary is included."""
        await reconciler.poll_once()

        data = (await client.get("/health")).json()

        assert data["last_tick"]["sessions_listed"] == 0
        assert data["last_tick"]["error_count"] == 0

    async def test_readiness_check(self, client: AsyncClient):
        """Readiness endpoint should return 200."""
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        """Liveness endpoint should return 200."""
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestWebhookEndpoint:
    """Test POST /hooks/payment/{provider}."""

    async def test_webhook_is_queued_and_settled(self, client: AsyncClient, reconciler, settlement):
        """Accepted webhooks are delivered to the consumer."""
        response = await client.post("/hooks/payment/stripe", json=succeeded_event("S1"))

        assert response.status_code == 200
        await reconciler.bus.drain()
        assert [r.session_id for r in settlement.requests] == ["S1"]

    async def test_card_webhook_is_accepted_but_not_settled(
        self, client: AsyncClient, reconciler, settlement
    ):
        """Card webhooks are acknowledged and dropped by the consumer."""
        response = await client.post(
            "/hooks/payment/stripe", json=succeeded_event("S2", ["card"])
        )

        assert response.status_code == 200
        await reconciler.bus.drain()
        assert settlement.requests == []

    async def test_malformed_body_is_rejected(self, client: AsyncClient, reconciler):
        """Bodies that are not JSON get a 400."""
        response = await client.post(
            "/hooks/payment/stripe",
            content=b"not-json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.text.startswith("Webhook Error:")
        assert reconciler.bus.pending == 0
