"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel

from payment_reconciler.api.dependencies import ReconcilerDep

router = APIRouter(tags=["health"])


class LastTick(BaseModel):
    """Summary of the most recent poll tick."""

    started_at: datetime
    sessions_listed: int
    outcomes: dict[str, int]
    error_count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    poller: str
    pending_webhooks: int
    last_tick: LastTick | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(reconciler: ReconcilerDep) -> HealthResponse:
    """Report poll loop state and the last tick summary."""
    last = reconciler.poller.last_result
    last_tick = None
    if last is not None:
        last_tick = LastTick(
            started_at=last.started_at,
            sessions_listed=last.sessions_listed,
            outcomes=dict(last.outcomes),
            error_count=len(last.errors),
        )

    poller_state = "running" if reconciler.running else "stopped"
    return HealthResponse(
        status="healthy" if reconciler.running else "degraded",
        timestamp=datetime.now(timezone.utc),
        poller=poller_state,
        pending_webhooks=reconciler.bus.pending,
        last_tick=last_tick,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
