"""Core types for payment session reconciliation.

Statuses and actions mirror the commerce platform's payment module values,
so they can be compared directly with what the store and the provider return.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


class PaymentSessionStatus(str, Enum):
    """Payment session status values."""

    PENDING = "pending"
    REQUIRES_MORE = "requires_more"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    CANCELED = "canceled"
    FAILED = "error"
    NOT_SUPPORTED = "not_supported"


class PaymentAction(str, Enum):
    """Settlement actions understood by the settlement workflow."""

    SUCCESSFUL = "captured"
    AUTHORIZED = "authorized"
    NOT_SUPPORTED = "not_supported"
    CANCELED = "canceled"
    FAILED = "failed"
    REQUIRES_MORE = "requires_more"


# Statuses still eligible for polling
PENDING_STATUSES: frozenset[str] = frozenset({
    PaymentSessionStatus.PENDING.value,
    PaymentSessionStatus.REQUIRES_MORE.value,
})

# Statuses the engine never overwrites
TERMINAL_STATUSES: frozenset[str] = frozenset({
    PaymentSessionStatus.CAPTURED.value,
    PaymentSessionStatus.CANCELED.value,
    PaymentSessionStatus.FAILED.value,
})


@dataclass(frozen=True)
class PaymentSession:
    """Read view of a payment session owned by the commerce platform."""

    id: str
    provider_id: str
    status: str
    data: dict[str, Any] = field(default_factory=dict)
    amount: Decimal = Decimal("0")
    currency_code: str = "usd"

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES


@dataclass(frozen=True)
class ProviderStatus:
    """Result of asking the provider for a session's current status."""

    status: str | None
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class WebhookActionAndData:
    """Action and data resolved from a raw webhook event.

    data is None when the event could not be decoded.
    """

    action: str | None
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class SettlementRequest:
    """Input for a settlement workflow run."""

    action: str
    session_id: str
    amount: Decimal | None = None

    def to_input(self) -> dict[str, Any]:
        """Serialize to the workflow input shape."""
        return {
            "action": self.action,
            "data": {
                "session_id": self.session_id,
                "amount": str(self.amount) if self.amount is not None else None,
            },
        }


@dataclass(frozen=True)
class ReconciliationTask:
    """Webhook delivery queued on the event bus.

    payload carries the parsed body under "data", the raw request body under
    "raw_data" and the request headers under "headers". session_ref is a
    best-effort hint extracted at ingress and is only used for logging.
    """

    provider: str
    payload: dict[str, Any]
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_ref: str | None = None

    def to_event(self) -> dict[str, Any]:
        """Serialize to the event payload shape consumed by the gateway."""
        return {"provider": self.provider, "payload": self.payload}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ReconciliationTask:
        """Rebuild a task from a bus payload, restoring raw body bytes.

        Raw bodies lose their bytes type when a payload goes through JSON;
        they come back either as {"type": "Buffer", "data": [...]} or as the
        decoded text, which is re-encoded as UTF-8.
        """
        inner = dict(payload.get("payload") or {})
        inner["raw_data"] = _restore_raw_body(inner.get("raw_data"))

        received_at = payload.get("received_at")
        if isinstance(received_at, str):
            received_at = datetime.fromisoformat(received_at)

        return cls(
            provider=payload.get("provider", ""),
            payload=inner,
            received_at=received_at or datetime.now(timezone.utc),
            session_ref=payload.get("session_ref"),
        )


def _restore_raw_body(raw: Any) -> bytes | None:
    if raw is None or isinstance(raw, bytes):
        return raw
    if isinstance(raw, bytearray):
        return bytes(raw)
    if isinstance(raw, dict) and raw.get("type") == "Buffer":
        return bytes(raw.get("data") or [])
    if isinstance(raw, str):
        return raw.encode("utf-8")
    raise TypeError(f"Unsupported raw body type: {type(raw).__name__}")
