"""Event bus for webhook delivery."""

from payment_reconciler.reconciliation.events.bus import (
    AsyncEventBus,
    AsyncEventHandler,
    DeliveryRecord,
    EventBus,
)

# Event published by webhook ingress and consumed by the webhook consumer
WEBHOOK_EVENT = "payment.webhook_received"

__all__ = [
    "AsyncEventBus",
    "AsyncEventHandler",
    "DeliveryRecord",
    "EventBus",
    "WEBHOOK_EVENT",
]
