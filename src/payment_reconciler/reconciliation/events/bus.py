"""In-process event bus for delayed, retried delivery.

The bus provides:
- Handler registration keyed by event name
- Delayed delivery (publish now, deliver after `delay` seconds)
- Bounded retry (a failing handler is retried up to `attempts` times)
- Error isolation (one handler's failure doesn't affect the others)

Delivery is at-least-once. Handlers may run concurrently and out of order.
Only the most recent delivery records are kept.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)

# Delivery records retained for inspection
DEFAULT_HISTORY_SIZE = 1000

AsyncEventHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class EventBus(Protocol):
    """Protocol for the event bus used by webhook ingress."""

    def publish(
        self,
        event_name: str,
        payload: dict[str, Any],
        *,
        delay: float = 0.0,
        attempts: int = 1,
    ) -> None:
        """Queue an event for delivery."""
        ...

    def subscribe(
        self,
        event_name: str,
        handler: AsyncEventHandler,
        subscriber_id: str | None = None,
    ) -> None:
        """Register a handler for an event name."""
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: AsyncEventHandler
    subscriber_id: str


@dataclass
class DeliveryRecord:
    """Outcome of delivering one event to one handler."""

    event_name: str
    subscriber_id: str
    attempts: int = 0
    succeeded: bool = False
    errors: list[str] = field(default_factory=list)


class AsyncEventBus:
    """Asynchronous in-process event bus.

    Usage:
        bus = AsyncEventBus()
        bus.subscribe("payment.webhook_received", consumer.handle_event)
        bus.publish("payment.webhook_received", payload, delay=5, attempts=3)

        await bus.drain()  # wait for outstanding deliveries
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if history_size < 0:
            raise ValueError("history_size must be non-negative")
        self._handlers: dict[str, list[HandlerRegistration]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self.deliveries: deque[DeliveryRecord] = deque(maxlen=history_size)

    def subscribe(
        self,
        event_name: str,
        handler: AsyncEventHandler,
        subscriber_id: str | None = None,
    ) -> None:
        """Register async handler for an event name."""
        self._handlers.setdefault(event_name, []).append(
            HandlerRegistration(
                handler=handler,
                subscriber_id=subscriber_id or getattr(handler, "__qualname__", repr(handler)),
            )
        )

    def unsubscribe(self, event_name: str, handler: AsyncEventHandler) -> None:
        """Unregister a handler."""
        self._handlers[event_name] = [
            reg for reg in self._handlers.get(event_name, []) if reg.handler is not handler
        ]

    def publish(
        self,
        event_name: str,
        payload: dict[str, Any],
        *,
        delay: float = 0.0,
        attempts: int = 1,
    ) -> None:
        """Queue an event for each handler registered under its name.

        Must be called from a running event loop.
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")

        registrations = list(self._handlers.get(event_name, []))
        if not registrations:
            logger.warning("No handlers for event %s, dropping", event_name)
            return

        for reg in registrations:
            record = DeliveryRecord(event_name=event_name, subscriber_id=reg.subscriber_id)
            self.deliveries.append(record)
            task = asyncio.create_task(self._deliver(reg, payload, delay, attempts, record))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(
        self,
        reg: HandlerRegistration,
        payload: dict[str, Any],
        delay: float,
        attempts: int,
        record: DeliveryRecord,
    ) -> None:
        """Deliver to one handler, retrying on failure."""
        for attempt in range(1, attempts + 1):
            if delay:
                await asyncio.sleep(delay)
            record.attempts = attempt
            try:
                await reg.handler(payload)
            except Exception as e:
                record.errors.append(f"{type(e).__name__}: {e}")
                logger.exception(
                    "Handler %s failed for event %s (attempt %d/%d)",
                    reg.subscriber_id,
                    record.event_name,
                    attempt,
                    attempts,
                )
                continue
            record.succeeded = True
            return

        logger.warning(
            "Giving up on event %s for %s after %d attempts",
            record.event_name,
            reg.subscriber_id,
            attempts,
        )

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until all in-flight deliveries finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight deliveries."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
