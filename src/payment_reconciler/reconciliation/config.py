"""Reconciler Configuration Objects.

Explicit configuration for the reconciliation engine.

Pattern:
    reconciler = Reconciler(
        gateway=gateway,
        store=store,
        settlement=settlement,
        config=ReconcilerConfig(
            poller=PollerConfig(provider_prefix="pp_stripe", batch_size=200),
            webhook=WebhookConfig(delay_seconds=5, attempts=3),
        ),
    )

Rules:
    1. Immutable after creation (frozen dataclasses).
    2. Validated at construction time.
    3. Environment lookup happens only in ReconcilerConfig.from_settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from payment_reconciler.config import Settings


@dataclass(frozen=True)
class PollerConfig:
    """
    Poll scheduler configuration.

    Attributes:
        provider_prefix: Only sessions whose provider_id starts with this
            prefix are swept. Default "pp_stripe".
        sweep_interval_seconds: Time between the start of two ticks.
            Default 60 (once per minute).
        batch_size: Maximum sessions processed per tick. Sessions beyond
            the cap wait for the next tick. Default 200.
        max_concurrency: Sessions processed in parallel within a tick.
            Default 10.
        gateway_timeout_seconds: Timeout for a single get_status call.
        settlement_timeout_seconds: Timeout for a single settlement run.
    """

    provider_prefix: str = "pp_stripe"
    sweep_interval_seconds: float = 60.0
    batch_size: int = 200
    max_concurrency: int = 10
    gateway_timeout_seconds: float = 30.0
    settlement_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.provider_prefix:
            raise ValueError("provider_prefix is required")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.batch_size < 1 or self.batch_size > 10000:
            raise ValueError("batch_size must be between 1 and 10000")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.gateway_timeout_seconds <= 0 or self.settlement_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")


@dataclass(frozen=True)
class WebhookConfig:
    """
    Webhook delivery configuration.

    Attributes:
        delay_seconds: Delay before a published task is first delivered.
            Default 5.
        attempts: Total delivery attempts per task, including the first.
            Default 3.
        gateway_timeout_seconds: Timeout for resolving the webhook payload.
        settlement_timeout_seconds: Timeout for a single settlement run.
    """

    delay_seconds: float = 5.0
    attempts: int = 3
    gateway_timeout_seconds: float = 30.0
    settlement_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.gateway_timeout_seconds <= 0 or self.settlement_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")


@dataclass(frozen=True)
class ReconcilerConfig:
    """Complete reconciler configuration."""

    poller: PollerConfig = field(default_factory=PollerConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> ReconcilerConfig:
        """Build configuration from environment-backed settings."""
        return cls(
            poller=PollerConfig(
                provider_prefix=settings.provider_prefix,
                sweep_interval_seconds=settings.sweep_interval_seconds,
                batch_size=settings.batch_size,
                max_concurrency=settings.max_concurrency,
                gateway_timeout_seconds=settings.gateway_timeout_seconds,
                settlement_timeout_seconds=settings.settlement_timeout_seconds,
            ),
            webhook=WebhookConfig(
                delay_seconds=settings.webhook_delay_seconds,
                attempts=settings.webhook_attempts,
                gateway_timeout_seconds=settings.gateway_timeout_seconds,
                settlement_timeout_seconds=settings.settlement_timeout_seconds,
            ),
        )
