"""Base protocol for payment provider gateways.

The gateway wraps the payment provider. The reconciler only asks it for a
session's current status and for the action carried by a webhook event.
"""

from __future__ import annotations

from typing import Any, Protocol

from payment_reconciler.reconciliation.types import ProviderStatus, WebhookActionAndData


class ProviderGateway(Protocol):
    """Protocol for provider gateways."""

    async def get_status(self, provider_id: str, data: dict[str, Any]) -> ProviderStatus:
        """Get the provider's current status for a session.

        Args:
            provider_id: Provider identifier stored on the session
                (e.g. "pp_stripe_stripe").
            data: Provider data cached on the session.

        Returns:
            ProviderStatus with the provider status and refreshed data.

        Raises:
            Any exception on transport failure.
        """
        ...

    async def get_webhook_action_and_data(
        self, event: dict[str, Any]
    ) -> WebhookActionAndData:
        """Resolve the action and data carried by a raw webhook event.

        Args:
            event: {"provider": str, "payload": {"data", "raw_data", "headers"}}

        Returns:
            WebhookActionAndData; data is None when the event is undecodable.
        """
        ...
