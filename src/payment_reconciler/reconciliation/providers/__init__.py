"""Provider gateway adapters."""

from payment_reconciler.reconciliation.providers.base import ProviderGateway
from payment_reconciler.reconciliation.providers.stub import StubProviderGateway

__all__ = [
    "ProviderGateway",
    "StubProviderGateway",
]
