"""Payment session reconciliation package.

This package contains:
- The classification policy and card-exclusion filter
- The poll scheduler (durable path)
- The webhook ingress and consumer (fast path)
- Session stores, the provider gateway protocol and the event bus
- The Reconciler facade wiring them together
"""

from payment_reconciler.reconciliation.config import (
    PollerConfig,
    ReconcilerConfig,
    WebhookConfig,
)
from payment_reconciler.reconciliation.errors import (
    GatewayTimeout,
    MissingCollaboratorError,
    ReconcilerError,
    SessionLockedError,
    SettlementTimeout,
)
from payment_reconciler.reconciliation.events import WEBHOOK_EVENT, AsyncEventBus
from payment_reconciler.reconciliation.policy import classify_status, is_card_payment
from payment_reconciler.reconciliation.poller import (
    PollScheduler,
    PollTickResult,
    SessionOutcome,
)
from payment_reconciler.reconciliation.providers import ProviderGateway, StubProviderGateway
from payment_reconciler.reconciliation.reconciler import (
    Reconciler,
    create_database_reconciler,
    create_sandbox_reconciler,
)
from payment_reconciler.reconciliation.settlement import (
    LockingSettlementWorkflow,
    RecordingSettlementWorkflow,
    SettlementWorkflow,
)
from payment_reconciler.reconciliation.store import (
    InMemorySessionStore,
    SessionStore,
    SqlSessionStore,
)
from payment_reconciler.reconciliation.types import (
    PENDING_STATUSES,
    TERMINAL_STATUSES,
    PaymentAction,
    PaymentSession,
    PaymentSessionStatus,
    ProviderStatus,
    ReconciliationTask,
    SettlementRequest,
    WebhookActionAndData,
)
from payment_reconciler.reconciliation.webhook import (
    WebhookConsumer,
    WebhookIngress,
    WebhookOutcome,
)

__all__ = [
    # Config
    "PollerConfig",
    "ReconcilerConfig",
    "WebhookConfig",
    # Errors
    "GatewayTimeout",
    "MissingCollaboratorError",
    "ReconcilerError",
    "SessionLockedError",
    "SettlementTimeout",
    # Events
    "WEBHOOK_EVENT",
    "AsyncEventBus",
    # Policy
    "classify_status",
    "is_card_payment",
    # Poll path
    "PollScheduler",
    "PollTickResult",
    "SessionOutcome",
    # Webhook path
    "WebhookConsumer",
    "WebhookIngress",
    "WebhookOutcome",
    # Collaborators
    "ProviderGateway",
    "StubProviderGateway",
    "SettlementWorkflow",
    "LockingSettlementWorkflow",
    "RecordingSettlementWorkflow",
    "SessionStore",
    "SqlSessionStore",
    "InMemorySessionStore",
    # Facade
    "Reconciler",
    "create_database_reconciler",
    "create_sandbox_reconciler",
    # Types
    "PENDING_STATUSES",
    "TERMINAL_STATUSES",
    "PaymentAction",
    "PaymentSession",
    "PaymentSessionStatus",
    "ProviderStatus",
    "ReconciliationTask",
    "SettlementRequest",
    "WebhookActionAndData",
]
