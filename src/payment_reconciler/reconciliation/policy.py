"""Settlement policy shared by the poll and webhook paths.

Both functions are pure so the two paths converge on the same decision for
the same provider state, whichever observes it first.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from payment_reconciler.reconciliation.types import PaymentAction, PaymentSessionStatus

CARD = "card"

# Fields that carry the payment method type on session and provider data
PAYMENT_METHOD_FIELDS = ("payment_method_types", "payment_method_type")

# Webhook actions that are never settled from the webhook path
NON_ACTIONABLE_WEBHOOK_ACTIONS: frozenset[str] = frozenset({
    PaymentAction.NOT_SUPPORTED.value,
    PaymentAction.CANCELED.value,
    PaymentAction.FAILED.value,
    PaymentAction.REQUIRES_MORE.value,
})

_STATUS_ACTIONS: dict[str, str] = {
    PaymentSessionStatus.CAPTURED.value: PaymentAction.SUCCESSFUL.value,
    PaymentSessionStatus.AUTHORIZED.value: PaymentAction.AUTHORIZED.value,
}


def classify_status(status: Any) -> str | None:
    """Map a provider status to a settlement action.

    Returns None for any status without a settlement action. Never raises,
    whatever the input type.
    """
    if isinstance(status, PaymentSessionStatus):
        status = status.value
    if not isinstance(status, str):
        return None
    return _STATUS_ACTIONS.get(status)


def is_card_payment(
    session_data: Mapping[str, Any] | None,
    provider_data: Mapping[str, Any] | None = None,
) -> bool:
    """Whether a session was paid (or is being paid) by card.

    Checks the data cached on the session and the freshly fetched provider
    payload, including the nested payment intent and webhook event object.
    """
    for source in (session_data, provider_data):
        for candidate in _candidates(source):
            if _mentions_card(candidate):
                return True
    return False


def _candidates(data: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if not isinstance(data, Mapping):
        return []

    found = [data]
    intent = data.get("payment_intent")
    if isinstance(intent, Mapping):
        found.append(intent)

    # Webhook events wrap the object as data.object (or object directly)
    inner = data.get("data")
    if isinstance(inner, Mapping) and isinstance(inner.get("object"), Mapping):
        found.append(inner["object"])
    if isinstance(data.get("object"), Mapping):
        found.append(data["object"])
    return found


def _mentions_card(data: Mapping[str, Any]) -> bool:
    for name in PAYMENT_METHOD_FIELDS:
        value = data.get(name)
        if value == CARD:
            return True
        if isinstance(value, (list, tuple, set, frozenset)) and CARD in value:
            return True
    return False
