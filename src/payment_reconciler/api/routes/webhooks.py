"""Provider webhook ingress endpoint.

The route only queues the event; processing happens later in the webhook
consumer, which re-resolves the payload through the provider gateway.
"""

import json
import logging

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import PlainTextResponse

from payment_reconciler.api.dependencies import ReconcilerDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/hooks/payment/{provider}")
async def receive_payment_webhook(
    provider: str,
    request: Request,
    reconciler: ReconcilerDep,
) -> Response:
    """Queue a provider webhook for reconciliation."""
    raw_body = await request.body()
    try:
        body = json.loads(raw_body) if raw_body else None
        reconciler.ingress.receive(
            provider,
            body,
            raw_body=raw_body,
            headers=dict(request.headers),
        )
    except Exception as e:
        logger.warning("Rejected webhook from %s: %s", provider, e)
        return PlainTextResponse(
            f"Webhook Error: {e}",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    return Response(status_code=status.HTTP_200_OK)
