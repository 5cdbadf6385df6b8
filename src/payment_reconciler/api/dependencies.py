"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Request

from payment_reconciler.reconciliation import Reconciler


def get_reconciler(request: Request) -> Reconciler:
    """Get the reconciler attached to the application."""
    return request.app.state.reconciler


ReconcilerDep = Annotated[Reconciler, Depends(get_reconciler)]
