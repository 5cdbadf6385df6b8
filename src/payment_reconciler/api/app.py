"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from payment_reconciler.api.routes import health_router, webhooks_router
from payment_reconciler.config import Settings, get_settings
from payment_reconciler.database import create_tables, dispose_db, init_db
from payment_reconciler.reconciliation import (
    Reconciler,
    ReconcilerConfig,
    create_database_reconciler,
    create_sandbox_reconciler,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    reconciler: Reconciler = app.state.reconciler
    engine = app.state.engine

    # Startup
    if engine is not None and app.state.create_tables:
        await create_tables(engine)
    await reconciler.start()
    try:
        yield
    finally:
        # Shutdown
        try:
            await reconciler.stop()
        finally:
            if engine is not None:
                await dispose_db()


def create_app(
    reconciler: Reconciler | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an explicit reconciler one is built from settings: over the
    payment_session table, or over in-memory stubs when sandbox mode is on.
    """
    engine = None
    settings = settings or get_settings()
    if reconciler is None:
        config = ReconcilerConfig.from_settings(settings)
        if settings.sandbox:
            reconciler = create_sandbox_reconciler(config)
        else:
            engine, session_factory = init_db(settings.database_url)
            reconciler = create_database_reconciler(session_factory, config)

    app = FastAPI(
        title="Payment Reconciler",
        description="Webhook ingress and poll loop for payment session reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.reconciler = reconciler
    app.state.engine = engine
    # Schema is owned by the commerce platform; only create it in debug
    app.state.create_tables = settings.debug

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(webhooks_router)

    return app
