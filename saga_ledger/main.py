import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from saga_ledger.api.v1.accounts import router as accounts_router
from saga_ledger.api.v1.orders import router as orders_router
from saga_ledger.consumers.runtime import ServiceRuntime
from saga_ledger.core.config import ORDERS_CONNECTION, PAYMENTS_CONNECTION, PROJECT_NAME, RUN_BACKGROUND_WORKERS, VERSION
from saga_ledger.core.db import init_db, close_db
from saga_ledger.core.exception_handlers import setup_exception_handlers
from saga_ledger.core.log_config import setup_logging

log = logging.getLogger(__name__)

SERVICE_TITLES = {
    ORDERS_CONNECTION: f"{PROJECT_NAME} - Orders",
    PAYMENTS_CONNECTION: f"{PROJECT_NAME} - Payments",
}


def build_app(service: str, run_background_workers: bool = RUN_BACKGROUND_WORKERS) -> FastAPI:
    """Builds the FastAPI app of one service: its routes plus its outbox publisher and inbox consumer."""
    title = SERVICE_TITLES[service]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handles startup and shutdown events."""
        setup_logging()
        log.info(f"Starting {title} v{VERSION}...")
        await init_db(service)  # Connect to DB and generate schemas
        runtime = ServiceRuntime(service) if run_background_workers else None
        app.state.runtime = runtime
        try:
            if runtime is not None:
                # A partial start is undone by stop() below
                await runtime.start()
            yield
        finally:
            if runtime is not None:
                await runtime.stop()
            await close_db()
            log.info(f"{title} stopped.")

    app = FastAPI(
        title=title,
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    if service == ORDERS_CONNECTION:
        app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
    else:
        app.include_router(accounts_router, prefix="/api/v1/accounts", tags=["Accounts"])

    setup_exception_handlers(app)

    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check():
        """Simple health check endpoint."""
        return {"status": "ok", "app_name": title, "service": service}

    return app


# uvicorn saga_ledger.main:orders_app / uvicorn saga_ledger.main:payments_app
orders_app = build_app(ORDERS_CONNECTION)
payments_app = build_app(PAYMENTS_CONNECTION)
