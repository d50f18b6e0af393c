"""
Application lifespan handler.
Manages startup and shutdown of the POS runtime for the FastAPI application.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from shared.config.logging import pos_logger as logger, setup_logging
from shared.config.settings import Settings, settings
from shared.infrastructure.db import dispose_engine
from shared.infrastructure.events import close_redis_pool
from pos_api.services.auth import AuthService
from pos_api.services.collaborators import OrderParser, ReceiptImageStore, ReceiptPrinter
from pos_api.services.persistence import PersistenceGateway, build_gateway
from pos_api.services.persistence.defaults import SEEDED_TABLES, default_table
from pos_api.services.state import AppState
from pos_api.services.sync import ReconciliationLoop


@dataclass
class Runtime:
    """Everything a request needs: the state authority and its collaborators."""

    gateway: PersistenceGateway
    state: AppState
    auth: AuthService
    reconciliation: ReconciliationLoop
    parser: OrderParser | None = None
    printer: ReceiptPrinter | None = None
    images: ReceiptImageStore | None = None


def build_runtime(
    gateway: PersistenceGateway | None = None,
    config: Settings | None = None,
    *,
    parser: OrderParser | None = None,
    printer: ReceiptPrinter | None = None,
    images: ReceiptImageStore | None = None,
) -> Runtime:
    config = config or settings
    gateway = gateway or build_gateway(config)
    state = AppState(gateway)
    return Runtime(
        gateway=gateway,
        state=state,
        auth=AuthService(state, config),
        reconciliation=ReconciliationLoop(state, gateway),
        parser=parser,
        printer=printer,
        images=images,
    )


def start_runtime(runtime: Runtime) -> None:
    """Create the remote schema, seed empty tables, load state, restore session."""
    gateway = runtime.gateway
    if gateway.create_schema():
        logger.info("Remote tables created/verified")
        for table in SEEDED_TABLES:
            gateway.seed_table(table, default_table(table))

    runtime.reconciliation.start()
    runtime.auth.restore()


def stop_runtime(runtime: Runtime) -> None:
    runtime.reconciliation.stop()
    runtime.gateway.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error: %s", error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting POS API", port=settings.api_port, env=settings.environment)

    # Tests install a runtime wired to their own stores
    runtime: Runtime | None = getattr(app.state, "runtime", None)
    if runtime is None:
        runtime = build_runtime()
        app.state.runtime = runtime
    start_runtime(runtime)

    yield

    logger.info("Shutting down POS API")
    stop_runtime(runtime)

    close_redis_pool()
    logger.info("Redis connection pool closed")
    dispose_engine()
