"""
POS API main application.
Entry point for the FastAPI server driving the till.
"""

from fastapi import FastAPI

from pos_api.core.cors import configure_cors
from pos_api.core.lifespan import Runtime, lifespan
from pos_api.routers.admin import router as admin_router
from pos_api.routers.auth import router as auth_router
from pos_api.routers.orders import router as orders_router
from pos_api.routers.sync import router as sync_router
from pos_api.routers.tables import router as tables_router


def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the application. Tests pass a runtime wired to their own stores."""
    app = FastAPI(
        title="Loco POS API",
        description="Order lifecycle and local-state sync engine for the till",
        version="0.1.0",
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    configure_cors(app)

    app.include_router(auth_router)
    app.include_router(orders_router)
    app.include_router(tables_router)
    app.include_router(admin_router)
    app.include_router(sync_router)

    @app.get("/api/health")
    def health() -> dict:
        runtime = getattr(app.state, "runtime", None)
        offline = runtime.gateway.is_offline if runtime else True
        return {"status": "ok", "mode": "offline" if offline else "online"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from shared.config.settings import settings

    uvicorn.run("pos_api.main:app", host="0.0.0.0", port=settings.api_port, reload=settings.debug)
