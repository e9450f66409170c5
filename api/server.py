"""FastAPI server for the inventory sync pipeline.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, sync
from core import __version__
from core.observability.logging import get_logger
from sync.gateway import SyncGateway
from sync.schema import init_sync_database


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    db_path = app.state.gateway.resolve_db_path()
    init_sync_database(db_path)
    logger.info(f"Inventory Sync API starting up (database: {db_path})")

    yield

    # Shutdown
    logger.info("Inventory Sync API shutting down...")


def create_app(gateway: Optional[SyncGateway] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        gateway: Gateway to run triggers through (a default one is built from
            the environment when omitted)
    """
    app = FastAPI(
        title="Inventory Sync API",
        description="Reconciles external sales invoices into the append-only inventory ledger",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.gateway = gateway or SyncGateway()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(sync.router, prefix="/sync", tags=["Sync"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
