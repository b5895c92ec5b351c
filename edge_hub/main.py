from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import logging
from contextlib import asynccontextmanager

from edge_hub import __version__
from edge_hub.core.config import settings
from edge_hub.core.database import init_db, engine
from edge_hub.api.v1 import sync, devices, analytics
from edge_hub.services.sync import SyncOrchestrator
from edge_hub.tasks.sync_tasks import SyncScheduler, bootstrap_hub

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database
    await init_db()

    orchestrator = SyncOrchestrator()
    scheduler = SyncScheduler(orchestrator) if settings.SYNC_ENABLED else None
    app.state.orchestrator = orchestrator
    app.state.scheduler = scheduler

    # Integrity check; an empty store gets a forced full sync shortly after startup
    await bootstrap_hub(orchestrator, scheduler=scheduler)
    if scheduler:
        await scheduler.start()
    else:
        logger.info("Periodic sync disabled")

    yield

    if scheduler:
        await scheduler.stop()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Offline-capable edge hub mirroring content, devices and students from the cloud",
        version=__version__,
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(sync.router, prefix="/api/hub", tags=["hub"])
    app.include_router(devices.router, prefix="/api/devices", tags=["devices"])
    app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__, "hub_id": settings.HUB_ID}

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "status_code": exc.status_code}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "status_code": 500}
        )

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "edge_hub.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info" if not settings.DEBUG else "debug"
    )
