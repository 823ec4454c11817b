"""
NetShield - Main Application
FastAPI backend: packet classification, alert dashboard API and blocklist
"""

import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from netshield import __version__
from netshield.config import settings
from netshield.dashboard import router as dashboard_router
from netshield.db import SqlStore
from netshield.dependencies import get_classifier, get_store
from netshield.detectors.rules import Classifier
from netshield.errors import InvalidInput, NotFound, StoreUnavailable
from netshield.ingest import blocklist_router, classify_router
from netshield.models_loader import build_classifier, get_classifier_status
from netshield.monitor import AlertMonitor
from netshield.notifications import AlertNotifier, NotificationBus
from netshield.schemas import HealthResponse
from netshield.store import DataStore, InMemoryStore

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def create_store() -> DataStore:
    """Store selected by DATABASE_URL: memory:// or any SQLAlchemy async URL."""
    if settings.use_memory_store:
        return InMemoryStore(timeout=settings.store_timeout_seconds)
    store = SqlStore(settings.database_url, timeout=settings.store_timeout_seconds)
    await store.init_models()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("=" * 50)
    logger.info(f"NetShield v{__version__} Starting...")
    logger.info("=" * 50)

    store = await create_store()
    classifier = build_classifier()

    bus = NotificationBus()
    notifier = AlertNotifier(
        volume_threshold=settings.volume_threshold,
        window_seconds=settings.volume_window_seconds,
        capacity=settings.notified_ids_capacity,
    )
    monitor = AlertMonitor(store, notifier, bus=bus, window_limit=settings.alert_window_limit)
    bus.start()
    await monitor.prime()
    monitor.start()

    app.state.store = store
    app.state.classifier = classifier
    app.state.monitor = monitor

    logger.info("-" * 50)
    logger.info(f"  Store:       {type(store).__name__}")
    logger.info(f"  Classifier:  {classifier.name}")
    logger.info(f"  Auto-block:  {'ENABLED' if settings.auto_block_enabled else 'DISABLED'}")
    logger.info("-" * 50)
    logger.info(f"Backend running on {settings.backend_host}:{settings.backend_port}")
    logger.info("=" * 50)

    yield

    # Shutdown
    logger.info("NetShield Shutting down...")
    await monitor.stop()
    await bus.stop()
    await store.close()


# Create FastAPI app
app = FastAPI(
    title="NetShield",
    description="Network intrusion alert classification and monitoring",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-api-key"],
)

# Include routers
app.include_router(classify_router)
app.include_router(blocklist_router)
app.include_router(dashboard_router)


@app.get("/api/v1/health", response_model=HealthResponse, tags=["system"])
async def health_check(
    store: DataStore = Depends(get_store),
    classifier: Classifier = Depends(get_classifier),
):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        version=__version__,
        store=type(store).__name__,
        classifier=get_classifier_status(classifier),
    )


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.warning(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "netshield.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=False
    )
