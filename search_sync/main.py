"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from arq import create_pool
from fastapi import FastAPI
from sqlalchemy.orm import Session

from .config import settings
from .database import async_session_maker
from .routers import search_admin_router
from .services.elasticsearch_client import close_elasticsearch_client, create_elasticsearch_client
from .services.index_registry import ensure_all_indices
from .services.search_sync_dispatcher import SearchSyncDispatcher
from .services.search_sync_hooks import register_search_sync_hooks
from .worker import parse_redis_url

# Configure logging to show errors
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    es = create_elasticsearch_client(settings)
    app.state.es = es

    if es is not None:
        logger.info("Ensuring search indices...")
        try:
            async with async_session_maker() as db:
                results = await ensure_all_indices(es, db)
            missing = [name for name, ok in results.items() if not ok]
            if missing:
                logger.warning(f"Search indices not ready: {', '.join(missing)}")
            else:
                logger.info("Search indices ready")
        except Exception as e:
            logger.warning(f"Search index initialization failed, continuing without it: {e}")

    dispatcher = SearchSyncDispatcher(async_session_maker, es)
    app.state.search_dispatcher = dispatcher
    unregister_hooks = register_search_sync_hooks(dispatcher, Session)
    logger.info("Search sync hooks registered")

    logger.info("Connecting to job queue...")
    try:
        app.state.arq_pool = await create_pool(parse_redis_url(settings.redis_url))
        logger.info("Job queue connected")
    except Exception as e:
        app.state.arq_pool = None
        logger.warning(f"Job queue connection failed, reindex endpoints disabled: {e}")

    yield

    # Shutdown
    logger.info("Waiting for pending search syncs...")
    await dispatcher.drain()
    unregister_hooks()

    if app.state.arq_pool is not None:
        await app.state.arq_pool.aclose()
        logger.info("Job queue disconnected")

    await close_elasticsearch_client(es)


# Create FastAPI application
app = FastAPI(
    title="Search Sync API",
    description="Search index synchronization and reindex administration",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Include API routers
app.include_router(search_admin_router)


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "ok"}
