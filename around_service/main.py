"""
Around Service
Main FastAPI application: geo-tagged posts with cached radius search
"""
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from .config import settings
from .exceptions import AroundException, around_exception_handler, request_validation_handler
from .infrastructure.archive import post_archive
from .infrastructure.cache import cache
from .infrastructure.database.connection import db_connection
from .infrastructure.search import post_index
from .application.fanout import dispatcher
from .api.routes import auth_router, posts_router

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Around Service...")

    await db_connection.connect()
    await post_index.connect()
    await cache.connect()

    logger.info(f"Around Service started on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Around Service...")

    await dispatcher.drain(timeout=settings.FANOUT_DRAIN_TIMEOUT)
    await cache.disconnect()
    await post_index.disconnect()
    await db_connection.disconnect()
    await run_in_threadpool(post_archive.disconnect)

    logger.info("Around Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Location-tagged posts with multi-store write fan-out and cached geo search",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

app.add_exception_handler(AroundException, around_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "pending_fanout_writes": dispatcher.pending,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# add routers
app.include_router(auth_router)
app.include_router(posts_router)
