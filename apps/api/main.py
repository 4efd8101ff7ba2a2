"""
Link Collections - FastAPI Backend
Main application entry point with health check, API routing and error mapping.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import collection_items, collections, health
from services.enrichment_queue import recover_pending_item_data
from services.errors import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger("link_collections")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("Starting Link Collections API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except Exception as exc:
            logger.warning("Database bootstrap skipped: %s", exc)
    try:
        recovered = await recover_pending_item_data()
        if recovered:
            logger.info("Re-enqueued %s stalled enrichment jobs after startup.", recovered)
    except Exception as exc:
        logger.warning("Stalled enrichment recovery skipped: %s", exc)
    yield
    logger.info("Shutting down API...")


app = FastAPI(
    title="Link Collections API",
    description="Curate collections of links with shared, enriched link metadata",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"message": exc.message})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=401, content={"message": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"message": exc.message})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(collections.router, prefix="/api/v1", tags=["Collections"])
app.include_router(collection_items.router, prefix="/api/v1", tags=["Collection Items"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Link Collections API",
        "version": "0.1.0",
        "status": "running"
    }
