"""
FastAPI Application

Main FastAPI application for the school query engine with:
- Lifespan management for connector, backend and engine
- CORS middleware for the React client
- Global exception handlers for engine errors
- Chat, SQL and health endpoints

Usage:
    uvicorn schoolnlq.api.main:app --reload --port 3006
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schoolnlq import __version__
from schoolnlq.api.routes import chat, health, sql
from schoolnlq.config import get_settings
from schoolnlq.errors import (
    ConfigurationError,
    GenerationError,
    SQLExecutionError,
    SQLValidationError,
)
from schoolnlq.models.api import ErrorResponse
from schoolnlq.pipeline.orchestrator import create_engine

logger = logging.getLogger(__name__)

# Global state for engine and components
app_state = {
    "engine": None,
    "connector": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Store connector (PostgreSQL, when DATABASE_URL is set)
    - Generation backend (LLM_PROVIDER)
    - Query engine with the shared example-value cache
    """
    config = get_settings()
    config.logging.configure()
    logger.info(f"Starting {config.app_name} API server...")

    try:
        logger.info("Initializing query engine...")
        engine = await create_engine(config)
        app_state["engine"] = engine
        app_state["connector"] = engine.executor.connector

        if engine.backend is None:
            logger.warning("Generation backend disabled; answering from fallback patterns only")
        logger.info(f"{config.app_name} API server started successfully")

        yield  # Application runs here

    finally:
        logger.info(f"Shutting down {config.app_name} API server...")

        if app_state["engine"]:
            try:
                await app_state["engine"].close()
                logger.info("Query engine closed")
            except Exception as e:
                logger.error(f"Error closing query engine: {e}")

        app_state["engine"] = None
        app_state["connector"] = None
        logger.info(f"{config.app_name} API server shut down complete")


# Create FastAPI app
app = FastAPI(
    title="School NLQ Engine",
    description="Natural language questions over the school ERP database",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for frontend
cors_origins_env = os.getenv("CORS_ORIGINS", "")
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    if cors_origins_env
    else ["http://localhost:3000", "http://localhost:5173"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


# Exception handlers
@app.exception_handler(SQLValidationError)
async def validation_error_handler(request: Request, exc: SQLValidationError) -> JSONResponse:
    """Rejected SQL is the caller's problem."""
    logger.warning(f"SQL validation failed ({exc.rule}): {exc.message}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.code, exc.message)


@app.exception_handler(SQLExecutionError)
async def execution_error_handler(request: Request, exc: SQLExecutionError) -> JSONResponse:
    """Surface the store's message so the client can show what went wrong."""
    logger.error(f"Query execution error: {exc.message}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.code, exc.message)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    """Handle generation backend failures."""
    logger.error(f"Generation error: {exc.message}", extra={"provider": exc.provider})
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc.code, exc.message)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Handle missing or invalid backend configuration."""
    logger.error(f"Configuration error: {exc.message}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc.code, exc.message)


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(chat.router, tags=["chat"])
app.include_router(sql.router, tags=["sql"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "School NLQ Engine",
        "version": __version__,
        "description": "Natural language questions over the school ERP database",
        "docs": "/docs",
    }
