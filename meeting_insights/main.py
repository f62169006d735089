"""
FastAPI application entry point for the Meeting Insights API.

Configures logging and CORS, opens the record store pool on startup and
registers the analytics and insights routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meeting_insights import __version__
from meeting_insights.api import api_router
from meeting_insights.core.config import get_settings
from meeting_insights.core.database import close_db, init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    On startup, open the record store pool; on shutdown, close it.

    A missing or unreachable database does not stop startup: analytics
    endpoints answer 503 until DATABASE_URL is configured.
    """
    logger.info("Meeting Insights API starting")
    try:
        await init_db()
    except Exception as e:
        logger.warning(f"Record store unavailable, analytics will answer 503: {e}")

    yield

    logger.info("Meeting Insights API shutting down")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing record store pool: {e}", exc_info=True)


app = FastAPI(
    title="Meeting Insights API",
    version=__version__,
    description=(
        "Analytics over historical sales-meeting records: conversion rankings, "
        "seller correlations, outlier industries, projections and narrated insights."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Meeting Insights API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "meeting_insights.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
