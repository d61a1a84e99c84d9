"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes
- Middleware (logging, request timezone, CORS)
- Shared caches (built on startup, stopped on shutdown)
- Application metadata
"""

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api import endpoints
from app.api.schemas import HealthResponse
from app.core.cache_registry import CacheRegistry, get_caches, initialize_caches, shutdown_caches
from app.core.rate_limit import limiter
from app.middleware.logging import add_logging_middleware
from app.middleware.timezone import add_timezone_middleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Link Analytics Service",
    description="CTR analytics and lifecycle status for shortened links",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_timezone_middleware(app)
add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Link Analytics Service",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(caches: CacheRegistry = Depends(get_caches)):
    """
    Health check endpoint for monitoring.

    Returns:
        Health status of the service plus per-cache statistics
    """
    return {"status": "healthy", "caches": caches.stats()}


app.include_router(endpoints.router, tags=["Analytics"])


@app.on_event("startup")
async def startup_event():
    """Build the shared caches and start their sweepers."""
    initialize_caches(app)


@app.on_event("shutdown")
async def shutdown_event():
    """Stop cache sweepers and drop cached entries."""
    shutdown_caches(app)
