"""
Avoid the Rain API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Avoid the Rain API starting up", version=settings.app_version, timezone=settings.app_timezone)
    yield
    logger.info("Avoid the Rain API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Greeting-card subscription scheduling and fulfillment",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import addresses, cron, orders, recipients

app.include_router(recipients.router)
app.include_router(orders.router)
app.include_router(addresses.router)
app.include_router(cron.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
