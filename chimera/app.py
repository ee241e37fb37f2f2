"""
Main FastAPI application for the Chimera gateway.

Serves the classification and generation endpoints the installation UI calls.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chimera.api.gateway_api import router as gateway_router
from chimera.api.gateway_api import shutdown_gateway
from chimera.config import get_env
from chimera.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Chimera gateway")
    yield
    await shutdown_gateway()
    logger.info("Shutting down Chimera gateway")


app = FastAPI(
    title="Chimera Gateway",
    description="Classification caching and image-generation fallback for the installation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_env("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(gateway_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
