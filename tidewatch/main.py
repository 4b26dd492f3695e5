"""Tide Watch FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tidewatch import config
from tidewatch.observability import initialize as initialize_observability, shutdown as shutdown_observability
from tidewatch.routers.sessions import sessions_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("tidewatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Tide Watch starting up (default session dir: %s)", config.DEFAULT_SESSION_DIR)
    initialize_observability(app)
    yield
    logger.info("Tide Watch shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="Tide Watch API",
    description="Session capacity monitoring for OpenClaw chat agents",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "defaultSessionDir": str(config.DEFAULT_SESSION_DIR),
        "sessionDirExists": config.DEFAULT_SESSION_DIR.is_dir(),
        "multiAgent": config.MULTI_AGENT_ENABLED,
    }
