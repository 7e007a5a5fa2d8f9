"""
Device Hub - device discovery and control server.

The main FastAPI application entry point.
"""

# Load .env file FIRST, before any other imports
from pathlib import Path
from dotenv import load_dotenv
_env_root = Path(__file__).parent.parent
load_dotenv(_env_root / ".env")

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .api import router as api_router
from .config import settings
from .orchestration import build_orchestrator

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("device_hub.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the orchestrator on startup and releases its scanners on shutdown.
    """
    # --- Startup ---
    logger.info("Device Hub starting up...")
    app.state.orchestrator = build_orchestrator(settings)

    yield

    # --- Shutdown ---
    logger.info("Device Hub shutting down...")
    try:
        await app.state.orchestrator.close()
    except Exception as e:
        logger.error("Error closing orchestrator: %s", e)
    app.state.orchestrator = None
    logger.info("Device Hub shutdown complete")


# Create the FastAPI application
app = FastAPI(
    title="Device Hub",
    description="Discovery and control for Android TVs, Cast receivers and Bluetooth peripherals.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router, prefix=settings.api_prefix)


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "device_hub.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
