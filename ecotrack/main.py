"""
EcoTrack Server - shared trash bin map

The main FastAPI application entry point.
"""

# Load .env file FIRST, before any other imports
# .env.local overrides .env for machine-specific settings (ports, origins, etc.)
from pathlib import Path
from dotenv import load_dotenv
_env_root = Path(__file__).parent.parent
load_dotenv(_env_root / ".env", override=True)
load_dotenv(_env_root / ".env.local", override=True)

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from .api import router as api_router
from .bins import BinStore
from .config import Settings, settings
from .realtime import BroadcastHub

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("ecotrack.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Bin state is volatile: it lives only as long as this process.
    """
    # --- Startup ---
    logger.info("EcoTrack server starting up...")
    logger.info(
        "Live channel ready (queue=%d frames, send timeout=%.1fs)",
        app.state.settings.realtime.send_queue_size,
        app.state.settings.realtime.send_timeout,
    )

    yield

    # --- Shutdown ---
    logger.info("Server shutting down")
    await app.state.hub.shutdown()
    logger.info("Server stopped")


def create_app(
    config: Optional[Settings] = None,
    store: Optional[BinStore] = None,
) -> FastAPI:
    """
    Build the application with its own store and hub.

    Args:
        config: Settings to use (defaults to the environment-loaded settings)
        store: Pre-populated store, mainly for tests
    """
    config = config or settings
    store = store if store is not None else BinStore()

    app = FastAPI(
        title="EcoTrack Server",
        description="Shared trash bin map with live updates.",
        version="0.1.0",
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.store = store
    app.state.hub = BroadcastHub(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    # Static client files. Mounted last so API and WebSocket routes win.
    if config.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(config.static_dir), html=True), name="static")
        logger.info("Serving static files from %s", config.static_dir)

    return app


# Create the FastAPI application
app = create_app()
