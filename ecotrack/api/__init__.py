"""
API routers for EcoTrack.
"""

from fastapi import APIRouter

from .bins import router as bins_router
from .health import router as health_router
from .websocket import router as websocket_router

# Main router that aggregates all sub-routers
router = APIRouter()

router.include_router(health_router)
router.include_router(bins_router)
router.include_router(websocket_router)
