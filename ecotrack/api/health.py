"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ..bins import BinStore
from ..realtime import BroadcastHub
from .dependencies import get_hub, get_store

router = APIRouter(tags=["Health"])


@router.get("/", response_class=PlainTextResponse)
async def root():
    """Plain-text banner for humans and uptime checks."""
    return "EcoTrack Server is running"


@router.get("/ping")
async def ping():
    """Simple endpoint to verify server is running."""
    return {"status": "ok", "message": "pong"}


@router.get("/health")
async def health(
    store: BinStore = Depends(get_store),
    hub: BroadcastHub = Depends(get_hub),
):
    """Health check with live channel and store counters."""
    return {
        "status": "ok",
        "bins": len(store),
        "clients": len(hub),
    }
