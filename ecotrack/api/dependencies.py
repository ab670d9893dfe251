"""
FastAPI dependencies for service injection.

The store and hub are created by the app factory and hung on
``app.state``; endpoints receive them through these dependencies rather
than importing module-level singletons.
"""

from fastapi import HTTPException, Request, status

from ..bins import BinStore
from ..realtime import BroadcastHub


def get_store(request: Request) -> BinStore:
    """
    FastAPI dependency that provides the application's BinStore.

    Raises:
        HTTPException: 503 if the application was built without a store
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Bin store is not initialized.",
        )
    return store


def get_hub(request: Request) -> BroadcastHub:
    """FastAPI dependency that provides the application's BroadcastHub."""
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Broadcast hub is not initialized.",
        )
    return hub
