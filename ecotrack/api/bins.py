"""
Read-only REST access to bins, for polling outside the live channel.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..bins import BinStatus, BinStore
from .dependencies import get_store

router = APIRouter(prefix="/api/bins", tags=["bins"])


class BinRecord(BaseModel):
    """One bin as returned by the snapshot endpoint."""
    id: int
    latitude: float
    longitude: float
    status: BinStatus


@router.get("", response_model=list[BinRecord])
async def list_bins(store: BinStore = Depends(get_store)):
    """Current snapshot of every bin, in creation order."""
    return [record.to_dict() for record in store.snapshot()]
