"""Bin records and the in-memory store that owns them."""

from .models import Bin, BinStatus, StatusOutcome
from .store import BinStore

__all__ = ["Bin", "BinStatus", "BinStore", "StatusOutcome"]
