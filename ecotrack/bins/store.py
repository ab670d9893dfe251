"""
In-memory authoritative store for trash bins.

The store owns every Bin record and the identity counter. It performs no
I/O and knows nothing about connections; the realtime hub calls into it
and turns the results into events.

Every method holds one lock for its whole body, so each mutation is atomic
and a rejected mutation leaves state exactly as it was. Records handed out
are copies.
"""

import logging
import threading
from typing import Any, Optional

from .models import Bin, BinStatus, StatusOutcome

logger = logging.getLogger("ecotrack.bins.store")


class BinStore:
    """
    Authority over bin identity and state.

    Features:
    - Monotonic ids starting at 1, never reused after deletion
    - Insertion-ordered records (dict order), used for snapshot order and
      for the first-match rule of edit_location
    """

    def __init__(self) -> None:
        self._bins: dict[int, Bin] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create(self, latitude: float, longitude: float) -> Bin:
        """Add a new bin with the next id and status ``empty``."""
        with self._lock:
            bin_id = self._next_id
            self._next_id += 1
            record = Bin(id=bin_id, latitude=latitude, longitude=longitude)
            self._bins[bin_id] = record
            logger.debug("Allocated bin id %d", bin_id)
            return record.copy()

    def delete(self, bin_id: int) -> bool:
        """Remove a bin. Returns False if no such bin existed."""
        with self._lock:
            return self._bins.pop(bin_id, None) is not None

    def edit_location(
        self,
        old_latitude: float,
        old_longitude: float,
        new_latitude: float,
        new_longitude: float,
    ) -> tuple[Optional[Bin], bool]:
        """
        Move the first bin (in insertion order) located exactly at the old
        coordinates.

        Matching uses exact float equality, so clients must echo back the
        coordinates they received.

        Returns:
            (updated bin, True) on a match, (None, False) otherwise.
        """
        with self._lock:
            for record in self._bins.values():
                if record.latitude == old_latitude and record.longitude == old_longitude:
                    record.latitude = new_latitude
                    record.longitude = new_longitude
                    return record.copy(), True
            return None, False

    def update_status(self, bin_id: int, status: Any) -> tuple[Optional[Bin], StatusOutcome]:
        """
        Set a bin's status.

        A missing bin is reported before an invalid status value.
        """
        with self._lock:
            record = self._bins.get(bin_id)
            if record is None:
                return None, StatusOutcome.NOT_FOUND
            parsed = BinStatus.parse(status)
            if parsed is None:
                return None, StatusOutcome.INVALID_STATUS
            record.status = parsed
            return record.copy(), StatusOutcome.APPLIED

    def get(self, bin_id: int) -> Optional[Bin]:
        """Copy of one bin, or None."""
        with self._lock:
            record = self._bins.get(bin_id)
            return record.copy() if record is not None else None

    def snapshot(self) -> list[Bin]:
        """Point-in-time copy of all bins in insertion order."""
        with self._lock:
            return [record.copy() for record in self._bins.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._bins)
