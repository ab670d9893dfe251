"""
Bin domain models.

A Bin is a geotagged trash bin with a fill status. It is the only domain
entity; connections are transient and are not modelled here.
"""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any


class BinStatus(str, Enum):
    """Fill level reported for a bin."""
    EMPTY = "empty"
    HALF = "half"
    FULL = "full"

    @classmethod
    def parse(cls, value: Any) -> "BinStatus | None":
        """Return the matching status, or None for anything outside the enum."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class StatusOutcome(Enum):
    """Result of a status update against the store."""
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    INVALID_STATUS = "invalid_status"


@dataclass
class Bin:
    """A trash bin record owned by the BinStore."""
    id: int
    latitude: float
    longitude: float
    status: BinStatus = BinStatus.EMPTY

    def copy(self) -> "Bin":
        """Detached copy, safe to hand out of the store."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = asdict(self)
        data["status"] = self.status.value
        return data
