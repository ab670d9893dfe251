"""
Server to client events.

Every state change is announced as one of these. ``trashbin`` doubles as
the snapshot replay event sent to a newly joined client.
"""

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from ..bins.models import Bin, BinStatus


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class TrashBinEvent(_Event):
    """A bin exists (new, or replayed on join)."""
    type: Literal["trashbin"] = "trashbin"
    id: int
    latitude: float
    longitude: float
    status: BinStatus

    @classmethod
    def from_bin(cls, record: Bin) -> "TrashBinEvent":
        return cls(id=record.id, latitude=record.latitude, longitude=record.longitude, status=record.status)


class DeleteBinEvent(_Event):
    """A bin was removed."""
    type: Literal["deletebin"] = "deletebin"
    id: int


class EditBinEvent(_Event):
    """A bin moved; carries the full updated record."""
    type: Literal["editbin"] = "editbin"
    id: int
    latitude: float
    longitude: float
    status: BinStatus

    @classmethod
    def from_bin(cls, record: Bin) -> "EditBinEvent":
        return cls(id=record.id, latitude=record.latitude, longitude=record.longitude, status=record.status)


class BinStatusEvent(_Event):
    """A bin's status changed."""
    type: Literal["binstatus"] = "binstatus"
    id: int
    status: BinStatus
    latitude: float
    longitude: float

    @classmethod
    def from_bin(cls, record: Bin) -> "BinStatusEvent":
        return cls(id=record.id, status=record.status, latitude=record.latitude, longitude=record.longitude)


ServerEvent = Union[TrashBinEvent, DeleteBinEvent, EditBinEvent, BinStatusEvent]


def encode(event: ServerEvent) -> str:
    """Serialize an event to one JSON text frame."""
    return event.model_dump_json()
