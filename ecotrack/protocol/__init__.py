"""
Wire protocol for the live bin channel.

JSON text frames with a ``type`` discriminator in both directions.
"""

from .events import (
    BinStatusEvent,
    DeleteBinEvent,
    EditBinEvent,
    ServerEvent,
    TrashBinEvent,
    encode,
)
from .messages import (
    ClientLocation,
    CreateBin,
    DecodeError,
    DecodeResult,
    DeleteBin,
    EditBin,
    UnknownMessage,
    UpdateBinStatus,
    decode,
)

__all__ = [
    "BinStatusEvent",
    "ClientLocation",
    "CreateBin",
    "DecodeError",
    "DecodeResult",
    "DeleteBin",
    "DeleteBinEvent",
    "EditBin",
    "EditBinEvent",
    "ServerEvent",
    "TrashBinEvent",
    "UnknownMessage",
    "UpdateBinStatus",
    "decode",
    "encode",
]
