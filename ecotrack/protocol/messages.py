"""
Client to server messages and their decoder.

Each message kind is a pydantic model discriminated by its ``type`` field.
``decode`` turns one raw WebSocket frame into exactly one of:

- a typed message (CreateBin, DeleteBin, EditBin, UpdateBinStatus,
  ClientLocation)
- UnknownMessage, for well-formed frames of a kind the server does not
  handle
- DecodeError, for anything malformed

It never raises, so callers dispatch on the result type.
"""

import json
from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError

# Integers are widened to float; strings, booleans, NaN and infinities are rejected.
Coordinate = Annotated[float, Field(strict=True, allow_inf_nan=False)]


def _digits_to_int(value):
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return value


# JSON integers, or strings of ASCII digits as sent by browser clients reading
# ids from element attributes. Floats and booleans are rejected.
BinId = Annotated[StrictInt, BeforeValidator(_digits_to_int)]


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class CreateBin(_Message):
    """Request a new bin at the given location."""
    type: Literal["trashbin"]
    latitude: Coordinate
    longitude: Coordinate


class DeleteBin(_Message):
    """Request removal of a bin by id."""
    type: Literal["deletebin"]
    id: BinId


class EditBin(_Message):
    """Request a location change, matched on the bin's current coordinates."""
    type: Literal["editbin"]
    old_latitude: Coordinate = Field(alias="oldLatitude")
    old_longitude: Coordinate = Field(alias="oldLongitude")
    new_latitude: Coordinate = Field(alias="newLatitude")
    new_longitude: Coordinate = Field(alias="newLongitude")


class UpdateBinStatus(_Message):
    """Request a status change. The value is validated by the store."""
    type: Literal["updatebinstatus"]
    id: BinId
    status: StrictStr


class ClientLocation(_Message):
    """Informational position ping from a client; has no effect on bins."""
    type: Literal["location"]
    latitude: Coordinate
    longitude: Coordinate


InboundMessage = Annotated[
    Union[CreateBin, DeleteBin, EditBin, UpdateBinStatus, ClientLocation],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)

MESSAGE_KINDS = frozenset({"trashbin", "deletebin", "editbin", "updatebinstatus", "location"})


@dataclass(frozen=True)
class UnknownMessage:
    """A well-formed frame whose kind is not handled."""
    kind: str


@dataclass(frozen=True)
class DecodeError:
    """A frame that could not be decoded into a message."""
    reason: str


DecodeResult = Union[CreateBin, DeleteBin, EditBin, UpdateBinStatus, ClientLocation, UnknownMessage, DecodeError]


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def decode(raw: Union[str, bytes]) -> DecodeResult:
    """Decode one raw frame. Never raises."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return DecodeError("frame is not valid UTF-8")

    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, TypeError) as e:
        return DecodeError(f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return DecodeError(f"expected a JSON object, got {type(data).__name__}")

    kind = data.get("type")
    if not isinstance(kind, str):
        return DecodeError("missing or non-string 'type' field")
    if kind not in MESSAGE_KINDS:
        return UnknownMessage(kind)

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        return DecodeError(f"invalid '{kind}' message: {_describe(e)}")
