"""Wire codec for the automation control protocol."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

# ['M', 'A', 'A', 0x00]
CONNECT_MAGIC = b"MAA\x00"
SCREENCAP_MAGIC = b"SCRN"
SIZE_MAGIC = b"SIZE"
TERMINATE_MAGIC = b"TERM"
TOUCH_MAGIC = b"TUCH"
VERSION_MAGIC = b"VERN"

MAGIC_SIZE = 4
HANDSHAKE_REPLY = b"OKAY"
PROTOCOL_VERSION = 2

FRAME_HEADER = struct.Struct("!H")
MAX_PAYLOAD_SIZE = 0xFFFF

U16 = struct.Struct("!H")
U32 = struct.Struct("!I")


class MaaToolsError(Exception):
    """Base class for errors raised by the control server."""


class ProtocolError(MaaToolsError):
    """Raised when a peer violates the wire protocol."""


class InvalidMessageError(ProtocolError):
    """Raised when the handshake bytes do not match the connect tag."""


class EmptyContentError(ProtocolError):
    """Raised when the stream ends before the expected bytes arrive."""


class ConnectionClosedError(EmptyContentError):
    """Raised when the peer closes the stream between two frames."""


class ListenerError(MaaToolsError):
    """Raised when the listening socket cannot be started."""


class TouchPhase(IntEnum):
    DOWN = 0
    MOVE = 1
    # 2 is reserved and never dispatched
    UP = 3


def encode_u16(value: int) -> bytes:
    return U16.pack(value & 0xFFFF)


def encode_u32(value: int) -> bytes:
    return U32.pack(value & 0xFFFFFFFF)


def decode_u16(data: bytes, offset: int) -> int:
    """Read a big-endian u16 at ``offset``, or 0 if the bytes are not there."""

    if offset < 0 or offset + U16.size > len(data):
        return 0
    return U16.unpack_from(data, offset)[0]


def div_round(raw: int, scale: float) -> int:
    """Divide by the display scale, rounding ties away from zero."""

    value = raw / scale
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def pack_frame(payload: bytes) -> bytes:
    """Serialize a payload with its u16 length prefix."""

    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(f"payload of {len(payload)} bytes exceeds frame limit")
    return FRAME_HEADER.pack(len(payload)) + payload


def command_tag(payload: bytes) -> bytes:
    """Return the leading magic tag of a command payload."""

    return bytes(payload[:MAGIC_SIZE])


@dataclass(frozen=True, slots=True)
class TouchCommand:
    """Touch request carried by a ``TUCH`` payload, in device pixels."""

    phase: int
    x: int
    y: int

    @classmethod
    def parse(cls, payload: bytes) -> Optional["TouchCommand"]:
        if len(payload) <= MAGIC_SIZE:
            return None
        return cls(
            phase=payload[MAGIC_SIZE],
            x=decode_u16(payload, MAGIC_SIZE + 1),
            y=decode_u16(payload, MAGIC_SIZE + 3),
        )

    def encode(self) -> bytes:
        return TOUCH_MAGIC + bytes([self.phase & 0xFF]) + encode_u16(self.x) + encode_u16(self.y)
