"""QUIC frames (RFC 9000), using a simplified fixed-width encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

from netlayers.ipv4 import PacketError

_U64 = struct.Struct("!Q")
_U64_MASK = 0xFFFFFFFFFFFFFFFF


def _u64(value: int) -> bytes:
    return _U64.pack(value & _U64_MASK)


class FrameType(IntEnum):
    """QUIC frame types; STREAM covers 0x08-0x0f with flag bits."""

    PADDING = 0x00
    PING = 0x01
    ACK = 0x02
    RESET_STREAM = 0x04
    STOP_SENDING = 0x05
    CRYPTO = 0x06
    NEW_TOKEN = 0x07
    STREAM = 0x08
    MAX_DATA = 0x10
    MAX_STREAM_DATA = 0x11
    MAX_STREAMS = 0x12
    DATA_BLOCKED = 0x14
    STREAM_DATA_BLOCKED = 0x15
    STREAMS_BLOCKED = 0x16
    NEW_CONNECTION_ID = 0x18
    RETIRE_CONNECTION_ID = 0x19
    PATH_CHALLENGE = 0x1A
    PATH_RESPONSE = 0x1B
    CONNECTION_CLOSE = 0x1C
    HANDSHAKE_DONE = 0x1E


class Frame:
    """Base of all frames; ``frame_type`` names the kind of frame."""

    frame_type: ClassVar[FrameType]

    def serialize(self) -> bytes:
        """Encode a frame that carries nothing but its type byte."""
        return bytes([self.frame_type])


@dataclass
class PaddingFrame(Frame):
    """A run of ``length`` zero bytes."""

    frame_type: ClassVar[FrameType] = FrameType.PADDING

    length: int = 0

    def serialize(self) -> bytes:
        return bytes(self.length)

    def __str__(self) -> str:
        return f"PADDING{{Len={self.length}}}"


@dataclass
class PingFrame(Frame):
    """A PING frame."""

    frame_type: ClassVar[FrameType] = FrameType.PING

    def serialize(self) -> bytes:
        return bytes([FrameType.PING])

    def __str__(self) -> str:
        return "PING"


@dataclass
class AckRange:
    """A gap and a run of acknowledged packets."""

    gap: int = 0
    length: int = 0


@dataclass
class AckFrame(Frame):
    """An ACK frame; only the number of ranges is encoded."""

    frame_type: ClassVar[FrameType] = FrameType.ACK

    largest_acknowledged: int = 0
    ack_delay: int = 0
    ack_ranges: list[AckRange] = field(default_factory=list)

    def serialize(self) -> bytes:
        return (
            bytes([FrameType.ACK])
            + _u64(self.largest_acknowledged)
            + _u64(self.ack_delay)
            + bytes([len(self.ack_ranges) & 0xFF])
        )

    def __str__(self) -> str:
        return (
            f"ACK{{Largest={self.largest_acknowledged}, Delay={self.ack_delay}, "
            f"Ranges={len(self.ack_ranges)}}}"
        )


@dataclass
class StreamFrame(Frame):
    """A STREAM frame; offset and length are written only when non-zero."""

    frame_type: ClassVar[FrameType] = FrameType.STREAM

    stream_id: int = 0
    offset: int = 0
    length: int = 0
    fin: bool = False
    data: bytes = b""

    def __post_init__(self) -> None:
        self.data = bytes(self.data)

    def serialize(self) -> bytes:
        type_byte = int(FrameType.STREAM)
        if self.fin:
            type_byte |= 0x01
        if self.length > 0:
            type_byte |= 0x02
        if self.offset > 0:
            type_byte |= 0x04
        parts = [bytes([type_byte]), _u64(self.stream_id)]
        if self.offset > 0:
            parts.append(_u64(self.offset))
        if self.length > 0:
            parts.append(_u64(self.length))
        parts.append(self.data)
        return b"".join(parts)

    def __str__(self) -> str:
        fin = "true" if self.fin else "false"
        return (
            f"STREAM{{ID={self.stream_id}, Offset={self.offset}, "
            f"Len={len(self.data)}, Fin={fin}}}"
        )


@dataclass
class CryptoFrame(Frame):
    """A CRYPTO frame carrying handshake data."""

    frame_type: ClassVar[FrameType] = FrameType.CRYPTO

    offset: int = 0
    data: bytes = b""

    def __post_init__(self) -> None:
        self.data = bytes(self.data)

    def serialize(self) -> bytes:
        return (
            bytes([FrameType.CRYPTO])
            + _u64(self.offset)
            + _u64(len(self.data))
            + self.data
        )

    def __str__(self) -> str:
        return f"CRYPTO{{Offset={self.offset}, Len={len(self.data)}}}"


@dataclass
class ConnectionCloseFrame(Frame):
    """A CONNECTION_CLOSE frame.

    ``offending_frame_type`` is the type of the frame that caused the error.
    """

    frame_type: ClassVar[FrameType] = FrameType.CONNECTION_CLOSE

    error_code: int = 0
    offending_frame_type: int = 0
    reason_phrase: str = ""

    def serialize(self) -> bytes:
        reason = self.reason_phrase.encode("utf-8")
        return (
            bytes([FrameType.CONNECTION_CLOSE])
            + _u64(self.error_code)
            + _u64(self.offending_frame_type)
            + _u64(len(reason))
            + reason
        )

    def __str__(self) -> str:
        return f"CONNECTION_CLOSE{{Code={self.error_code}, Reason={self.reason_phrase}}}"


@dataclass
class MaxDataFrame(Frame):
    """A MAX_DATA frame."""

    frame_type: ClassVar[FrameType] = FrameType.MAX_DATA

    maximum_data: int = 0

    def serialize(self) -> bytes:
        return bytes([FrameType.MAX_DATA]) + _u64(self.maximum_data)

    def __str__(self) -> str:
        return f"MAX_DATA{{Max={self.maximum_data}}}"


def parse_frame(data: bytes) -> tuple[Frame, int]:
    """Parse one frame; return it and the number of bytes consumed.

    Only PING and PADDING frames are understood.
    """
    data = bytes(data)
    if not data:
        raise PacketError("frame data too short")
    kind = data[0]
    if kind == FrameType.PING:
        return PingFrame(), 1
    if kind == FrameType.PADDING:
        count = len(data) - len(data.lstrip(b"\x00"))
        return PaddingFrame(length=count), count
    raise PacketError(f"unsupported frame type: 0x{kind:02x}")