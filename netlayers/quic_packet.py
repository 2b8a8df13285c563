"""QUIC packets (RFC 9000): simplified long and short header encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from netlayers.ipv4 import PacketError

VERSION_1 = 0x00000001

_VERSION = struct.Struct("!I")


class QuicPacketType(IntEnum):
    """QUIC packet types; long header types occupy two bits of the first byte."""

    INITIAL = 0x00
    ZERO_RTT = 0x01
    HANDSHAKE = 0x02
    RETRY = 0x03
    ONE_RTT = 0x04
    VERSION_NEGOTIATION = 0xFF


_TYPE_NAMES = {
    QuicPacketType.INITIAL: "Initial",
    QuicPacketType.ZERO_RTT: "0-RTT",
    QuicPacketType.HANDSHAKE: "Handshake",
    QuicPacketType.RETRY: "Retry",
    QuicPacketType.ONE_RTT: "1-RTT",
}


@dataclass
class QuicPacket:
    """A QUIC packet.

    ``header_form`` is 1 for a long header and 0 for a short (1-RTT) header.
    Parsing a short header cannot know the connection ID length, so
    everything after the first byte is returned as payload. Parsing a long
    header does not read the Initial token; it stays in the payload.
    """

    header_form: int = 0
    fixed_bit: int = 1
    packet_type: int = QuicPacketType.INITIAL
    version: int = 0
    dest_conn_id: bytes = b""
    src_conn_id: bytes = b""
    token: bytes = b""
    packet_number: int = 0
    packet_number_length: int = 0
    payload: bytes = b""

    def __post_init__(self) -> None:
        self.dest_conn_id = bytes(self.dest_conn_id)
        self.src_conn_id = bytes(self.src_conn_id)
        self.token = bytes(self.token)
        self.payload = bytes(self.payload)
        try:
            self.packet_type = QuicPacketType(self.packet_type)
        except ValueError:
            self.packet_type = int(self.packet_type)

    @classmethod
    def parse(cls, data: bytes) -> QuicPacket:
        """Parse a packet from raw bytes."""
        data = bytes(data)
        if not data:
            raise PacketError("packet too short")
        first = data[0]
        if (first >> 6) & 0x01 != 1:
            raise PacketError("invalid fixed bit")
        if (first >> 7) & 0x01:
            return cls._parse_long(data)
        return cls(
            header_form=0,
            fixed_bit=1,
            packet_type=QuicPacketType.ONE_RTT,
            payload=data[1:],
        )

    @classmethod
    def _parse_long(cls, data: bytes) -> QuicPacket:
        if len(data) < 5:
            raise PacketError("long header too short")
        first = data[0]
        (version,) = _VERSION.unpack_from(data, 1)
        offset = 5
        conn_ids = []
        for _ in range(2):
            if offset >= len(data):
                raise PacketError("packet truncated")
            length = data[offset]
            offset += 1
            if offset + length > len(data):
                raise PacketError("packet truncated")
            conn_ids.append(data[offset : offset + length])
            offset += length
        dest_conn_id, src_conn_id = conn_ids
        return cls(
            header_form=1,
            fixed_bit=(first >> 6) & 0x01,
            packet_type=(first >> 4) & 0x03,
            version=version,
            dest_conn_id=dest_conn_id,
            src_conn_id=src_conn_id,
            payload=data[offset:],
        )

    def serialize(self) -> bytes:
        """Encode the packet with a long or short header per ``header_form``."""
        if self.header_form == 1:
            return self._serialize_long()
        first = ((self.header_form << 7) | (self.fixed_bit << 6)) & 0xFF
        return bytes([first]) + self.dest_conn_id + self.payload

    def _serialize_long(self) -> bytes:
        first = (
            (self.header_form << 7)
            | (self.fixed_bit << 6)
            | ((int(self.packet_type) & 0xFF) << 4)
        ) & 0xFF
        parts = [
            bytes([first]),
            _VERSION.pack(self.version & 0xFFFFFFFF),
            bytes([len(self.dest_conn_id) & 0xFF]),
            self.dest_conn_id,
            bytes([len(self.src_conn_id) & 0xFF]),
            self.src_conn_id,
        ]
        if self.packet_type == QuicPacketType.INITIAL:
            parts += [bytes([len(self.token) & 0xFF]), self.token]
        parts.append(self.payload)
        return b"".join(parts)

    @classmethod
    def initial(
        cls, dest_conn_id: bytes, src_conn_id: bytes, token: bytes, payload: bytes
    ) -> QuicPacket:
        """Build an Initial packet."""
        return cls(
            header_form=1,
            fixed_bit=1,
            packet_type=QuicPacketType.INITIAL,
            version=VERSION_1,
            dest_conn_id=dest_conn_id,
            src_conn_id=src_conn_id,
            token=token,
            payload=payload,
        )

    @classmethod
    def handshake(
        cls, dest_conn_id: bytes, src_conn_id: bytes, payload: bytes
    ) -> QuicPacket:
        """Build a Handshake packet."""
        return cls(
            header_form=1,
            fixed_bit=1,
            packet_type=QuicPacketType.HANDSHAKE,
            version=VERSION_1,
            dest_conn_id=dest_conn_id,
            src_conn_id=src_conn_id,
            payload=payload,
        )

    @classmethod
    def one_rtt(cls, dest_conn_id: bytes, payload: bytes) -> QuicPacket:
        """Build a short header (1-RTT) packet."""
        return cls(
            header_form=0,
            fixed_bit=1,
            packet_type=QuicPacketType.ONE_RTT,
            dest_conn_id=dest_conn_id,
            payload=payload,
        )

    def __str__(self) -> str:
        name = _TYPE_NAMES.get(self.packet_type, "Unknown")
        return (
            f"QUIC{{Type={name}, Version=0x{self.version:08x}, "
            f"DestConnID={self.dest_conn_id.hex()}, PayloadLen={len(self.payload)}}}"
        )