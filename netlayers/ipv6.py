"""IPv6 packets (RFC 2460): parsing and serialization of the fixed header."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from ipaddress import IPv6Address

from netlayers.ipv4 import PacketError

IPV6_VERSION = 6
HEADER_LENGTH = 40
MAX_PACKET_SIZE = 65535
DEFAULT_HOP_LIMIT = 64

_HEADER = struct.Struct("!IHBB16s16s")


@dataclass
class ExtensionHeader:
    """An opaque IPv6 extension header."""

    next_header: int
    data: bytes = b""


@dataclass
class IPv6Packet:
    """An IPv6 packet; defaults match a fresh packet without extensions."""

    source: IPv6Address = field(default_factory=lambda: IPv6Address(0))
    destination: IPv6Address = field(default_factory=lambda: IPv6Address(0))
    next_header: int = 0
    payload: bytes = b""
    version: int = IPV6_VERSION
    traffic_class: int = 0
    flow_label: int = 0
    payload_length: int = 0
    hop_limit: int = DEFAULT_HOP_LIMIT
    extension_headers: list[ExtensionHeader] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.source = IPv6Address(self.source)
        self.destination = IPv6Address(self.destination)
        self.payload = bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> IPv6Packet:
        """Parse a packet from raw bytes."""
        data = bytes(data)
        if len(data) < HEADER_LENGTH:
            raise PacketError(
                f"packet too short: {len(data)} bytes (minimum {HEADER_LENGTH})"
            )
        first, payload_length, next_header, hop_limit, source, destination = (
            _HEADER.unpack_from(data)
        )
        version = first >> 28
        if version != IPV6_VERSION:
            raise PacketError(
                f"invalid IP version: {version} (expected {IPV6_VERSION})"
            )
        payload = b""
        if len(data) > HEADER_LENGTH:
            rest = data[HEADER_LENGTH:]
            if payload_length > len(rest):
                raise PacketError(
                    f"payload length mismatch: header says {payload_length}, "
                    f"got {len(rest)} bytes"
                )
            payload = rest[:payload_length]
        return cls(
            source=IPv6Address(source),
            destination=IPv6Address(destination),
            next_header=next_header,
            payload=payload,
            version=version,
            traffic_class=(first >> 20) & 0xFF,
            flow_label=first & 0xFFFFF,
            payload_length=payload_length,
            hop_limit=hop_limit,
        )

    def serialize(self) -> bytes:
        """Encode the packet, updating the payload length field."""
        body = b"".join(bytes(ext.data) for ext in self.extension_headers)
        body += self.payload
        if len(body) > MAX_PACKET_SIZE:
            raise PacketError(
                f"payload too large: {len(body)} bytes (maximum {MAX_PACKET_SIZE})"
            )
        self.payload_length = len(body)
        first = (
            ((self.version & 0xF) << 28)
            | ((self.traffic_class & 0xFF) << 20)
            | (self.flow_label & 0xFFFFF)
        )
        header = _HEADER.pack(
            first,
            self.payload_length,
            self.next_header & 0xFF,
            self.hop_limit & 0xFF,
            self.source.packed,
            self.destination.packed,
        )
        return header + body

    def decrement_hop_limit(self) -> bool:
        """Decrement the hop limit; return True while the packet is still alive."""
        if self.hop_limit == 0:
            return False
        self.hop_limit -= 1
        return self.hop_limit > 0

    def __str__(self) -> str:
        return (
            f"IPv6{{{self.source} -> {self.destination}, Proto={self.next_header}, "
            f"HopLimit={self.hop_limit}, PayloadLen={self.payload_length}}}"
        )