"""IPv4 packets (RFC 791): parsing, serialization and header checksums."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntFlag
from ipaddress import IPv4Address

IPV4_VERSION = 4
MIN_HEADER_LENGTH = 20
MAX_HEADER_LENGTH = 60
MAX_PACKET_SIZE = 65535
DEFAULT_TTL = 64

_FIXED_HEADER = struct.Struct("!BBHHHBBH4s4s")


class PacketError(ValueError):
    """Raised when a packet cannot be parsed or serialized."""


class IPv4Flags(IntFlag):
    """The three flag bits of the IPv4 header."""

    RESERVED = 1 << 2
    DONT_FRAGMENT = 1 << 1
    MORE_FRAGMENTS = 1 << 0


def internet_checksum(data: bytes) -> int:
    """Return the 16-bit one's complement checksum of ``data``."""
    data = bytes(data)
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


@dataclass
class IPv4Packet:
    """An IPv4 packet; defaults match a fresh packet with no options."""

    source: IPv4Address = field(default_factory=lambda: IPv4Address(0))
    destination: IPv4Address = field(default_factory=lambda: IPv4Address(0))
    protocol: int = 0
    payload: bytes = b""
    version: int = IPV4_VERSION
    ihl: int = 5
    dscp: int = 0
    ecn: int = 0
    total_length: int = 0
    identification: int = 0
    flags: IPv4Flags = IPv4Flags(0)
    fragment_offset: int = 0
    ttl: int = DEFAULT_TTL
    checksum: int = 0
    options: bytes = b""

    def __post_init__(self) -> None:
        self.source = IPv4Address(self.source)
        self.destination = IPv4Address(self.destination)
        self.payload = bytes(self.payload)
        self.options = bytes(self.options)
        self.flags = IPv4Flags(self.flags)

    @classmethod
    def parse(cls, data: bytes) -> IPv4Packet:
        """Parse a packet from raw bytes."""
        data = bytes(data)
        if len(data) < MIN_HEADER_LENGTH:
            raise PacketError(
                f"packet too short: {len(data)} bytes (minimum {MIN_HEADER_LENGTH})"
            )
        version, ihl = data[0] >> 4, data[0] & 0x0F
        if version != IPV4_VERSION:
            raise PacketError(
                f"invalid IP version: {version} (expected {IPV4_VERSION})"
            )
        if ihl < 5:
            raise PacketError(f"invalid IHL: {ihl} (minimum 5)")
        header_length = ihl * 4
        if len(data) < header_length:
            raise PacketError(
                f"packet too short for header: {len(data)} bytes "
                f"(expected {header_length})"
            )
        (
            _,
            dscp_ecn,
            total_length,
            identification,
            flags_offset,
            ttl,
            protocol,
            checksum,
            source,
            destination,
        ) = _FIXED_HEADER.unpack_from(data)
        if total_length > len(data):
            raise PacketError(
                f"total length mismatch: header says {total_length}, "
                f"got {len(data)} bytes"
            )
        if total_length < header_length:
            raise PacketError(
                f"total length {total_length} shorter than header {header_length}"
            )
        return cls(
            source=IPv4Address(source),
            destination=IPv4Address(destination),
            protocol=protocol,
            payload=data[header_length:total_length],
            version=version,
            ihl=ihl,
            dscp=dscp_ecn >> 2,
            ecn=dscp_ecn & 0x03,
            total_length=total_length,
            identification=identification,
            flags=IPv4Flags(flags_offset >> 13),
            fragment_offset=flags_offset & 0x1FFF,
            ttl=ttl,
            checksum=checksum,
            options=data[MIN_HEADER_LENGTH:header_length],
        )

    def _header(self, checksum: int, header_length: int) -> bytes:
        fixed = _FIXED_HEADER.pack(
            ((self.version << 4) | self.ihl) & 0xFF,
            ((self.dscp << 2) | self.ecn) & 0xFF,
            self.total_length & 0xFFFF,
            self.identification & 0xFFFF,
            ((int(self.flags) << 13) | (self.fragment_offset & 0x1FFF)) & 0xFFFF,
            self.ttl & 0xFF,
            self.protocol & 0xFF,
            checksum & 0xFFFF,
            self.source.packed,
            self.destination.packed,
        )
        return (fixed + self.options).ljust(header_length, b"\x00")[:header_length]

    def serialize(self) -> bytes:
        """Encode the packet, updating IHL, total length and checksum."""
        header_length = MIN_HEADER_LENGTH
        if self.options:
            header_length += -(-len(self.options) // 4) * 4
        if header_length > MAX_HEADER_LENGTH:
            raise PacketError(
                f"header too long: {header_length} bytes (maximum {MAX_HEADER_LENGTH})"
            )
        self.ihl = header_length // 4
        total_length = header_length + len(self.payload)
        if total_length > MAX_PACKET_SIZE:
            raise PacketError(
                f"packet too large: {total_length} bytes (maximum {MAX_PACKET_SIZE})"
            )
        self.total_length = total_length
        self.checksum = internet_checksum(self._header(0, header_length))
        return self._header(self.checksum, header_length) + self.payload

    def verify_checksum(self) -> bool:
        """Return True if the stored header checksum is correct."""
        return internet_checksum(self._header(self.checksum, self.ihl * 4)) == 0

    def decrement_ttl(self) -> bool:
        """Decrement the TTL; return True while the packet is still alive."""
        if self.ttl == 0:
            return False
        self.ttl -= 1
        return self.ttl > 0

    def is_fragment(self) -> bool:
        """Return True if this packet is a fragment of a larger one."""
        return self.fragment_offset != 0 or bool(
            self.flags & IPv4Flags.MORE_FRAGMENTS
        )

    def __str__(self) -> str:
        return (
            f"IPv4{{{self.source} -> {self.destination}, Proto={self.protocol}, "
            f"TTL={self.ttl}, ID={self.identification}, Len={self.total_length}}}"
        )