"""Addresses and packets that may be either IPv4 or IPv6."""

from __future__ import annotations

from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Optional, Union

from netlayers.ipv4 import IPv4Packet, PacketError
from netlayers.ipv6 import IPv6Packet

INVALID = "<invalid>"


@dataclass
class IPAddress:
    """An IPv4 or IPv6 address; with no address it is invalid."""

    address: Optional[Union[IPv4Address, IPv6Address]] = None

    def __post_init__(self) -> None:
        if self.address is not None and not isinstance(
            self.address, (IPv4Address, IPv6Address)
        ):
            self.address = ip_address(self.address)

    def is_ipv4(self) -> bool:
        """Return True if this holds an IPv4 address."""
        return isinstance(self.address, IPv4Address)

    def is_ipv6(self) -> bool:
        """Return True if this holds an IPv6 address."""
        return isinstance(self.address, IPv6Address)

    def __str__(self) -> str:
        return INVALID if self.address is None else str(self.address)


@dataclass
class DualStackPacket:
    """An IPv4 or IPv6 packet; with no packet it is invalid."""

    packet: Optional[Union[IPv4Packet, IPv6Packet]] = None

    def is_ipv4(self) -> bool:
        """Return True if this holds an IPv4 packet."""
        return isinstance(self.packet, IPv4Packet)

    def is_ipv6(self) -> bool:
        """Return True if this holds an IPv6 packet."""
        return isinstance(self.packet, IPv6Packet)

    def serialize(self) -> bytes:
        """Encode the packet held."""
        if self.packet is None:
            raise PacketError("invalid dual-stack packet")
        return self.packet.serialize()

    def protocol(self) -> int:
        """Return the next-layer protocol number, or 0 if there is no packet."""
        if isinstance(self.packet, IPv4Packet):
            return self.packet.protocol
        if isinstance(self.packet, IPv6Packet):
            return self.packet.next_header
        return 0

    def payload(self) -> Optional[bytes]:
        """Return the packet payload, or None if there is no packet."""
        if self.packet is None:
            return None
        return self.packet.payload

    def __str__(self) -> str:
        return INVALID if self.packet is None else str(self.packet)