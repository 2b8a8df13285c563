"""MLD messages (Multicast Listener Discovery) for IPv6 multicast."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv6Address
from typing import Union

from netlayers.ipv4 import PacketError, internet_checksum

MLD_HEADER_LENGTH = 24

_HEADER = struct.Struct("!BBHHH16s")

AddressLike = Union[IPv6Address, str, int, bytes]


class MLDType(IntEnum):
    """MLD message types (ICMPv6 types)."""

    QUERY = 130
    REPORT = 131
    DONE = 132
    V2_REPORT = 143


_TYPE_NAMES = {
    MLDType.QUERY: "Query",
    MLDType.REPORT: "Report",
    MLDType.DONE: "Done",
    MLDType.V2_REPORT: "Report(v2)",
}


@dataclass
class MLDMessage:
    """An MLD message; ``max_resp_delay`` is in milliseconds.

    The checksum covers the message only, without the IPv6 pseudo-header.
    """

    message_type: int
    group: IPv6Address = field(default_factory=lambda: IPv6Address(0))
    code: int = 0
    max_resp_delay: int = 0
    reserved: int = 0
    checksum: int = 0
    additional_data: bytes = b""

    def __post_init__(self) -> None:
        self.group = IPv6Address(self.group)
        self.additional_data = bytes(self.additional_data)
        try:
            self.message_type = MLDType(self.message_type)
        except ValueError:
            self.message_type = int(self.message_type)

    @classmethod
    def parse(cls, data: bytes) -> MLDMessage:
        """Parse a message from raw bytes."""
        data = bytes(data)
        if len(data) < MLD_HEADER_LENGTH:
            raise PacketError(f"MLD message too short: {len(data)} bytes")
        message_type, code, checksum, delay, reserved, group = _HEADER.unpack_from(
            data
        )
        return cls(
            message_type=message_type,
            group=IPv6Address(group),
            code=code,
            max_resp_delay=delay,
            reserved=reserved,
            checksum=checksum,
            additional_data=data[MLD_HEADER_LENGTH:],
        )

    def serialize(self) -> bytes:
        """Encode the message, updating its checksum."""
        unsummed = (
            _HEADER.pack(
                int(self.message_type) & 0xFF,
                self.code & 0xFF,
                0,
                self.max_resp_delay & 0xFFFF,
                self.reserved & 0xFFFF,
                self.group.packed,
            )
            + self.additional_data
        )
        self.checksum = internet_checksum(unsummed)
        return unsummed[:2] + struct.pack("!H", self.checksum) + unsummed[4:]

    @classmethod
    def query(cls, group: AddressLike, max_resp_delay: int) -> MLDMessage:
        """Build a multicast listener query for ``group``."""
        return cls(
            message_type=MLDType.QUERY,
            group=IPv6Address(group),
            max_resp_delay=max_resp_delay,
        )

    @classmethod
    def report(cls, group: AddressLike) -> MLDMessage:
        """Build a multicast listener report for ``group``."""
        return cls(message_type=MLDType.REPORT, group=IPv6Address(group))

    @classmethod
    def done(cls, group: AddressLike) -> MLDMessage:
        """Build a multicast listener done message for ``group``."""
        return cls(message_type=MLDType.DONE, group=IPv6Address(group))

    def __str__(self) -> str:
        name = _TYPE_NAMES.get(self.message_type, "Unknown")
        return (
            f"MLD{{Type={name}, Group={self.group}, "
            f"MaxRespDelay={self.max_resp_delay}ms}}"
        )