"""IGMP messages (Internet Group Management Protocol) for IPv4 multicast."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv4Address
from typing import Union

from netlayers.ipv4 import PacketError, internet_checksum

IGMP_HEADER_LENGTH = 8

_HEADER = struct.Struct("!BBH4s")

AddressLike = Union[IPv4Address, str, int, bytes]


class IGMPType(IntEnum):
    """IGMP message types."""

    MEMBERSHIP_QUERY = 0x11
    V1_MEMBERSHIP_REPORT = 0x12
    V2_MEMBERSHIP_REPORT = 0x16
    V2_LEAVE_GROUP = 0x17
    V3_MEMBERSHIP_REPORT = 0x22


_TYPE_NAMES = {
    IGMPType.MEMBERSHIP_QUERY: "Query",
    IGMPType.V1_MEMBERSHIP_REPORT: "Report(v1)",
    IGMPType.V2_MEMBERSHIP_REPORT: "Report(v2)",
    IGMPType.V2_LEAVE_GROUP: "Leave",
    IGMPType.V3_MEMBERSHIP_REPORT: "Report(v3)",
}


@dataclass
class IGMPMessage:
    """An IGMP message; ``max_resp_time`` is in tenths of a second."""

    message_type: int
    group: IPv4Address = field(default_factory=lambda: IPv4Address(0))
    max_resp_time: int = 0
    checksum: int = 0
    additional_data: bytes = b""

    def __post_init__(self) -> None:
        self.group = IPv4Address(self.group)
        self.additional_data = bytes(self.additional_data)
        try:
            self.message_type = IGMPType(self.message_type)
        except ValueError:
            self.message_type = int(self.message_type)

    @classmethod
    def parse(cls, data: bytes) -> IGMPMessage:
        """Parse a message from raw bytes."""
        data = bytes(data)
        if len(data) < IGMP_HEADER_LENGTH:
            raise PacketError(f"IGMP message too short: {len(data)} bytes")
        message_type, max_resp_time, checksum, group = _HEADER.unpack_from(data)
        return cls(
            message_type=message_type,
            group=IPv4Address(group),
            max_resp_time=max_resp_time,
            checksum=checksum,
            additional_data=data[IGMP_HEADER_LENGTH:],
        )

    def serialize(self) -> bytes:
        """Encode the message, updating its checksum."""
        unsummed = (
            _HEADER.pack(
                int(self.message_type) & 0xFF,
                self.max_resp_time & 0xFF,
                0,
                self.group.packed,
            )
            + self.additional_data
        )
        self.checksum = internet_checksum(unsummed)
        return unsummed[:2] + struct.pack("!H", self.checksum) + unsummed[4:]

    @staticmethod
    def verify_checksum(data: bytes) -> bool:
        """Return True if the encoded message ``data`` has a valid checksum."""
        return internet_checksum(data) == 0

    @classmethod
    def membership_query(cls, group: AddressLike, max_resp_time: int) -> IGMPMessage:
        """Build a membership query for ``group``."""
        return cls(
            message_type=IGMPType.MEMBERSHIP_QUERY,
            group=IPv4Address(group),
            max_resp_time=max_resp_time,
        )

    @classmethod
    def membership_report(cls, group: AddressLike) -> IGMPMessage:
        """Build an IGMPv2 membership report for ``group``."""
        return cls(message_type=IGMPType.V2_MEMBERSHIP_REPORT, group=IPv4Address(group))

    @classmethod
    def leave_group(cls, group: AddressLike) -> IGMPMessage:
        """Build an IGMPv2 leave-group message for ``group``."""
        return cls(message_type=IGMPType.V2_LEAVE_GROUP, group=IPv4Address(group))

    def __str__(self) -> str:
        name = _TYPE_NAMES.get(self.message_type, "Unknown")
        return (
            f"IGMP{{Type={name}, Group={self.group}, "
            f"MaxRespTime={self.max_resp_time}}}"
        )