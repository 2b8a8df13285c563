"""IP multicast addresses, group bookkeeping and multicast UDP sockets."""

from __future__ import annotations

import socket
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Optional, Union

MulticastAddress = Union[IPv4Address, IPv6Address]
AddressLike = Union[IPv4Address, IPv6Address, str, int, bytes]

ALL_HOSTS_MULTICAST = IPv4Address("224.0.0.1")
ALL_ROUTERS_MULTICAST = IPv4Address("224.0.0.2")
MDNS_MULTICAST = IPv4Address("224.0.0.251")

ALL_NODES_MULTICAST = IPv6Address("ff02::1")
ALL_ROUTERS_MULTICAST6 = IPv6Address("ff02::2")
MDNS6_MULTICAST = IPv6Address("ff02::fb")


def is_multicast_ipv4(address: AddressLike) -> bool:
    """Return True for addresses in 224.0.0.0 - 239.255.255.255."""
    return 224 <= IPv4Address(address).packed[0] <= 239


def is_multicast_ipv6(address: AddressLike) -> bool:
    """Return True for addresses whose first byte is 0xff."""
    return IPv6Address(address).packed[0] == 0xFF


class MulticastScope(IntEnum):
    """Scope field of an IPv6 multicast address."""

    INTERFACE_LOCAL = 0x1
    LINK_LOCAL = 0x2
    REALM_LOCAL = 0x3
    ADMIN_LOCAL = 0x4
    SITE_LOCAL = 0x5
    ORGANIZATION = 0x8
    GLOBAL = 0xE


def ipv6_multicast_scope(address: AddressLike) -> Union[MulticastScope, int]:
    """Return the scope of an IPv6 multicast address, or 0 if not multicast.

    Scope values without a name are returned as plain integers.
    """
    address = IPv6Address(address)
    if not is_multicast_ipv6(address):
        return 0
    value = address.packed[1] & 0x0F
    try:
        return MulticastScope(value)
    except ValueError:
        return value


def _to_address(address: AddressLike) -> MulticastAddress:
    if isinstance(address, (IPv4Address, IPv6Address)):
        return address
    if isinstance(address, (str, bytes, int)):
        return ip_address(address)
    raise TypeError("invalid address type")


@dataclass
class MulticastGroup:
    """A multicast group address with its member identifiers."""

    address: MulticastAddress
    interface_index: int = 0
    members: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.address = _to_address(self.address)

    def add_member(self, member: str) -> None:
        """Add a member unless it is already present."""
        if member not in self.members:
            self.members.append(member)

    def remove_member(self, member: str) -> None:
        """Remove a member; unknown members are ignored."""
        if member in self.members:
            self.members.remove(member)

    def has_member(self, member: str) -> bool:
        """Return True if ``member`` belongs to the group."""
        return member in self.members

    def member_count(self) -> int:
        """Return the number of members."""
        return len(self.members)

    def __str__(self) -> str:
        return f"MulticastGroup{{Addr={self.address}, Members={len(self.members)}}}"


class MulticastManager:
    """Keeps the multicast groups joined, one per address."""

    def __init__(self) -> None:
        self._groups: dict[MulticastAddress, MulticastGroup] = {}

    def join_group(self, group: MulticastGroup) -> None:
        """Register ``group``, replacing any group with the same address."""
        address = _to_address(group.address)
        multicast = (
            is_multicast_ipv4(address)
            if isinstance(address, IPv4Address)
            else is_multicast_ipv6(address)
        )
        if not multicast:
            raise ValueError(f"not a multicast address: {address}")
        self._groups[address] = group

    def leave_group(self, address: AddressLike) -> None:
        """Forget the group at ``address``; unknown addresses are ignored."""
        self._groups.pop(_to_address(address), None)

    def get_group(self, address: AddressLike) -> MulticastGroup:
        """Return the group at ``address``."""
        key = _to_address(address)
        try:
            return self._groups[key]
        except KeyError:
            raise KeyError(f"group not found: {key}") from None

    def list_groups(self) -> list[MulticastGroup]:
        """Return all registered groups."""
        return list(self._groups.values())


_FAMILIES = {"udp4": socket.AF_INET, "udp6": socket.AF_INET6}


def _split_host_port(address: str) -> tuple[str, int]:
    host, separator, port = address.rpartition(":")
    if not separator:
        raise ValueError(f"missing port in address: {address}")
    return host.strip("[]"), int(port or 0)


class MulticastSocket:
    """A UDP socket that can join and leave multicast groups.

    ``network`` is ``"udp"``, ``"udp4"`` or ``"udp6"``; ``address`` is
    ``"host:port"`` where an empty host means every local address.
    """

    def __init__(self, network: str = "udp4", address: str = ":0") -> None:
        host, port = _split_host_port(address)
        if network == "udp":
            family = socket.AF_INET6 if ":" in host else socket.AF_INET
        elif network in _FAMILIES:
            family = _FAMILIES[network]
        else:
            raise ValueError(f"unsupported network: {network}")
        if not host:
            host = "::" if family == socket.AF_INET6 else "0.0.0.0"
        try:
            sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as exc:
            raise OSError(f"failed to create socket: {exc}") from exc
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            raise OSError(f"failed to create socket: {exc}") from exc
        self._sock = sock
        self.manager = MulticastManager()

    @property
    def local_address(self) -> tuple:
        """The address the socket is bound to."""
        return self._sock.getsockname()

    def join_ipv4_group(
        self, group: AddressLike, interface: Optional[AddressLike] = None
    ) -> None:
        """Join an IPv4 group on the interface with address ``interface``."""
        self._sock.setsockopt(
            socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, self._mreq4(group, interface)
        )

    def leave_ipv4_group(
        self, group: AddressLike, interface: Optional[AddressLike] = None
    ) -> None:
        """Leave an IPv4 group on the interface with address ``interface``."""
        self._sock.setsockopt(
            socket.IPPROTO_IP, socket.IP_DROP_MEMBERSHIP, self._mreq4(group, interface)
        )

    def join_ipv6_group(self, group: AddressLike, interface_index: int = 0) -> None:
        """Join an IPv6 group on the interface with index ``interface_index``."""
        self._sock.setsockopt(
            socket.IPPROTO_IPV6,
            socket.IPV6_JOIN_GROUP,
            self._mreq6(group, interface_index),
        )

    def leave_ipv6_group(self, group: AddressLike, interface_index: int = 0) -> None:
        """Leave an IPv6 group on the interface with index ``interface_index``."""
        self._sock.setsockopt(
            socket.IPPROTO_IPV6,
            socket.IPV6_LEAVE_GROUP,
            self._mreq6(group, interface_index),
        )

    @staticmethod
    def _mreq4(group: AddressLike, interface: Optional[AddressLike]) -> bytes:
        local = IPv4Address(interface if interface is not None else 0)
        return IPv4Address(group).packed + local.packed

    @staticmethod
    def _mreq6(group: AddressLike, interface_index: int) -> bytes:
        return IPv6Address(group).packed + struct.pack("@I", interface_index)

    def send_to(self, data: bytes, address: tuple) -> int:
        """Send ``data`` to ``address``; return the number of bytes sent."""
        return self._sock.sendto(data, address)

    def receive_from(self, size: int = 65535) -> tuple[bytes, tuple]:
        """Receive up to ``size`` bytes; return the data and the sender."""
        return self._sock.recvfrom(size)

    def set_ttl(self, ttl: int) -> None:
        """Set the TTL (or IPv6 hop limit) of outgoing multicast packets."""
        if self._sock.family == socket.AF_INET6:
            self._sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, ttl)
        else:
            self._sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, ttl)

    def set_hop_limit(self, hops: int) -> None:
        """Set the hop limit of outgoing multicast packets."""
        self.set_ttl(hops)

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()

    def __enter__(self) -> MulticastSocket:
        return self

    def __exit__(self, *args) -> None:
        self.close()