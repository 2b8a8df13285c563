from ipaddress import IPv4Address, IPv6Address

import pytest

from netlayers.dualstack import DualStackPacket, IPAddress
from netlayers.ipv4 import IPv4Packet, PacketError
from netlayers.ipv6 import IPv6Packet

SRC6 = bytes([0x20, 0x01, 0x0D, 0xB8] + [0] * 11 + [0x01])
DST6 = bytes([0x20, 0x01, 0x0D, 0xB8] + [0] * 11 + [0x02])

IPV6_UDP = (
    bytes([0x60, 0x00, 0x00, 0x00, 0x00, 0x08, 0x11, 0x40])
    + SRC6
    + DST6
    + bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08])
)


def ipv6_packet():
    return IPv6Packet.parse(IPV6_UDP)


def ipv4_packet(**kwargs):
    values = dict(
        source=IPv4Address("192.168.1.1"),
        destination=IPv4Address("192.168.1.2"),
        protocol=6,
        payload=bytes([1, 2, 3, 4]),
    )
    values.update(kwargs)
    return IPv4Packet(**values)


def test_ipv4_address():
    address = IPAddress(IPv4Address("192.168.1.1"))
    assert address.is_ipv4()
    assert not address.is_ipv6()
    assert address.address == IPv4Address("192.168.1.1")


def test_ipv6_address():
    address = IPAddress(IPv6Address(SRC6))
    assert address.is_ipv6()
    assert not address.is_ipv4()
    assert address.address == IPv6Address(SRC6)


@pytest.mark.parametrize(
    "address, text",
    [
        (IPAddress(IPv4Address("192.168.1.1")), "192.168.1.1"),
        (IPAddress(IPv6Address(SRC6)), "2001:db8::1"),
        (IPAddress(), "<invalid>"),
    ],
)
def test_address_string(address, text):
    assert str(address) == text


def test_ipv4_packet_kind():
    packet = DualStackPacket(ipv4_packet())
    assert packet.is_ipv4()
    assert not packet.is_ipv6()


def test_ipv6_packet_kind():
    packet = DualStackPacket(ipv6_packet())
    assert packet.is_ipv6()
    assert not packet.is_ipv4()


def test_serialize_ipv4():
    data = DualStackPacket(ipv4_packet()).serialize()
    assert len(data) == 24
    assert IPv4Packet.parse(data).payload == bytes([1, 2, 3, 4])


def test_serialize_ipv6_round_trip():
    assert DualStackPacket(ipv6_packet()).serialize() == IPV6_UDP


def test_serialize_invalid():
    with pytest.raises(PacketError):
        DualStackPacket().serialize()


@pytest.mark.parametrize(
    "packet, expected",
    [
        (DualStackPacket(ipv4_packet(protocol=6)), 6),
        (DualStackPacket(ipv6_packet()), 17),
        (DualStackPacket(), 0),
    ],
)
def test_protocol(packet, expected):
    assert packet.protocol() == expected


def test_payload():
    assert DualStackPacket(ipv4_packet()).payload() == bytes([1, 2, 3, 4])
    assert DualStackPacket(ipv6_packet()).payload() == bytes(range(1, 9))
    assert DualStackPacket().payload() is None


def test_string():
    v4 = ipv4_packet()
    v6 = ipv6_packet()
    assert str(DualStackPacket(v4)) == str(v4)
    assert str(DualStackPacket(v6)) == str(v6)
    assert str(DualStackPacket()) == "<invalid>"