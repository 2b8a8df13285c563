from ipaddress import IPv6Address

import pytest

from netlayers.ipv4 import PacketError
from netlayers.ipv6 import (
    DEFAULT_HOP_LIMIT,
    HEADER_LENGTH,
    IPV6_VERSION,
    ExtensionHeader,
    IPv6Packet,
)

TCP, UDP, ICMPV6 = 6, 17, 58
SRC = IPv6Address("2001:db8::1")
DST = IPv6Address("2001:db8::2")

HEADER = (
    bytes([0x60, 0x00, 0x00, 0x00, 0x00, 0x08, 0x11, 0x40]) + SRC.packed + DST.packed
)
VALID = HEADER + bytes(range(1, 9))


def test_parse_valid():
    pkt = IPv6Packet.parse(VALID)
    assert pkt.version == IPV6_VERSION
    assert pkt.payload_length == 8
    assert pkt.next_header == UDP
    assert pkt.hop_limit == 64
    assert pkt.source == SRC
    assert pkt.destination == DST
    assert pkt.payload == bytes(range(1, 9))


def test_parse_too_short():
    with pytest.raises(PacketError):
        IPv6Packet.parse(bytes(20))


def test_parse_invalid_version():
    with pytest.raises(PacketError):
        IPv6Packet.parse(bytes([0x40]) + VALID[1:])


def test_parse_payload_length_mismatch():
    with pytest.raises(PacketError):
        IPv6Packet.parse(VALID[:44])


def test_parse_header_only_has_empty_payload():
    pkt = IPv6Packet.parse(HEADER)
    assert pkt.payload_length == 8
    assert pkt.payload == b""


def test_serialize_plain():
    pkt = IPv6Packet(SRC, DST, UDP, b"\x01\x02\x03\x04", hop_limit=64)
    data = pkt.serialize()
    assert len(data) == HEADER_LENGTH + 4
    assert pkt.payload_length == 4
    assert data[HEADER_LENGTH:] == b"\x01\x02\x03\x04"


def test_serialize_with_extension_headers():
    pkt = IPv6Packet(
        SRC,
        DST,
        UDP,
        b"\x05\x06\x07\x08",
        extension_headers=[ExtensionHeader(UDP, b"\x01\x02\x03\x04")],
    )
    data = pkt.serialize()
    assert len(data) == HEADER_LENGTH + 8
    assert pkt.payload_length == 8
    assert data[HEADER_LENGTH:] == bytes(range(1, 9))


def test_serialize_too_large():
    pkt = IPv6Packet(SRC, DST, UDP, bytes(65536))
    with pytest.raises(PacketError):
        pkt.serialize()


def test_round_trip():
    original = IPv6Packet(SRC, DST, ICMPV6, bytes(range(1, 9)), hop_limit=64)
    parsed = IPv6Packet.parse(original.serialize())
    assert parsed.version == original.version
    assert parsed.next_header == original.next_header
    assert parsed.hop_limit == original.hop_limit
    assert parsed.payload == original.payload
    assert parsed.source == SRC
    assert parsed.destination == DST


@pytest.mark.parametrize(
    "hop_limit,result,remaining",
    [(64, True, 63), (1, False, 0), (0, False, 0)],
)
def test_decrement_hop_limit(hop_limit, result, remaining):
    pkt = IPv6Packet(hop_limit=hop_limit)
    assert pkt.decrement_hop_limit() is result
    assert pkt.hop_limit == remaining


def test_new_packet_defaults():
    pkt = IPv6Packet(SRC, DST, TCP, b"\x01\x02\x03\x04")
    assert pkt.version == IPV6_VERSION
    assert pkt.hop_limit == DEFAULT_HOP_LIMIT
    assert pkt.next_header == TCP
    assert pkt.payload == b"\x01\x02\x03\x04"
    assert pkt.extension_headers == []


def test_str():
    pkt = IPv6Packet(SRC, DST, TCP, b"\x01\x02\x03\x04")
    assert str(pkt) == (
        "IPv6{2001:db8::1 -> 2001:db8::2, Proto=6, HopLimit=64, PayloadLen=0}"
    )


def test_traffic_class_and_flow_label():
    pkt = IPv6Packet(
        SRC, DST, UDP, b"\x01\x02\x03\x04", traffic_class=0xAB, flow_label=0x12345
    )
    parsed = IPv6Packet.parse(pkt.serialize())
    assert parsed.traffic_class == 0xAB
    assert parsed.flow_label == 0x12345