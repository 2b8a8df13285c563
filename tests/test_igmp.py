from ipaddress import IPv4Address

import pytest

from netlayers.igmp import IGMP_HEADER_LENGTH, IGMPMessage, IGMPType
from netlayers.ipv4 import PacketError, internet_checksum


def test_query_round_trip():
    message = IGMPMessage.membership_query("224.0.0.251", 100)
    data = message.serialize()
    parsed = IGMPMessage.parse(data)
    assert parsed.message_type == IGMPType.MEMBERSHIP_QUERY
    assert parsed.group == IPv4Address("224.0.0.251")
    assert parsed.max_resp_time == 100
    assert parsed.checksum == message.checksum
    assert parsed.additional_data == b""


def test_report_wire_layout():
    data = IGMPMessage.membership_report("224.0.0.1").serialize()
    assert len(data) == IGMP_HEADER_LENGTH
    assert data[0] == 0x16
    assert data[1] == 0
    assert data[4:8] == IPv4Address("224.0.0.1").packed


def test_serialized_checksum_sums_to_zero():
    data = IGMPMessage.membership_report("239.1.2.3").serialize()
    assert internet_checksum(data) == 0
    assert IGMPMessage.verify_checksum(data)


def test_corrupted_message_fails_checksum():
    data = bytearray(IGMPMessage.membership_report("239.1.2.3").serialize())
    data[5] ^= 0x01
    assert not IGMPMessage.verify_checksum(bytes(data))


def test_additional_data_round_trip():
    message = IGMPMessage(
        message_type=IGMPType.V3_MEMBERSHIP_REPORT,
        group="224.0.0.22",
        additional_data=b"\x01\x02\x03\x04",
    )
    data = message.serialize()
    assert len(data) == IGMP_HEADER_LENGTH + 4
    assert IGMPMessage.verify_checksum(data)
    parsed = IGMPMessage.parse(data)
    assert parsed.additional_data == b"\x01\x02\x03\x04"
    assert parsed.message_type == IGMPType.V3_MEMBERSHIP_REPORT


def test_leave_group_defaults():
    message = IGMPMessage.leave_group("224.0.0.5")
    assert message.message_type == IGMPType.V2_LEAVE_GROUP
    assert message.max_resp_time == 0
    assert message.serialize()[0] == 0x17


def test_parse_too_short():
    with pytest.raises(PacketError):
        IGMPMessage.parse(b"\x11\x00\x00")


def test_query_string():
    message = IGMPMessage.membership_query("224.0.0.1", 10)
    assert str(message) == "IGMP{Type=Query, Group=224.0.0.1, MaxRespTime=10}"


@pytest.mark.parametrize(
    "message_type, name",
    [
        (IGMPType.MEMBERSHIP_QUERY, "Query"),
        (IGMPType.V1_MEMBERSHIP_REPORT, "Report(v1)"),
        (IGMPType.V2_MEMBERSHIP_REPORT, "Report(v2)"),
        (IGMPType.V2_LEAVE_GROUP, "Leave"),
        (IGMPType.V3_MEMBERSHIP_REPORT, "Report(v3)"),
        (0x99, "Unknown"),
    ],
)
def test_type_names_in_string(message_type, name):
    message = IGMPMessage(message_type=message_type, group="224.0.0.1")
    assert f"Type={name}," in str(message)


def test_unknown_type_survives_round_trip():
    message = IGMPMessage(message_type=0x99, group="224.0.0.1")
    parsed = IGMPMessage.parse(message.serialize())
    assert parsed.message_type == 0x99