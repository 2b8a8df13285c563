from ipaddress import IPv4Address, IPv6Address

import pytest

from netlayers.multicast import (
    ALL_HOSTS_MULTICAST,
    ALL_NODES_MULTICAST,
    MDNS6_MULTICAST,
    MulticastGroup,
    MulticastManager,
    MulticastScope,
    MulticastSocket,
    ipv6_multicast_scope,
    is_multicast_ipv4,
    is_multicast_ipv6,
)


@pytest.mark.parametrize(
    "address, expected",
    [
        ("224.0.0.0", True),
        ("239.255.255.255", True),
        ("224.0.0.251", True),
        ("223.255.255.255", False),
        ("240.0.0.0", False),
        ("192.168.1.1", False),
    ],
)
def test_is_multicast_ipv4(address, expected):
    assert is_multicast_ipv4(address) is expected


@pytest.mark.parametrize(
    "address, expected",
    [("ff02::1", True), ("ff0e::1", True), ("2001:db8::1", False), ("fe80::1", False)],
)
def test_is_multicast_ipv6(address, expected):
    assert is_multicast_ipv6(address) is expected


@pytest.mark.parametrize(
    "address, scope",
    [
        ("ff01::1", MulticastScope.INTERFACE_LOCAL),
        ("ff02::1", MulticastScope.LINK_LOCAL),
        ("ff05::2", MulticastScope.SITE_LOCAL),
        ("ff08::1", MulticastScope.ORGANIZATION),
        ("ff0e::1", MulticastScope.GLOBAL),
    ],
)
def test_ipv6_multicast_scope(address, scope):
    assert ipv6_multicast_scope(address) == scope


def test_scope_of_unicast_is_zero():
    assert ipv6_multicast_scope("2001:db8::1") == 0


def test_well_known_addresses_are_multicast():
    assert is_multicast_ipv4(ALL_HOSTS_MULTICAST) is True
    assert is_multicast_ipv6(ALL_NODES_MULTICAST) is True
    assert ipv6_multicast_scope(ALL_NODES_MULTICAST) == MulticastScope.LINK_LOCAL
    assert ipv6_multicast_scope(MDNS6_MULTICAST) == MulticastScope.LINK_LOCAL
    assert str(MulticastGroup(ALL_HOSTS_MULTICAST)) == (
        "MulticastGroup{Addr=224.0.0.1, Members=0}"
    )
    assert MulticastGroup("ff02::1").address == ALL_NODES_MULTICAST


def test_group_membership():
    group = MulticastGroup("224.0.0.251", interface_index=2)
    group.add_member("alpha")
    group.add_member("beta")
    group.add_member("alpha")
    assert group.member_count() == 2
    assert group.has_member("alpha")
    group.remove_member("alpha")
    group.remove_member("missing")
    assert not group.has_member("alpha")
    assert group.members == ["beta"]
    assert group.interface_index == 2


def test_group_string():
    group = MulticastGroup(IPv4Address("224.0.0.1"))
    group.add_member("alpha")
    assert str(group) == "MulticastGroup{Addr=224.0.0.1, Members=1}"


def test_group_ipv6_address_is_converted():
    group = MulticastGroup("ff02::fb")
    assert group.address == MDNS6_MULTICAST
    assert str(group).startswith("MulticastGroup{Addr=ff02::fb,")


def test_manager_join_get_leave():
    manager = MulticastManager()
    v4 = MulticastGroup("224.0.0.251")
    v6 = MulticastGroup("ff02::fb")
    manager.join_group(v4)
    manager.join_group(v6)
    assert manager.get_group("224.0.0.251") is v4
    assert manager.get_group(IPv6Address("ff02::fb")) is v6
    assert len(manager.list_groups()) == 2
    manager.leave_group("224.0.0.251")
    assert manager.list_groups() == [v6]
    with pytest.raises(KeyError):
        manager.get_group("224.0.0.251")


def test_manager_rejects_unicast():
    manager = MulticastManager()
    with pytest.raises(ValueError):
        manager.join_group(MulticastGroup("192.168.1.1"))
    with pytest.raises(ValueError):
        manager.join_group(MulticastGroup("2001:db8::1"))
    assert manager.list_groups() == []


def test_manager_rejects_invalid_address_type():
    manager = MulticastManager()
    with pytest.raises(TypeError):
        manager.get_group(1.5)
    with pytest.raises(TypeError):
        manager.leave_group(None)


def test_manager_join_replaces_same_address():
    manager = MulticastManager()
    first = MulticastGroup("224.0.0.1")
    second = MulticastGroup("224.0.0.1")
    manager.join_group(first)
    manager.join_group(second)
    assert manager.get_group("224.0.0.1") is second
    assert len(manager.list_groups()) == 1


def test_socket_loopback_round_trip():
    with MulticastSocket("udp4", "127.0.0.1:0") as sock:
        sock.sock_timeout = None
        target = sock.local_address
        sent = sock.send_to(b"hello", target)
        data, sender = sock.receive_from(1024)
    assert sent == 5
    assert data == b"hello"
    assert sender == target


def test_socket_has_empty_manager():
    with MulticastSocket("udp4", "127.0.0.1:0") as sock:
        assert sock.manager.list_groups() == []
        assert sock.local_address[0] == "127.0.0.1"


def test_socket_rejects_unsupported_network():
    with pytest.raises(ValueError):
        MulticastSocket("tcp", "127.0.0.1:0")


def test_socket_rejects_address_without_port():
    with pytest.raises(ValueError):
        MulticastSocket("udp4", "127.0.0.1")


def test_socket_send_after_close_fails():
    sock = MulticastSocket("udp4", "127.0.0.1:0")
    target = sock.local_address
    sock.close()
    with pytest.raises(OSError):
        sock.send_to(b"data", target)