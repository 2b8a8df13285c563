# netlayers

Building blocks for the network layer and a simplified QUIC layer, in plain
Python. Addresses are `ipaddress.IPv4Address` / `IPv6Address`; most
constructors and methods also accept a string, an integer or packed bytes.

## What is in it

- `netlayers.ipv4` – `IPv4Packet` with `parse`, `serialize` (which fills in
  IHL, total length and the header checksum), `verify_checksum`,
  `decrement_ttl`, `is_fragment`; the `IPv4Flags` flag bits; the
  `internet_checksum` function; and `PacketError`, raised by every parser and
  serializer in the package when data is malformed.
- `netlayers.ipv6` – `IPv6Packet` (fixed header plus opaque
  `ExtensionHeader`s) with `parse`, `serialize` and `decrement_hop_limit`.
- `netlayers.fragment` – `Fragmenter` splits an `IPv4Packet` to fit an MTU
  and reassembles fragments in any order. Incomplete datagrams are dropped
  after 60 seconds by a background thread; use it as a context manager or
  call `close()` to stop that thread. `cleanup()` runs the expiry at once and
  `len(fragmenter)` is the number of datagrams still being collected.
- Routing tables, each with `add_route`, `remove_route` and `lookup`
  (returning the route and the next hop, or raising `NoRouteError`):
  - `netlayers.routing.RoutingTable` – longest prefix match over a list; the
    earliest added route wins a tie. Also `set_default_gateway`,
    `default_gateway`, local interface bookkeeping and `load_system_routes`,
    which adds a direct route for each IPv4 address of the host (read with
    `psutil`). The helpers `matches` and `prefix_length` are public.
  - `netlayers.routing_optimized.OptimizedRoutingTable` – routes kept sorted
    by prefix length, then by lower metric; `CachedRoutingTable` adds a
    lookup cache that is cleared when routes change.
  - `netlayers.routing_trie.TrieRoutingTable` – a bitwise trie. For a direct
    route the reported next hop is the route's network address.
    `CachedTrieRoutingTable` adds a lookup cache.
- `netlayers.igmp` – `IGMPMessage` and `IGMPType`: parse, serialize with
  checksum, and builders `membership_query`, `membership_report`,
  `leave_group`.
- `netlayers.mld` – `MLDMessage` and `MLDType`: parse, serialize, and
  builders `query`, `report`, `done`.
- `netlayers.multicast` – `is_multicast_ipv4`, `is_multicast_ipv6`,
  `ipv6_multicast_scope` with `MulticastScope`; `MulticastGroup` member
  lists; `MulticastManager` keeping one group per address; and
  `MulticastSocket`, a UDP socket that joins and leaves IPv4/IPv6 groups and
  sets the multicast TTL or hop limit.
- `netlayers.quic_packet` – `QuicPacket` with long and short headers and the
  builders `initial`, `handshake` and `one_rtt`.
- `netlayers.quic_frames` – PADDING, PING, ACK, STREAM, CRYPTO,
  CONNECTION_CLOSE and MAX_DATA frames, and `parse_frame`.
- `netlayers.quic_connection` – `QuicConnection` over any object with
  `sendto` and `recvfrom`: streams, STREAM data and CONNECTION_CLOSE.
- `netlayers.dualstack` – `IPAddress` and `DualStackPacket`, holding either
  an IPv4 or an IPv6 value.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

An IPv4 packet round trip:

```python
from netlayers.ipv4 import IPv4Packet

packet = IPv4Packet(
    source="192.168.1.100",
    destination="192.168.1.1",
    protocol=1,
    payload=bytes(3000),
)
wire = packet.serialize()
parsed = IPv4Packet.parse(wire)
assert parsed.payload == packet.payload
assert parsed.verify_checksum()
```

Fragmentation and reassembly:

```python
from netlayers.fragment import Fragmenter

with Fragmenter() as fragmenter:
    pieces = fragmenter.fragment(packet, 1500)
    whole = None
    for piece in reversed(pieces):
        whole = fragmenter.reassemble(piece) or whole
    assert whole.payload == packet.payload
```

Routing:

```python
from netlayers.routing import Route, RoutingTable

table = RoutingTable()
table.add_route(Route(destination="192.168.1.0", netmask="255.255.255.0",
                      interface="eth0"))
table.set_default_gateway("192.168.1.1", "eth0")
route, next_hop = table.lookup("8.8.8.8")       # next_hop == 192.168.1.1
route, next_hop = table.lookup("192.168.1.50")  # direct: next_hop == 192.168.1.50
print(table)
```

Multicast messages and groups:

```python
from netlayers.igmp import IGMPMessage
from netlayers.multicast import MulticastGroup, MulticastManager

wire = IGMPMessage.membership_report("239.1.1.1").serialize()
assert IGMPMessage.verify_checksum(wire)

manager = MulticastManager()
group = MulticastGroup("224.0.0.251")
group.add_member("resolver")
manager.join_group(group)   # ValueError for a non-multicast address
```

QUIC framing:

```python
from netlayers.quic_frames import CryptoFrame, parse_frame
from netlayers.quic_packet import QuicPacket

packet = QuicPacket.handshake(b"\x01" * 8, b"\x02" * 8,
                              CryptoFrame(data=b"hello").serialize())
parsed = QuicPacket.parse(packet.serialize())
frame, used = parse_frame(b"\x01")   # PingFrame(), 1
```

## What it does not do

- There is no command-line tool and no packet capture or raw-socket I/O;
  packets are built and read as bytes. Only `MulticastSocket` and
  `RoutingTable.load_system_routes` touch the host.
- QUIC is simplified: no encryption, no handshake logic, no variable-length
  integers (frame fields are fixed 8-byte big-endian values), and packet
  numbers are not encoded. Parsing a short header returns everything after
  the first byte as payload, and parsing a long header leaves an Initial
  token in the payload. `parse_frame` understands only PING and PADDING.
- The MLD checksum covers the message alone, without the IPv6 pseudo-header.
- IPv6 extension headers are written as opaque bytes and are not parsed.