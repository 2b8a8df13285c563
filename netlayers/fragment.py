"""IPv4 fragmentation and reassembly (RFC 791)."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from typing import Callable, Optional

from netlayers.ipv4 import IPv4Flags, IPv4Packet, PacketError

MAX_FRAGMENT_SIZE = 1480
FRAGMENT_TIMEOUT = 60.0
CLEANUP_INTERVAL = 10.0


@dataclass(frozen=True)
class FragmentKey:
    """Identifies the set of fragments that belong to one datagram."""

    source: IPv4Address
    destination: IPv4Address
    identification: int
    protocol: int


@dataclass
class FragmentEntry:
    """Fragments of one datagram collected so far, keyed by byte offset."""

    last_seen: float
    fragments: dict[int, bytes] = field(default_factory=dict)
    total_length: int = 0
    received_length: int = 0
    complete: bool = False

    def has_holes(self) -> bool:
        """Return True if some byte below ``total_length`` is not yet covered."""
        reach = 0
        for offset, data in sorted(self.fragments.items()):
            if reach >= self.total_length:
                break
            if offset > reach:
                return True
            reach = max(reach, offset + len(data))
        return reach < self.total_length


class Fragmenter:
    """Splits packets to fit an MTU and reassembles received fragments.

    Incomplete datagrams older than ``timeout`` seconds are discarded by a
    background thread every ``cleanup_interval`` seconds until ``close``.
    """

    def __init__(
        self,
        *,
        timeout: float = FRAGMENT_TIMEOUT,
        cleanup_interval: float = CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout
        self._cleanup_interval = cleanup_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._fragments: dict[FragmentKey, FragmentEntry] = {}
        self._next_id = 1
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._cleanup_loop, name="fragment-cleanup", daemon=True
        )
        self._thread.start()

    def _cleanup_loop(self) -> None:
        while not self._stopped.wait(self._cleanup_interval):
            self.cleanup()

    def cleanup(self) -> None:
        """Drop incomplete datagrams that have not been seen within the timeout."""
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, entry in self._fragments.items()
                if now - entry.last_seen > self._timeout
            ]
            for key in expired:
                del self._fragments[key]

    def close(self) -> None:
        """Stop the background cleanup."""
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)

    def __enter__(self) -> Fragmenter:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._fragments)

    def fragment(self, packet: IPv4Packet, mtu: int) -> list[IPv4Packet]:
        """Split ``packet`` into fragments whose size fits ``mtu``."""
        max_payload = (mtu - packet.ihl * 4) // 8 * 8
        if max_payload <= 0:
            raise PacketError(f"MTU too small: {mtu}")

        payload = packet.payload
        if len(payload) <= max_payload:
            return [packet]

        if packet.identification == 0:
            with self._lock:
                packet.identification = self._next_id
                self._next_id = (self._next_id + 1) & 0xFFFF

        fragments = []
        for offset in range(0, len(payload), max_payload):
            end = min(offset + max_payload, len(payload))
            last = end >= len(payload)
            first = offset == 0
            flags = packet.flags if last else packet.flags | IPv4Flags.MORE_FRAGMENTS
            fragments.append(
                IPv4Packet(
                    source=packet.source,
                    destination=packet.destination,
                    protocol=packet.protocol,
                    payload=payload[offset:end],
                    version=packet.version,
                    ihl=packet.ihl if first else 5,
                    dscp=packet.dscp,
                    ecn=packet.ecn,
                    identification=packet.identification,
                    flags=flags,
                    fragment_offset=offset // 8,
                    ttl=packet.ttl,
                    options=packet.options if first else b"",
                )
            )
        return fragments

    def reassemble(self, packet: IPv4Packet) -> Optional[IPv4Packet]:
        """Add a fragment; return the whole packet once complete, else None.

        A packet that is not a fragment is returned unchanged.
        """
        if not packet.is_fragment():
            return packet

        key = FragmentKey(
            source=packet.source,
            destination=packet.destination,
            identification=packet.identification,
            protocol=packet.protocol,
        )

        with self._lock:
            now = self._clock()
            entry = self._fragments.setdefault(key, FragmentEntry(last_seen=now))
            entry.last_seen = now

            byte_offset = (packet.fragment_offset * 8) & 0xFFFF
            entry.fragments[byte_offset] = packet.payload

            if not packet.flags & IPv4Flags.MORE_FRAGMENTS:
                entry.total_length = (byte_offset + len(packet.payload)) & 0xFFFF

            entry.received_length = (
                sum(len(data) for data in entry.fragments.values()) & 0xFFFF
            )

            total = entry.total_length
            if total == 0 or entry.received_length < total:
                return None
            if entry.has_holes():
                return None

            buffer = bytearray(total)
            for offset, data in sorted(entry.fragments.items()):
                if offset >= total:
                    continue
                chunk = data[: total - offset]
                buffer[offset : offset + len(chunk)] = chunk

            entry.complete = True
            del self._fragments[key]

        return IPv4Packet(
            source=packet.source,
            destination=packet.destination,
            protocol=packet.protocol,
            payload=bytes(buffer),
            version=packet.version,
            ihl=packet.ihl,
            dscp=packet.dscp,
            ecn=packet.ecn,
            identification=packet.identification,
            flags=IPv4Flags(0),
            fragment_offset=0,
            ttl=packet.ttl,
            options=packet.options,
        )