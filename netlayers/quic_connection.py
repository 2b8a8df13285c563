"""QUIC connection state, streams and packet exchange over a datagram socket."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol

from netlayers.ipv4 import PacketError
from netlayers.quic_frames import ConnectionCloseFrame, StreamFrame
from netlayers.quic_packet import VERSION_1, QuicPacket

MAX_DATAGRAM_SIZE = 65535
DEFAULT_MAX_STREAM_DATA = 1024 * 1024
DEFAULT_MAX_DATA = 10 * 1024 * 1024
CONNECTION_ID_LENGTH = 8


class DatagramTransport(Protocol):
    """The part of a datagram socket a connection uses."""

    def sendto(self, data: bytes, address: Any) -> int: ...

    def recvfrom(self, size: int) -> tuple[bytes, Any]: ...


class ConnectionState(IntEnum):
    """Lifecycle states of a QUIC connection."""

    IDLE = 0
    HANDSHAKING = 1
    ESTABLISHED = 2
    CLOSING = 3
    CLOSED = 4

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass
class Stream:
    """A QUIC stream and how much has been sent on it."""

    stream_id: int
    send_buffer: bytearray
    recv_buffer: bytearray
    offset: int = 0
    finished: bool = False


class QuicConnection:
    """A QUIC connection to one peer over a datagram transport.

    A fresh connection is idle, has a random 8-byte local connection ID and
    speaks QUIC version 1.
    """

    def __init__(
        self,
        transport: DatagramTransport,
        remote_address: Any,
        *,
        remote_conn_id: bytes = b"",
    ) -> None:
        self._lock = threading.RLock()
        self.local_conn_id = os.urandom(CONNECTION_ID_LENGTH)
        self.remote_conn_id = bytes(remote_conn_id)
        self._transport = transport
        self.remote_address = remote_address
        self.state = ConnectionState.IDLE
        self.version = VERSION_1
        self.max_stream_data = DEFAULT_MAX_STREAM_DATA
        self.max_data = DEFAULT_MAX_DATA
        self._streams: dict[int, Stream] = {}
        self.packet_number = 0
        self.largest_acked = 0
        self.created = time.monotonic()
        self.last_seen = self.created

    def send_packet(self, packet: QuicPacket) -> None:
        """Encode ``packet`` and send it to the remote address."""
        with self._lock:
            data = packet.serialize()
            try:
                self._transport.sendto(data, self.remote_address)
            except OSError as exc:
                raise OSError(f"failed to send packet: {exc}") from exc
            self.packet_number += 1

    def receive_packet(self) -> QuicPacket:
        """Receive one datagram, remember its sender and parse it."""
        try:
            data, address = self._transport.recvfrom(MAX_DATAGRAM_SIZE)
        except OSError as exc:
            raise OSError(f"failed to receive packet: {exc}") from exc
        with self._lock:
            self.remote_address = address
            self.last_seen = time.monotonic()
        try:
            return QuicPacket.parse(data)
        except PacketError as exc:
            raise PacketError(f"failed to parse packet: {exc}") from exc

    def open_stream(self) -> Stream:
        """Open a client-initiated bidirectional stream."""
        with self._lock:
            if self.state != ConnectionState.ESTABLISHED:
                raise ConnectionError("connection not established")
            stream_id = len(self._streams) * 4
            stream = Stream(
                stream_id=stream_id, send_buffer=bytearray(), recv_buffer=bytearray()
            )
            self._streams[stream_id] = stream
            return stream

    def get_stream(self, stream_id: int) -> Stream:
        """Return the stream with ``stream_id``."""
        with self._lock:
            try:
                return self._streams[stream_id]
            except KeyError:
                raise KeyError(f"stream not found: {stream_id}") from None

    def send_stream_data(self, stream_id: int, data: bytes, fin: bool = False) -> None:
        """Send ``data`` on a stream in a STREAM frame; ``fin`` ends the stream."""
        stream = self.get_stream(stream_id)
        data = bytes(data)
        frame = StreamFrame(stream_id=stream_id, offset=stream.offset, data=data, fin=fin)
        self.send_packet(QuicPacket.one_rtt(self.remote_conn_id, frame.serialize()))
        stream.offset += len(data)
        if fin:
            stream.finished = True

    def close(self, error_code: int = 0, reason: str = "") -> None:
        """Send CONNECTION_CLOSE on a best-effort basis and mark the connection closed."""
        with self._lock:
            if self.state == ConnectionState.CLOSED:
                return
            frame = ConnectionCloseFrame(error_code=error_code, reason_phrase=reason)
            packet = QuicPacket.one_rtt(self.remote_conn_id, frame.serialize())
            try:
                self.send_packet(packet)
            except OSError:
                pass
            self.state = ConnectionState.CLOSED

    def __str__(self) -> str:
        with self._lock:
            return (
                f"QUIC{{State={self.state}, LocalConnID={self.local_conn_id.hex()}, "
                f"RemoteConnID={self.remote_conn_id.hex()}, Streams={len(self._streams)}}}"
            )