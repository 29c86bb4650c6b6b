"""
Byte channel abstraction consumed by Connection.

A channel is an ordered, reliable byte stream with blocking read/write.
Connection only needs read(count), write(data) and close(); close() must
unblock a reader waiting in read().
"""

import socket
import threading
from typing import Optional

from iec60870py.core.exceptions import IEC60870CommunicationError


class ByteChannel:
    """Interface of the transport underneath a Connection."""

    def read(self, count: int) -> bytes:
        """
        Block until exactly count bytes are available.

        Raises:
            IEC60870CommunicationError: On EOF or I/O failure
        """
        raise NotImplementedError

    def write(self, data: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    @property
    def description(self) -> str:
        return type(self).__name__


class SocketChannel(ByteChannel):
    """ByteChannel over a connected stream socket (IEC 60870-5-104 over TCP)."""

    def __init__(self, sock: socket.socket):
        self._socket = sock
        self._closed = False
        self._close_lock = threading.Lock()
        # Reads block until data arrives or the socket is shut down
        self._socket.settimeout(None)
        try:
            peer = sock.getpeername()
        except OSError:
            peer = None
        self._peer: Optional[tuple] = peer if isinstance(peer, tuple) else None

    @property
    def host(self) -> Optional[str]:
        return self._peer[0] if self._peer else None

    @property
    def port(self) -> Optional[int]:
        return self._peer[1] if self._peer else None

    @property
    def description(self) -> str:
        if self._peer:
            return f"{self._peer[0]}:{self._peer[1]}"
        return "socket"

    def read(self, count: int) -> bytes:
        chunks = bytearray()
        while len(chunks) < count:
            try:
                data = self._socket.recv(count - len(chunks))
            except OSError as e:
                raise IEC60870CommunicationError(
                    f"Receive failed: {e}", host=self.host, port=self.port
                ) from e
            if not data:
                raise IEC60870CommunicationError(
                    "Connection closed by remote", host=self.host, port=self.port
                )
            chunks.extend(data)
        return bytes(chunks)

    def write(self, data: bytes) -> None:
        try:
            self._socket.sendall(data)
        except OSError as e:
            raise IEC60870CommunicationError(
                f"Send failed: {e}", host=self.host, port=self.port
            ) from e

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            # Shutdown wakes a thread blocked in recv(); close() alone does not
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer may already have reset the connection
            pass
        self._socket.close()
