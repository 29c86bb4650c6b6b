"""
IEC 60870-5-104 server (controlled station) over TCP.

The server accepts connections on a background thread and hands each one to
a ServerEventListener, which returns the ConnectionEventListener for it.
Every accepted connection runs its own receive loop and timers.
"""

import socket
import threading
from typing import List, Optional

from iec60870py.core.channel import SocketChannel
from iec60870py.core.config import IEC60870Config
from iec60870py.core.connection import Connection, ConnectionEventListener
from iec60870py.core.exceptions import IEC60870CommunicationError
from iec60870py.utils.logging import get_logger

# Accept loop wake-up interval for noticing stop()
ACCEPT_POLL_INTERVAL = 1.0


class ServerEventListener:
    """Receives connection events of an IEC104Server."""

    def on_connection_accepted(self, connection: Connection) -> Optional[ConnectionEventListener]:
        """
        Called for each new connection before its receive loop starts.

        Returns:
            Listener for the connection (None for the no-op default)
        """
        return None

    def on_connection_closed(self, connection: Connection) -> None:
        pass


class IEC104Server:
    """
    Multi-client IEC 60870-5-104 server.

    Usage:
        server = IEC104Server(IEC60870Config(host="0.0.0.0", port=2404))
        server.start(MyServerListener())
        ...
        server.stop()
    """

    def __init__(self, config: Optional[IEC60870Config] = None):
        self.config = config or IEC60870Config()
        self.config.validate()
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._listener = ServerEventListener()
        self._connections: List[Connection] = []
        self._lock = threading.Lock()
        self._running = threading.Event()
        self._logger = get_logger()

    @property
    def port(self) -> Optional[int]:
        """Bound port (useful when configured with port 0)."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def connections(self) -> List[Connection]:
        with self._lock:
            return list(self._connections)

    def start(self, listener: Optional[ServerEventListener] = None) -> None:
        """
        Bind, listen and start the accept loop.

        Raises:
            IEC60870CommunicationError: If the address cannot be bound
        """
        if self._running.is_set():
            return
        self._listener = listener or ServerEventListener()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, self.config.port))
            sock.listen(5)
            sock.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError as e:
            sock.close()
            raise IEC60870CommunicationError(
                f"Failed to listen: {e}", host=self.config.host, port=self.config.port
            ) from e

        self._socket = sock
        self._running.set()
        self._thread = threading.Thread(
            target=self._accept_loop, name="iec60870-server", daemon=True
        )
        self._thread.start()
        self._logger.info(f"Server listening on {self.config.host}:{self.port}")

    def stop(self) -> None:
        """Stop accepting and close every connection."""
        if not self._running.is_set():
            return
        self._running.clear()
        if self._thread is not None:
            self._thread.join(ACCEPT_POLL_INTERVAL * 2)
            self._thread = None
        if self._socket is not None:
            self._socket.close()
        for connection in self.connections:
            connection.close()
        self._logger.info("Server stopped")

    def _accept_loop(self) -> None:
        while self._running.is_set():
            try:
                client_socket, address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running.is_set():
                    self._logger.error(f"Accept failed: {e}")
                return

            with self._lock:
                full = len(self._connections) >= self.config.max_connections
            if full:
                self._logger.warning(
                    f"Rejecting {address[0]}:{address[1]}: "
                    f"{self.config.max_connections} connections open"
                )
                client_socket.close()
                continue

            self._logger.info(f"Accepted connection from {address[0]}:{address[1]}")
            self._open_connection(client_socket)

    def _open_connection(self, client_socket: socket.socket) -> None:
        client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        connection = Connection(SocketChannel(client_socket), self.config)
        with self._lock:
            self._connections.append(connection)
        connection.add_close_callback(self._on_connection_closed)

        try:
            listener = self._listener.on_connection_accepted(connection)
        except Exception:
            self._logger.exception(f"{connection.name}: on_connection_accepted failed")
            connection.close()
            return
        connection.start(listener)

    def _on_connection_closed(self, connection: Connection) -> None:
        with self._lock:
            if connection in self._connections:
                self._connections.remove(connection)
        self._listener.on_connection_closed(connection)

    def __enter__(self) -> "IEC104Server":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
