"""
IEC 60870-5-104 client (controlling station) over TCP.
"""

import socket
import threading
import time
from contextlib import contextmanager
from typing import Optional

from iec60870py.core.channel import SocketChannel
from iec60870py.core.config import IEC60870Config
from iec60870py.core.connection import Connection, ConnectionEventListener
from iec60870py.core.exceptions import IEC60870CommunicationError, IEC60870TimeoutError
from iec60870py.utils.logging import get_logger


class IEC104Client:
    """
    Client that opens one IEC 60870-5-104 connection to a controlled station.

    Usage:
        config = IEC60870Config(host="192.168.1.100", port=2404)
        client = IEC104Client(config)

        with client.connect(listener) as connection:
            connection.interrogation(common_address=1)
    """

    def __init__(self, config: Optional[IEC60870Config] = None):
        """
        Initialize client.

        Args:
            config: Configuration settings (uses defaults if not provided)
        """
        self.config = config or IEC60870Config()
        self.config.validate()
        self._connection: Optional[Connection] = None
        self._lock = threading.Lock()
        self._logger = get_logger()

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    def open(self, listener: Optional[ConnectionEventListener] = None) -> Connection:
        """
        Connect to the server and start the receive loop.

        Data transfer is not started; call start_data_transfer() on the result.

        Args:
            listener: Event consumer for the connection

        Returns:
            The started Connection

        Raises:
            IEC60870TimeoutError: If the last connection attempt timed out
            IEC60870CommunicationError: If the last connection attempt failed
        """
        with self._lock:
            if self.is_connected:
                return self._connection

            sock = self._connect_socket()
            connection = Connection(SocketChannel(sock), self.config)
            self._connection = connection
        connection.start(listener)
        return connection

    def _connect_socket(self) -> socket.socket:
        address = f"{self.config.host}:{self.config.port}"
        attempts = self.config.max_retries + 1
        for attempt in range(1, attempts + 1):
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                sock.settimeout(self.config.connection_timeout)
                sock.connect((self.config.host, self.config.port))
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                self._logger.info(f"Connected to {address}")
                return sock
            except socket.timeout as e:
                sock.close()
                if attempt == attempts:
                    raise IEC60870TimeoutError(
                        f"Connection timeout to {address}",
                        timeout_seconds=self.config.connection_timeout,
                    ) from e
                self._logger.warning(f"Connection attempt {attempt} to {address} timed out")
            except OSError as e:
                sock.close()
                if attempt == attempts:
                    raise IEC60870CommunicationError(
                        f"Failed to connect: {e}",
                        host=self.config.host,
                        port=self.config.port,
                    ) from e
                self._logger.warning(f"Connection attempt {attempt} to {address} failed: {e}")
            time.sleep(self.config.retry_delay)
        raise IEC60870CommunicationError(
            f"Failed to connect to {address}", host=self.config.host, port=self.config.port
        )

    def close(self) -> None:
        """Close the connection, if any."""
        with self._lock:
            connection = self._connection
            self._connection = None
        if connection is not None:
            connection.close()

    @contextmanager
    def connect(
        self,
        listener: Optional[ConnectionEventListener] = None,
        start_data_transfer: bool = True,
    ):
        """
        Context manager for a connection.

        Args:
            listener: Event consumer for the connection
            start_data_transfer: Run the STARTDT handshake before yielding

        Usage:
            with client.connect(listener) as connection:
                # Do operations
        """
        try:
            connection = self.open(listener)
            if start_data_transfer:
                connection.start_data_transfer()
            yield connection
        finally:
            self.close()
