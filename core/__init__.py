"""Core IEC 60870-5 components.

This package provides:
- Connection: APCI state machine over a ByteChannel (STARTDT/STOPDT, k/w, T1-T3)
- IEC104Client / IEC104Server: TCP endpoints producing Connections
- IEC101Connection: -101 unbalanced primary station over FT1.2 link frames
- IEC60870Config: configuration (validate() called by every endpoint)
- TimeoutManager: per-connection timer worker
- IEC 60870 exception hierarchy: IEC60870Error, IEC60870CommunicationError,
  IEC60870TimeoutError, IEC60870FrameError, IEC60870ChecksumError,
  IEC60870ProtocolError, IEC60870UnsupportedTypeError, IEC60870SequenceError,
  IEC60870ElementError

Use __all__ as the canonical list of exported names.
"""

from .config import CauseOfTransmission, FieldWidths, IEC60870Config
from .exceptions import (
    IEC60870ChecksumError,
    IEC60870CommunicationError,
    IEC60870ElementError,
    IEC60870Error,
    IEC60870FrameError,
    IEC60870ProtocolError,
    IEC60870SequenceError,
    IEC60870TimeoutError,
    IEC60870UnsupportedTypeError,
)
from .timeout import TimeoutManager, TimeoutTask
from .channel import ByteChannel, SocketChannel
from .connection import Connection, ConnectionEventListener, ConnectionState
from .link_connection import IEC101Connection, LinkState
from .client import IEC104Client
from .server import IEC104Server, ServerEventListener

__all__ = [
    "ByteChannel",
    "CauseOfTransmission",
    "Connection",
    "ConnectionEventListener",
    "ConnectionState",
    "FieldWidths",
    "IEC101Connection",
    "IEC104Client",
    "IEC104Server",
    "IEC60870ChecksumError",
    "IEC60870CommunicationError",
    "IEC60870Config",
    "IEC60870ElementError",
    "IEC60870Error",
    "IEC60870FrameError",
    "IEC60870ProtocolError",
    "IEC60870SequenceError",
    "IEC60870TimeoutError",
    "IEC60870UnsupportedTypeError",
    "LinkState",
    "ServerEventListener",
    "SocketChannel",
    "TimeoutManager",
    "TimeoutTask",
]
