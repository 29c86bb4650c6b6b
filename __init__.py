"""
iec60870py - A Python implementation of the IEC 60870-5-104/-101 telecontrol protocol.

This package implements the IEC 60870-5 companion standards used between a
controlling station (client) and controlled stations (servers/RTUs): the
balanced TCP variant -104 and the FT1.2 link framing of the serial variant -101.

Protocol Structure:
    - APCI (APDU): start byte, length, I/S/U-format control field
    - ASDU: type id, variable structure qualifier, cause of transmission,
      common address and information objects
    - Information elements: quality descriptors, measured values, counters,
      commands, qualifiers and CP56Time2a/CP24Time2a/CP16Time2a time tags
    - Link layer (-101): FT1.2 single character, fixed and variable frames

Supported Features:
    - STARTDT/STOPDT handshake with retries
    - Sequence numbered I-frames with k/w sliding window acknowledgment
    - T1/T2/T3 timers and TESTFR link supervision
    - Monitoring, control, system and parameter ASDU types
    - Interrogation, counter interrogation, read and clock synchronization
    - Select-before-operate and direct execute commands
    - TCP client and multi-connection TCP server
    - -101 unbalanced primary station: link initialization, SEND/CONFIRM with
      FCB, class 1/2 polling with ACD priority and frame repetition
    - Protection equipment events and file transfer ASDU types

Public API (import from iec60870py):
    IEC104Client, IEC104Server, Connection, IEC101Connection, ConnectionEventListener,
    ServerEventListener, IEC60870Config, ASdu, InformationObject, ASduType,
    CauseOfTransmission, IEC60870Error and subclasses, __version__

References:
    - IEC 60870-5-101 (serial companion standard)
    - IEC 60870-5-104 (network access using standard transport profiles)
"""

from iec60870py.core.config import CauseOfTransmission, IEC60870Config
from iec60870py.core.exceptions import (
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
from iec60870py.core.client import IEC104Client
from iec60870py.core.connection import Connection, ConnectionEventListener, ConnectionState
from iec60870py.core.link_connection import IEC101Connection
from iec60870py.core.server import IEC104Server, ServerEventListener
from iec60870py.elements.types import ASduType
from iec60870py.layers.asdu import ASdu, InformationObject

__version__ = "1.0.0"
__author__ = "iec60870py Development"

__all__ = [
    "ASdu",
    "ASduType",
    "CauseOfTransmission",
    "Connection",
    "ConnectionEventListener",
    "ConnectionState",
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
    "InformationObject",
    "ServerEventListener",
    "__version__",
]
