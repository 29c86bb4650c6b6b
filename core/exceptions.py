"""IEC 60870-5 exception classes.

All IEC 60870-5 exceptions inherit from IEC60870Error. Catch IEC60870Error
to handle any codec, protocol or transport error. Use specific subclasses
for finer-grained handling or to access optional context attributes.

Exception hierarchy and optional context:
- IEC60870Error: base (no context)
- IEC60870CommunicationError: host, port
- IEC60870TimeoutError: timeout_seconds
- IEC60870FrameError: length
- IEC60870ChecksumError: expected, actual (FT1.2 link frames)
- IEC60870ProtocolError: type_id
- IEC60870UnsupportedTypeError: type_id, apdu, frame
- IEC60870SequenceError: expected, actual
- IEC60870ElementError: required, available

Fatality on a live connection: everything except IEC60870UnsupportedTypeError
tears the connection down and is reported through on_connection_lost().
"""

from typing import Any, Optional

__all__ = [
    "IEC60870Error",
    "IEC60870CommunicationError",
    "IEC60870TimeoutError",
    "IEC60870FrameError",
    "IEC60870ChecksumError",
    "IEC60870ProtocolError",
    "IEC60870UnsupportedTypeError",
    "IEC60870SequenceError",
    "IEC60870ElementError",
]


class IEC60870Error(Exception):
    """Base exception for all IEC 60870-5 errors."""

    pass


class IEC60870CommunicationError(IEC60870Error):
    """Raised when the underlying byte channel fails (connect, send, receive, EOF)."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.host = host
        self.port = port


class IEC60870TimeoutError(IEC60870Error):
    """Raised when an acknowledgment, test frame, handshake or connect timeout occurs."""

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class IEC60870FrameError(IEC60870Error):
    """Raised when frame parsing or construction fails (start byte, length, control field)."""

    def __init__(self, message: str, length: Optional[int] = None) -> None:
        super().__init__(message)
        self.length = length


class IEC60870ChecksumError(IEC60870FrameError):
    """Raised when the checksum of an FT1.2 link frame does not match."""

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class IEC60870ProtocolError(IEC60870Error):
    """Raised when a protocol rule is violated (illegal state, unexpected frame)."""

    def __init__(self, message: str, type_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.type_id = type_id


class IEC60870UnsupportedTypeError(IEC60870ProtocolError):
    """Raised when an ASDU carries a type identification this package cannot decode.

    When raised while reading an I-frame, ``apdu`` holds the frame with its
    sequence numbers and no ASDU so the connection can keep its counters in step.
    When raised while parsing an FT1.2 frame, ``frame`` holds the link frame
    (control field and address) without its ASDU.
    """

    def __init__(
        self,
        message: str,
        type_id: Optional[int] = None,
        apdu: Optional[Any] = None,
        frame: Optional[Any] = None,
    ) -> None:
        super().__init__(message, type_id=type_id)
        self.apdu = apdu
        self.frame = frame


class IEC60870SequenceError(IEC60870ProtocolError):
    """Raised when a received sequence number or acknowledgment is out of order."""

    def __init__(
        self,
        message: str,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class IEC60870ElementError(IEC60870Error):
    """Raised when an information element is truncated or cannot be encoded."""

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.required = required
        self.available = available
