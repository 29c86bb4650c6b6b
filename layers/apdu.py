"""
IEC 60870-5-104 Application Protocol Data Unit (APDU).

The APDU is the unit exchanged over the TCP byte stream. It consists of the
Application Protocol Control Information (APCI) and, for I-format frames,
one ASDU.

Frame Structure:
    [Start: 0x68][Length: 1 byte, 4-253]
    [Control field: 4 bytes]
    [ASDU: Length - 4 bytes, I-format only]

Control field formats:
    I-format  byte0 bit0 = 0   N(S) in bytes 0-1, N(R) in bytes 2-3
    S-format  byte0 = 0x01     N(R) in bytes 2-3
    U-format  byte0 bits0-1 = 11, one of STARTDT/STOPDT/TESTFR act/con

Sequence numbers are 15 bits, stored shifted left by one so bit 0 of the
low octet stays free for the format discriminator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from iec60870py.core.config import FieldWidths
from iec60870py.core.exceptions import IEC60870FrameError, IEC60870UnsupportedTypeError
from iec60870py.layers.asdu import MAX_ASDU_LENGTH, ASdu
from iec60870py.utils.stream import ByteReader

# APDU constants
START_BYTE = 0x68
CONTROL_FIELD_LENGTH = 4
MIN_APDU_LENGTH = 4
MAX_APDU_LENGTH = 253
MAX_FRAME_SIZE = MAX_APDU_LENGTH + 2
SEQUENCE_MODULUS = 32768


class ApciType(Enum):
    """APDU format and unnumbered control function."""

    I_FORMAT = "I"
    S_FORMAT = "S"
    STARTDT_ACT = "STARTDT_ACT"
    STARTDT_CON = "STARTDT_CON"
    STOPDT_ACT = "STOPDT_ACT"
    STOPDT_CON = "STOPDT_CON"
    TESTFR_ACT = "TESTFR_ACT"
    TESTFR_CON = "TESTFR_CON"

    @property
    def is_unnumbered(self) -> bool:
        return self in U_FORMAT_CODES


# First control octet of U-format frames
U_FORMAT_CODES = {
    ApciType.STARTDT_ACT: 0x07,
    ApciType.STARTDT_CON: 0x0B,
    ApciType.STOPDT_ACT: 0x13,
    ApciType.STOPDT_CON: 0x23,
    ApciType.TESTFR_ACT: 0x43,
    ApciType.TESTFR_CON: 0x83,
}
_U_FORMAT_BY_CODE = {code: apci_type for apci_type, code in U_FORMAT_CODES.items()}


def _encode_sequence(buffer: bytearray, offset: int, value: int) -> None:
    buffer[offset] = (value << 1) & 0xFE
    buffer[offset + 1] = (value >> 7) & 0xFF


def _decode_sequence(low: int, high: int) -> int:
    return ((low & 0xFE) >> 1) + ((high & 0xFF) << 7)


def set_receive_sequence(frame: bytearray, receive_seq: int) -> None:
    """Overwrite N(R) in an encoded I- or S-format frame."""
    if not 0 <= receive_seq < SEQUENCE_MODULUS:
        raise ValueError(f"receive_seq must be 0-{SEQUENCE_MODULUS - 1}, got {receive_seq}")
    _encode_sequence(frame, 4, receive_seq)


@dataclass
class APdu:
    """Represents one IEC 60870-5-104 APDU."""

    apci_type: ApciType
    send_seq: int = 0
    receive_seq: int = 0
    asdu: Optional[ASdu] = None

    def __post_init__(self) -> None:
        for name in ("send_seq", "receive_seq"):
            value = getattr(self, name)
            if not 0 <= value < SEQUENCE_MODULUS:
                raise ValueError(f"{name} must be 0-{SEQUENCE_MODULUS - 1}, got {value}")
        if self.apci_type is not ApciType.I_FORMAT:
            if self.asdu is not None:
                raise ValueError(f"{self.apci_type.name} frames carry no ASDU")
            if self.send_seq:
                raise ValueError(f"{self.apci_type.name} frames carry no send sequence number")
        if self.apci_type.is_unnumbered and self.receive_seq:
            raise ValueError(f"{self.apci_type.name} frames carry no receive sequence number")

    @property
    def is_i_format(self) -> bool:
        return self.apci_type is ApciType.I_FORMAT

    @property
    def is_s_format(self) -> bool:
        return self.apci_type is ApciType.S_FORMAT

    def encode(self, buffer: bytearray, widths: FieldWidths) -> int:
        """
        Encode the APDU into the start of buffer.

        Args:
            buffer: Destination buffer (MAX_FRAME_SIZE bytes always suffice)
            widths: ASDU field widths

        Returns:
            Number of bytes written

        Raises:
            IEC60870FrameError: If the ASDU is missing or too large
        """
        buffer[0] = START_BYTE
        if self.apci_type is ApciType.I_FORMAT:
            if self.asdu is None:
                raise IEC60870FrameError("I-format frame requires an ASDU")
            _encode_sequence(buffer, 2, self.send_seq)
            _encode_sequence(buffer, 4, self.receive_seq)
            asdu_length = self.asdu.encode(buffer, 6, widths)
            if asdu_length > MAX_ASDU_LENGTH:
                raise IEC60870FrameError(
                    f"ASDU too large: {asdu_length} bytes (max {MAX_ASDU_LENGTH})",
                    length=asdu_length,
                )
            length = CONTROL_FIELD_LENGTH + asdu_length
        elif self.apci_type is ApciType.S_FORMAT:
            buffer[2] = 0x01
            buffer[3] = 0x00
            _encode_sequence(buffer, 4, self.receive_seq)
            length = CONTROL_FIELD_LENGTH
        else:
            buffer[2] = U_FORMAT_CODES[self.apci_type]
            buffer[3] = 0x00
            buffer[4] = 0x00
            buffer[5] = 0x00
            length = CONTROL_FIELD_LENGTH
        buffer[1] = length
        return length + 2

    def to_bytes(self, widths: Optional[FieldWidths] = None) -> bytes:
        buffer = bytearray(MAX_FRAME_SIZE)
        size = self.encode(buffer, widths or FieldWidths())
        return bytes(buffer[:size])

    @classmethod
    def decode(cls, stream, widths: FieldWidths) -> "APdu":
        """
        Read exactly one APDU from stream.

        Args:
            stream: Object with a blocking read(count) -> bytes returning exactly count bytes
            widths: ASDU field widths

        Returns:
            Decoded APdu

        Raises:
            IEC60870FrameError: If start byte, length or control field is invalid
            IEC60870UnsupportedTypeError: If the ASDU type is unknown (error.apdu is set)
            IEC60870ElementError: If the ASDU payload is truncated
        """
        start = stream.read(1)[0]
        if start != START_BYTE:
            raise IEC60870FrameError(f"Invalid start byte: 0x{start:02X}")

        length = stream.read(1)[0]
        if not MIN_APDU_LENGTH <= length <= MAX_APDU_LENGTH:
            raise IEC60870FrameError(
                f"Invalid APDU length: {length} (must be {MIN_APDU_LENGTH}-{MAX_APDU_LENGTH})",
                length=length,
            )

        control = stream.read(CONTROL_FIELD_LENGTH)

        if control[0] & 0x01 == 0:
            send_seq = _decode_sequence(control[0], control[1])
            receive_seq = _decode_sequence(control[2], control[3])
            payload = stream.read(length - CONTROL_FIELD_LENGTH)
            try:
                asdu = ASdu.decode(ByteReader(payload), widths)
            except IEC60870UnsupportedTypeError as e:
                e.apdu = cls(ApciType.I_FORMAT, send_seq, receive_seq)
                raise
            return cls(ApciType.I_FORMAT, send_seq, receive_seq, asdu)

        if length != CONTROL_FIELD_LENGTH:
            raise IEC60870FrameError(
                f"S/U-format frame with unexpected length {length}", length=length
            )

        if control[0] & 0x03 == 0x01:
            return cls(ApciType.S_FORMAT, receive_seq=_decode_sequence(control[2], control[3]))

        apci_type = _U_FORMAT_BY_CODE.get(control[0])
        if apci_type is None:
            raise IEC60870FrameError(f"Unknown U-format control field: 0x{control[0]:02X}")
        return cls(apci_type)

    @classmethod
    def from_bytes(cls, data: bytes, widths: Optional[FieldWidths] = None) -> "APdu":
        """
        Decode one APDU from a complete byte string.

        Raises:
            IEC60870FrameError: If data is truncated or malformed
        """
        return cls.decode(ByteReader(data, error_class=IEC60870FrameError), widths or FieldWidths())

    def __repr__(self) -> str:
        if self.apci_type is ApciType.I_FORMAT:
            return f"APdu(I, ssn={self.send_seq}, rsn={self.receive_seq}, asdu={self.asdu!r})"
        if self.apci_type is ApciType.S_FORMAT:
            return f"APdu(S, rsn={self.receive_seq})"
        return f"APdu({self.apci_type.name})"
