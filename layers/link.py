"""
IEC 60870-5-101 link layer framing (FT1.2).

The serial variant wraps the ASDU in an FT1.2 frame instead of an APCI.
Three frame formats exist:

    Single character:  [0xE5] (ACK) or [0xA2] (NACK)
    Fixed length:      [0x10][C][A...][CS][0x16]
    Variable length:   [0x68][L][L][0x68][C][A...][ASDU...][CS][0x16]

L counts the control field, link address and ASDU octets. CS is the sum of
the same octets modulo 256. The link address field is 0, 1 or 2 octets,
little endian, and must be configured identically on both stations.

Control field:
    bit 7      RES / DIR (balanced transmission)
    bit 6      PRM  1 = message from primary station
    bit 5      FCB (primary) / ACD (secondary)
    bit 4      FCV (primary) / DFC (secondary)
    bits 0-3   function code
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Tuple

from iec60870py.core.config import FieldWidths
from iec60870py.core.exceptions import (
    IEC60870ChecksumError,
    IEC60870FrameError,
    IEC60870UnsupportedTypeError,
)
from iec60870py.layers.asdu import ASdu
from iec60870py.utils.checksum import calculate_checksum
from iec60870py.utils.stream import ByteReader

# FT1.2 constants
SINGLE_CHAR_ACK = 0xE5
SINGLE_CHAR_NACK = 0xA2
FIXED_START = 0x10
VARIABLE_START = 0x68
END_BYTE = 0x16
MAX_VARIABLE_LENGTH = 255

DIR_BIT = 0x80
PRM_BIT = 0x40
FCB_ACD_BIT = 0x20
FCV_DFC_BIT = 0x10
FUNCTION_MASK = 0x0F


class PrimaryFunction(IntEnum):
    """Function codes of frames sent by the primary station."""

    RESET_REMOTE_LINK = 0
    RESET_USER_PROCESS = 1
    TEST_FUNCTION_LINK = 2
    USER_DATA_CONFIRMED = 3
    USER_DATA_NO_REPLY = 4
    REQUEST_ACCESS_DEMAND = 8
    REQUEST_LINK_STATUS = 9
    REQUEST_CLASS_1_DATA = 10
    REQUEST_CLASS_2_DATA = 11


class SecondaryFunction(IntEnum):
    """Function codes of frames sent by the secondary station."""

    ACK = 0
    NACK = 1
    USER_DATA = 8
    NACK_NO_DATA = 9
    LINK_STATUS = 11
    NOT_FUNCTIONING = 14
    NOT_IMPLEMENTED = 15


class LinkFrameKind(Enum):
    SINGLE_ACK = "single_ack"
    SINGLE_NACK = "single_nack"
    FIXED = "fixed"
    VARIABLE = "variable"


@dataclass(frozen=True)
class ControlField:
    """
    FT1.2 control field.

    fcb_acd and fcv_dfc mean FCB/FCV for primary and ACD/DFC for secondary frames.
    """

    prm: bool
    function: int
    fcb_acd: bool = False
    fcv_dfc: bool = False
    direction: bool = False

    def __post_init__(self) -> None:
        if not 0 <= int(self.function) <= FUNCTION_MASK:
            raise ValueError(f"Link function code must be 0-15, got {self.function}")

    def to_byte(self) -> int:
        value = int(self.function) & FUNCTION_MASK
        if self.direction:
            value |= DIR_BIT
        if self.prm:
            value |= PRM_BIT
        if self.fcb_acd:
            value |= FCB_ACD_BIT
        if self.fcv_dfc:
            value |= FCV_DFC_BIT
        return value

    @classmethod
    def from_byte(cls, value: int) -> "ControlField":
        prm = bool(value & PRM_BIT)
        code = value & FUNCTION_MASK
        function_enum = PrimaryFunction if prm else SecondaryFunction
        try:
            function = function_enum(code)
        except ValueError:
            # Reserved codes are kept as plain ints
            function = code
        return cls(
            prm=prm,
            function=function,
            fcb_acd=bool(value & FCB_ACD_BIT),
            fcv_dfc=bool(value & FCV_DFC_BIT),
            direction=bool(value & DIR_BIT),
        )


@dataclass
class LinkFrame:
    """Represents one FT1.2 frame."""

    kind: LinkFrameKind
    control: Optional[ControlField] = None
    address: int = 0
    asdu: Optional[ASdu] = None

    @property
    def is_single_character(self) -> bool:
        return self.kind in (LinkFrameKind.SINGLE_ACK, LinkFrameKind.SINGLE_NACK)

    def __repr__(self) -> str:
        if self.is_single_character:
            return f"LinkFrame({self.kind.name})"
        function = self.control.function
        name = function.name if isinstance(function, IntEnum) else function
        return (
            f"LinkFrame({self.kind.name}, prm={self.control.prm}, func={name}, "
            f"addr={self.address}, asdu={self.asdu!r})"
        )


class LinkLayer:
    """
    FT1.2 frame encoder/decoder for IEC 60870-5-101.

    The primary side alternates the frame count bit for each new
    USER_DATA_CONFIRMED frame; a retransmission keeps the previous value.
    """

    def __init__(self, link_address_length: int = 2, field_widths: Optional[FieldWidths] = None):
        """
        Initialize link layer.

        Args:
            link_address_length: Link address octets (0-2)
            field_widths: ASDU field widths used for variable frames

        Raises:
            ValueError: If link_address_length is outside 0-2
        """
        if link_address_length not in (0, 1, 2):
            raise ValueError(f"link_address_length must be 0, 1 or 2, got {link_address_length}")
        self.link_address_length = link_address_length
        self.field_widths = field_widths or FieldWidths()
        self._fcb = False

    def _encode_address(self, address: int) -> bytes:
        if self.link_address_length == 0:
            return b""
        if not 0 <= address < (1 << (8 * self.link_address_length)):
            raise ValueError(
                f"Link address {address} does not fit in {self.link_address_length} byte(s)"
            )
        return address.to_bytes(self.link_address_length, "little")

    @staticmethod
    def build_ack() -> bytes:
        return bytes([SINGLE_CHAR_ACK])

    @staticmethod
    def build_nack() -> bytes:
        return bytes([SINGLE_CHAR_NACK])

    def build_fixed_frame(self, control: ControlField, address: int) -> bytes:
        """
        Build a fixed length frame (no user data).

        Args:
            control: Control field
            address: Link address

        Returns:
            Frame bytes
        """
        body = bytes([control.to_byte()]) + self._encode_address(address)
        return bytes([FIXED_START]) + body + bytes([calculate_checksum(body), END_BYTE])

    def build_variable_frame(self, control: ControlField, address: int, asdu: ASdu) -> bytes:
        """
        Build a variable length frame carrying one ASDU.

        Raises:
            IEC60870FrameError: If the frame would exceed 255 length octets
        """
        body = (
            bytes([control.to_byte()])
            + self._encode_address(address)
            + asdu.to_bytes(self.field_widths)
        )
        if len(body) > MAX_VARIABLE_LENGTH:
            raise IEC60870FrameError(
                f"Link user data too large: {len(body)} > {MAX_VARIABLE_LENGTH}",
                length=len(body),
            )
        header = bytes([VARIABLE_START, len(body), len(body), VARIABLE_START])
        return header + body + bytes([calculate_checksum(body), END_BYTE])

    def build_reset_remote_link(self, address: int) -> bytes:
        """Build a RESET_REMOTE_LINK request; also resets the frame count bit."""
        self.reset_fcb()
        return self.build_fixed_frame(
            ControlField(prm=True, function=PrimaryFunction.RESET_REMOTE_LINK), address
        )

    def build_request_link_status(self, address: int) -> bytes:
        return self.build_fixed_frame(
            ControlField(prm=True, function=PrimaryFunction.REQUEST_LINK_STATUS), address
        )

    def build_request_class_data(self, address: int, data_class: int = 2) -> bytes:
        """Build a class 1 or class 2 data request (unbalanced polling)."""
        if data_class not in (1, 2):
            raise ValueError(f"data_class must be 1 or 2, got {data_class}")
        function = (
            PrimaryFunction.REQUEST_CLASS_1_DATA
            if data_class == 1
            else PrimaryFunction.REQUEST_CLASS_2_DATA
        )
        frame = self.build_fixed_frame(
            ControlField(prm=True, function=function, fcb_acd=not self._fcb, fcv_dfc=True), address
        )
        self.toggle_fcb()
        return frame

    def build_user_data(self, address: int, asdu: ASdu, confirmed: bool = True) -> bytes:
        """
        Build a primary user data frame.

        Args:
            address: Link address of the secondary station
            asdu: ASDU to send
            confirmed: USER_DATA_CONFIRMED (FCV set, FCB toggled) or USER_DATA_NO_REPLY

        Raises:
            IEC60870FrameError: If the ASDU cannot be encoded (the FCB is left unchanged)
        """
        if not confirmed:
            control = ControlField(prm=True, function=PrimaryFunction.USER_DATA_NO_REPLY)
            return self.build_variable_frame(control, address, asdu)
        control = ControlField(
            prm=True,
            function=PrimaryFunction.USER_DATA_CONFIRMED,
            fcb_acd=not self._fcb,
            fcv_dfc=True,
        )
        frame = self.build_variable_frame(control, address, asdu)
        self.toggle_fcb()
        return frame

    def read_frame(self, stream) -> bytes:
        """
        Read the raw bytes of exactly one FT1.2 frame from stream.

        Args:
            stream: Object with a blocking read(count) -> bytes returning exactly count bytes

        Returns:
            Frame bytes, ready for parse_frame()

        Raises:
            IEC60870FrameError: If the start byte or variable frame header is invalid
        """
        start = stream.read(1)
        if start[0] in (SINGLE_CHAR_ACK, SINGLE_CHAR_NACK):
            return start
        if start[0] == FIXED_START:
            return start + stream.read(self.link_address_length + 3)
        if start[0] == VARIABLE_START:
            header = stream.read(3)
            if header[0] != header[1] or header[2] != VARIABLE_START:
                raise IEC60870FrameError(
                    f"Invalid variable frame header: {(start + header).hex(' ').upper()}"
                )
            return start + header + stream.read(header[0] + 2)
        raise IEC60870FrameError(f"Invalid start byte: 0x{start[0]:02X}")

    def parse_frame(self, data: bytes) -> Tuple[LinkFrame, int]:
        """
        Parse one FT1.2 frame from the start of data.

        Args:
            data: Raw bytes beginning with a frame

        Returns:
            Tuple of (parsed LinkFrame, bytes consumed)

        Raises:
            IEC60870FrameError: If the frame is incomplete or malformed
            IEC60870ChecksumError: If the checksum does not match
            IEC60870UnsupportedTypeError: If the ASDU type is unknown (error.frame is set)
        """
        if not data:
            raise IEC60870FrameError("No data to parse")

        start = data[0]
        if start == SINGLE_CHAR_ACK:
            return LinkFrame(LinkFrameKind.SINGLE_ACK), 1
        if start == SINGLE_CHAR_NACK:
            return LinkFrame(LinkFrameKind.SINGLE_NACK), 1

        if start == FIXED_START:
            body_length = 1 + self.link_address_length
            size = body_length + 3
            self._require(data, size)
            body = bytes(data[1:1 + body_length])
            self._check_trailer(data, body, 1 + body_length)
            control = ControlField.from_byte(body[0])
            return LinkFrame(LinkFrameKind.FIXED, control, self._decode_address(body)), size

        if start == VARIABLE_START:
            self._require(data, 4)
            length = data[1]
            if data[2] != length or data[3] != VARIABLE_START:
                raise IEC60870FrameError(
                    f"Invalid variable frame header: {bytes(data[:4]).hex(' ').upper()}"
                )
            if length < 1 + self.link_address_length:
                raise IEC60870FrameError(
                    f"Variable frame length too small: {length}", length=length
                )
            size = length + 6
            self._require(data, size)
            body = bytes(data[4:4 + length])
            self._check_trailer(data, body, 4 + length)
            frame = LinkFrame(
                LinkFrameKind.VARIABLE, ControlField.from_byte(body[0]), self._decode_address(body)
            )
            user_data = body[1 + self.link_address_length:]
            if user_data:
                try:
                    frame.asdu = ASdu.decode(ByteReader(user_data), self.field_widths)
                except IEC60870UnsupportedTypeError as e:
                    e.frame = frame
                    raise
            return frame, size

        raise IEC60870FrameError(f"Invalid start byte: 0x{start:02X}")

    @staticmethod
    def _require(data: bytes, size: int) -> None:
        if len(data) < size:
            raise IEC60870FrameError(
                f"Incomplete frame: need {size}, have {len(data)}", length=len(data)
            )

    @staticmethod
    def _check_trailer(data: bytes, body: bytes, offset: int) -> None:
        expected = calculate_checksum(body)
        if data[offset] != expected:
            raise IEC60870ChecksumError(
                "Link frame checksum mismatch", expected=expected, actual=data[offset]
            )
        if data[offset + 1] != END_BYTE:
            raise IEC60870FrameError(f"Invalid end byte: 0x{data[offset + 1]:02X}")

    def _decode_address(self, body: bytes) -> int:
        return int.from_bytes(body[1:1 + self.link_address_length], "little")

    def toggle_fcb(self) -> None:
        """Toggle the Frame Count Bit for the next confirmed transmission."""
        self._fcb = not self._fcb

    def reset_fcb(self) -> None:
        """Reset Frame Count Bit; the first frame after a link reset carries FCB = 1."""
        self._fcb = False

    @staticmethod
    def find_frame_start(data: bytes) -> int:
        """
        Find the first octet that can start an FT1.2 frame.

        Returns:
            Index of frame start, or -1 if not found
        """
        for i, value in enumerate(data):
            if value in (FIXED_START, VARIABLE_START, SINGLE_CHAR_ACK, SINGLE_CHAR_NACK):
                return i
        return -1
