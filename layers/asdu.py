"""
IEC 60870-5-101/104 Application Service Data Unit (ASDU).

ASDU Structure:
    [Type ID: 1 byte]
    [Variable Structure Qualifier: 1 byte]  bit 7 SQ, bits 0-6 number of objects
    [Cause of Transmission: 1-2 bytes]      bits 0-5 cause, bit 6 P/N, bit 7 T,
                                            optional originator address octet
    [Common Address: 1-2 bytes]             little endian
    [Information Objects...]

SQ = 0: each information object carries its own address followed by one
        element group.
SQ = 1: a single address is followed by number-of-objects element groups
        for consecutive addresses.

Field widths are connection configuration and must match the peer.
"""

import struct
from dataclasses import dataclass, field
from typing import List, Optional, Union

from iec60870py.core.config import CauseOfTransmission, FieldWidths
from iec60870py.core.exceptions import (
    IEC60870ElementError,
    IEC60870FrameError,
    IEC60870UnsupportedTypeError,
)
from iec60870py.elements.base import InformationElement
from iec60870py.elements.types import ASduType, get_element_layout, get_type_name
from iec60870py.utils.stream import ByteReader

# Largest ASDU an APDU can carry (253 - 4 control octets)
MAX_ASDU_LENGTH = 249
MAX_NUMBER_OF_OBJECTS = 127

SQ_BIT = 0x80
TEST_BIT = 0x80
NEGATIVE_BIT = 0x40


def _cause_from_code(code: int) -> Union[CauseOfTransmission, int]:
    try:
        return CauseOfTransmission(code)
    except ValueError:
        # Private range causes (48-63) are passed through as plain ints
        return code


def _write_uint(buffer: bytearray, offset: int, value: int, width: int, name: str) -> int:
    if not 0 <= value < (1 << (8 * width)):
        raise IEC60870FrameError(f"{name} {value} does not fit in {width} byte(s)")
    if offset + width > len(buffer):
        raise IndexError(f"{name} at offset {offset} exceeds buffer")
    buffer[offset:offset + width] = value.to_bytes(width, "little")
    return width


@dataclass
class InformationObject:
    """
    An information object: address plus element groups.

    ``elements`` holds one list of elements per group. Without SQ an object
    has exactly one group (none for C_RD_NA_1); with SQ the single object
    holds one group per consecutive address.
    """

    address: int
    elements: List[List[InformationElement]] = field(default_factory=list)

    def encode(self, buffer: bytearray, offset: int, widths: FieldWidths) -> int:
        pos = offset
        pos += _write_uint(
            buffer, pos, self.address, widths.ioa_field_length, "Information object address"
        )
        for group in self.elements:
            for element in group:
                pos += element.encode(buffer, pos)
        return pos - offset

    @classmethod
    def decode(
        cls,
        reader: ByteReader,
        widths: FieldWidths,
        layout: tuple,
        group_count: int,
    ) -> "InformationObject":
        address = reader.read_uint(widths.ioa_field_length)
        elements = [[element.decode(reader) for element in layout] for _ in range(group_count)]
        return cls(address=address, elements=elements)


@dataclass
class ASdu:
    """Represents an IEC 60870-5 Application Service Data Unit."""

    type_id: ASduType
    cause: Union[CauseOfTransmission, int]
    common_address: int
    objects: List[InformationObject] = field(default_factory=list)
    is_sequence: bool = False
    is_test: bool = False
    is_negative: bool = False
    originator_address: int = 0

    @property
    def number_of_objects(self) -> int:
        """Value of the VSQ number field."""
        if self.is_sequence:
            return len(self.objects[0].elements) if self.objects else 0
        return len(self.objects)

    def _validate(self) -> tuple:
        layout = get_element_layout(self.type_id)
        if layout is None:
            raise IEC60870UnsupportedTypeError(
                f"Cannot encode unsupported type {self.type_id}", type_id=int(self.type_id)
            )
        if not 0 <= int(self.cause) <= 0x3F:
            raise IEC60870FrameError(f"Cause of transmission must be 0-63, got {int(self.cause)}")
        if self.is_sequence and (len(self.objects) != 1 or not layout):
            raise IEC60870FrameError(
                "A sequence ASDU needs exactly one information object with elements"
            )
        if self.number_of_objects > MAX_NUMBER_OF_OBJECTS:
            raise IEC60870FrameError(
                f"Too many information objects: {self.number_of_objects} > {MAX_NUMBER_OF_OBJECTS}"
            )
        for obj in self.objects:
            if not self.is_sequence and len(obj.elements) != (1 if layout else 0):
                raise IEC60870FrameError(
                    f"Information object {obj.address} must carry exactly one element group"
                )
            for group in obj.elements:
                if tuple(type(element) for element in group) != layout:
                    raise IEC60870ElementError(
                        f"Elements of object {obj.address} do not match layout of "
                        f"{get_type_name(self.type_id)}"
                    )
        return layout

    def encode(self, buffer: bytearray, offset: int, widths: FieldWidths) -> int:
        """
        Encode ASDU into buffer at offset.

        Args:
            buffer: Destination buffer (must be large enough)
            offset: Start position in buffer
            widths: Connection field widths

        Returns:
            Number of bytes written

        Raises:
            IEC60870FrameError: If a header field is out of range or the buffer is too small
            IEC60870ElementError: If elements do not match the type's layout
        """
        self._validate()
        pos = offset
        try:
            buffer[pos] = int(self.type_id)
            buffer[pos + 1] = (SQ_BIT if self.is_sequence else 0x00) | self.number_of_objects
            buffer[pos + 2] = (
                int(self.cause)
                | (TEST_BIT if self.is_test else 0x00)
                | (NEGATIVE_BIT if self.is_negative else 0x00)
            )
            pos += 3
            if widths.cot_field_length == 2:
                pos += _write_uint(buffer, pos, self.originator_address, 1, "Originator address")
            pos += _write_uint(
                buffer,
                pos,
                self.common_address,
                widths.common_address_field_length,
                "Common address",
            )
            for obj in self.objects:
                pos += obj.encode(buffer, pos, widths)
        except (IndexError, struct.error) as e:
            raise IEC60870FrameError(f"ASDU does not fit in buffer of {len(buffer)} bytes") from e
        return pos - offset

    def to_bytes(self, widths: Optional[FieldWidths] = None) -> bytes:
        """Encode to a standalone byte string."""
        buffer = bytearray(255)
        length = self.encode(buffer, 0, widths or FieldWidths())
        return bytes(buffer[:length])

    @classmethod
    def decode(cls, reader: ByteReader, widths: FieldWidths) -> "ASdu":
        """
        Decode an ASDU consuming the whole reader.

        Raises:
            IEC60870UnsupportedTypeError: If the type id has no known layout
            IEC60870ElementError: If the payload is truncated
            IEC60870FrameError: If bytes remain after the last object
        """
        type_byte = reader.read_byte()
        vsq = reader.read_byte()
        cot = reader.read_byte()
        originator = reader.read_byte() if widths.cot_field_length == 2 else 0
        common_address = reader.read_uint(widths.common_address_field_length)

        layout = get_element_layout(type_byte)
        if layout is None:
            raise IEC60870UnsupportedTypeError(
                f"Unsupported ASDU type {type_byte}", type_id=type_byte
            )

        is_sequence = bool(vsq & SQ_BIT)
        count = vsq & 0x7F
        if is_sequence:
            objects = [InformationObject.decode(reader, widths, layout, count if layout else 0)]
        else:
            objects = [
                InformationObject.decode(reader, widths, layout, 1 if layout else 0)
                for _ in range(count)
            ]

        if reader.remaining:
            raise IEC60870FrameError(
                f"{reader.remaining} unexpected bytes after last information object "
                f"(check field widths)",
                length=reader.position + reader.remaining,
            )

        return cls(
            type_id=ASduType(type_byte),
            cause=_cause_from_code(cot & 0x3F),
            common_address=common_address,
            objects=objects,
            is_sequence=is_sequence,
            is_test=bool(cot & TEST_BIT),
            is_negative=bool(cot & NEGATIVE_BIT),
            originator_address=originator,
        )

    @classmethod
    def from_bytes(cls, data: bytes, widths: Optional[FieldWidths] = None) -> "ASdu":
        return cls.decode(ByteReader(data), widths or FieldWidths())

    def __repr__(self) -> str:
        cause = self.cause.name if isinstance(self.cause, CauseOfTransmission) else self.cause
        flags = ""
        if self.is_sequence:
            flags += " SQ"
        if self.is_test:
            flags += " TEST"
        if self.is_negative:
            flags += " NEG"
        return (
            f"ASdu({get_type_name(self.type_id)}, cot={cause}{flags}, ca={self.common_address}, "
            f"oa={self.originator_address}, objects={self.objects!r})"
        )
