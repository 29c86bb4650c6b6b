"""
File transfer elements.

Carried by the file transfer types F_FR_NA_1..F_SC_NB_1:
    NOF  name of file, 2 octets
    NOS  name of section, 1 octet
    LOF  length of file or section, 3 octets
    FRQ  file ready qualifier: bits 0-6 value, bit 7 negative confirm
    SRQ  section ready qualifier: bits 0-6 value, bit 7 section not ready
    SCQ  select and call qualifier: bits 0-3 action, bits 4-7 error
    LSQ  last section or segment qualifier, 1 octet
    AFQ  acknowledge file or section qualifier: bits 0-3 action, bits 4-7 error
    CHS  checksum, 1 octet (sum of the section's octets modulo 256)
    SOF  status of file: bits 0-4 status, LFD, FOR, FA in bits 5-7

A segment of F_SG_NA_1 is a length octet (LOS) followed by that many data
octets, the only element whose size depends on its content.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag

from iec60870py.elements.base import InformationElement, check_range
from iec60870py.elements.qualifiers import OctetElement
from iec60870py.utils.stream import ByteReader


@dataclass
class NameOfFile(InformationElement):
    """Name of file (NOF)."""

    SIZE = 2

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range("Name of file", self.value, 0, 0xFFFF)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<H", buffer, offset, self.value)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "NameOfFile":
        return cls(reader.read_uint(cls.SIZE))


@dataclass
class NameOfSection(OctetElement):
    """Name of section (NOS)."""


@dataclass
class LengthOfFile(InformationElement):
    """Length of file or section (LOF) in octets."""

    SIZE = 3

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range("Length of file", self.value, 0, 0xFFFFFF)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<HB", buffer, offset, self.value & 0xFFFF, self.value >> 16)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "LengthOfFile":
        return cls(reader.read_uint(cls.SIZE))


@dataclass
class _ValueWithNegativeBit(InformationElement):
    """Seven bit value with a flag in bit 7."""

    SIZE = 1

    value: int = 0
    negative: bool = False

    def __post_init__(self) -> None:
        self.value = check_range(type(self).__name__, self.value, 0, 127)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.value | (0x80 if self.negative else 0x00)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader):
        value = reader.read_byte()
        return cls(value & 0x7F, bool(value & 0x80))


@dataclass
class FileReadyQualifier(_ValueWithNegativeBit):
    """File ready qualifier (FRQ); negative marks a negative confirm of select or call."""


@dataclass
class SectionReadyQualifier(_ValueWithNegativeBit):
    """Section ready qualifier (SRQ); negative marks a section that is not ready."""


class SelectAndCallAction(IntEnum):
    """Action part of the select and call qualifier."""

    DEFAULT = 0
    SELECT_FILE = 1
    REQUEST_FILE = 2
    DEACTIVATE_FILE = 3
    DELETE_FILE = 4
    SELECT_SECTION = 5
    REQUEST_SECTION = 6
    DEACTIVATE_SECTION = 7


class AcknowledgeAction(IntEnum):
    """Action part of the acknowledge file or section qualifier."""

    DEFAULT = 0
    POSITIVE_FILE = 1
    NEGATIVE_FILE = 2
    POSITIVE_SECTION = 3
    NEGATIVE_SECTION = 4


class FileError(IntEnum):
    """Error part of SCQ and AFQ."""

    NONE = 0
    NO_MEMORY = 1
    CHECKSUM_FAILED = 2
    UNEXPECTED_COMMUNICATION_SERVICE = 3
    UNEXPECTED_NAME_OF_FILE = 4
    UNEXPECTED_NAME_OF_SECTION = 5


@dataclass
class _ActionWithError(InformationElement):
    """Action in the low nibble, error in the high nibble."""

    SIZE = 1

    action: int = 0
    error: int = FileError.NONE

    def __post_init__(self) -> None:
        self.action = check_range("Action", self.action, 0, 15)
        self.error = check_range("Error", self.error, 0, 15)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.action | (self.error << 4)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader):
        value = reader.read_byte()
        return cls(value & 0x0F, value >> 4)


@dataclass
class SelectAndCallQualifier(_ActionWithError):
    """Select and call qualifier (SCQ), see SelectAndCallAction."""


@dataclass
class AcknowledgeFileQualifier(_ActionWithError):
    """Acknowledge file or section qualifier (AFQ), see AcknowledgeAction."""


class LastSectionAction(IntEnum):
    """Values of the last section or segment qualifier."""

    FILE_TRANSFER_WITHOUT_DEACTIVATION = 1
    FILE_TRANSFER_WITH_DEACTIVATION = 2
    SECTION_TRANSFER_WITHOUT_DEACTIVATION = 3
    SECTION_TRANSFER_WITH_DEACTIVATION = 4


@dataclass
class LastSectionQualifier(OctetElement):
    """Last section or segment qualifier (LSQ), see LastSectionAction."""


@dataclass
class FileChecksum(OctetElement):
    """Checksum (CHS) of a section or file."""

    @classmethod
    def of(cls, data: bytes) -> "FileChecksum":
        return cls(sum(data) & 0xFF)


class FileStatusFlag(IntFlag):
    """Flags of the status of file (SOF)."""

    NONE = 0x00
    LAST_FILE_OF_DIRECTORY = 0x20
    NAME_DEFINES_DIRECTORY = 0x40
    TRANSFER_ACTIVE = 0x80


@dataclass
class StatusOfFile(InformationElement):
    """Status of file (SOF) in a directory entry."""

    SIZE = 1

    status: int = 0
    flags: FileStatusFlag = FileStatusFlag.NONE

    def __post_init__(self) -> None:
        self.status = check_range("File status", self.status, 0, 31)
        self.flags = FileStatusFlag(int(self.flags) & 0xE0)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.status | int(self.flags)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "StatusOfFile":
        value = reader.read_byte()
        return cls(value & 0x1F, FileStatusFlag(value & 0xE0))


@dataclass
class FileSegment(InformationElement):
    """Length-prefixed data octets of one F_SG_NA_1 segment."""

    SIZE = 1

    data: bytes = b""

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        check_range("Segment length", len(self.data), 0, 255)

    def encoded_size(self) -> int:
        return self.SIZE + len(self.data)

    def encode(self, buffer: bytearray, offset: int) -> int:
        length = len(self.data)
        if offset + 1 + length > len(buffer):
            raise IndexError(f"File segment of {length} bytes exceeds buffer")
        buffer[offset] = length
        buffer[offset + 1:offset + 1 + length] = self.data
        return 1 + length

    @classmethod
    def decode(cls, reader: ByteReader) -> "FileSegment":
        length = reader.read_byte()
        return cls(reader.read(length))

    def __repr__(self) -> str:
        return f"FileSegment({len(self.data)} bytes)"
