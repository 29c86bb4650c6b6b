"""
Quality descriptors and status points with quality.

Quality bits share one octet layout:
    bit 7 IV  invalid
    bit 6 NT  not topical
    bit 5 SB  substituted
    bit 4 BL  blocked
    bit 3 EI  elapsed time invalid (protection events only)
    bit 0 OV  overflow (QDS only)

SIQ carries the single point state in bit 0 and DIQ carries the double point
state in bits 0-1 in place of the overflow bit.
"""

from dataclasses import dataclass
from enum import IntEnum, IntFlag

from iec60870py.elements.base import InformationElement
from iec60870py.utils.stream import ByteReader


class QualityFlag(IntFlag):
    """Quality descriptor bits."""

    NONE = 0x00
    OVERFLOW = 0x01
    ELAPSED_TIME_INVALID = 0x08  # QDP and SEP only
    BLOCKED = 0x10
    SUBSTITUTED = 0x20
    NOT_TOPICAL = 0x40
    INVALID = 0x80


# Bits shared by QDS, SIQ and DIQ
STATUS_QUALITY_MASK = (
    QualityFlag.BLOCKED | QualityFlag.SUBSTITUTED | QualityFlag.NOT_TOPICAL | QualityFlag.INVALID
)


class QualityMixin:
    """Boolean accessors over a ``flags`` attribute."""

    flags: QualityFlag

    @property
    def is_invalid(self) -> bool:
        return bool(self.flags & QualityFlag.INVALID)

    @property
    def is_not_topical(self) -> bool:
        return bool(self.flags & QualityFlag.NOT_TOPICAL)

    @property
    def is_substituted(self) -> bool:
        return bool(self.flags & QualityFlag.SUBSTITUTED)

    @property
    def is_blocked(self) -> bool:
        return bool(self.flags & QualityFlag.BLOCKED)


@dataclass
class Quality(QualityMixin, InformationElement):
    """Quality descriptor (QDS) attached to measured values."""

    SIZE = 1

    flags: QualityFlag = QualityFlag.NONE

    def __post_init__(self) -> None:
        self.flags = QualityFlag(int(self.flags) & (STATUS_QUALITY_MASK | QualityFlag.OVERFLOW))

    @classmethod
    def of(
        cls,
        overflow: bool = False,
        blocked: bool = False,
        substituted: bool = False,
        not_topical: bool = False,
        invalid: bool = False,
    ) -> "Quality":
        """Build a descriptor from the five individual flags."""
        flags = QualityFlag.NONE
        if overflow:
            flags |= QualityFlag.OVERFLOW
        if blocked:
            flags |= QualityFlag.BLOCKED
        if substituted:
            flags |= QualityFlag.SUBSTITUTED
        if not_topical:
            flags |= QualityFlag.NOT_TOPICAL
        if invalid:
            flags |= QualityFlag.INVALID
        return cls(flags)

    @property
    def is_overflow(self) -> bool:
        return bool(self.flags & QualityFlag.OVERFLOW)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.flags)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "Quality":
        return cls(QualityFlag(reader.read_byte() & 0xF1))


@dataclass
class SinglePointWithQuality(QualityMixin, InformationElement):
    """Single point information with quality descriptor (SIQ)."""

    SIZE = 1

    on: bool = False
    flags: QualityFlag = QualityFlag.NONE

    def __post_init__(self) -> None:
        self.flags = QualityFlag(int(self.flags) & STATUS_QUALITY_MASK)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.flags) | (0x01 if self.on else 0x00)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "SinglePointWithQuality":
        value = reader.read_byte()
        return cls(on=bool(value & 0x01), flags=QualityFlag(value & 0xF0))


class DoublePointState(IntEnum):
    """Double point information values (DPI)."""

    INDETERMINATE_OR_INTERMEDIATE = 0
    OFF = 1
    ON = 2
    INDETERMINATE = 3


@dataclass
class DoublePointWithQuality(QualityMixin, InformationElement):
    """Double point information with quality descriptor (DIQ)."""

    SIZE = 1

    state: DoublePointState = DoublePointState.INDETERMINATE_OR_INTERMEDIATE
    flags: QualityFlag = QualityFlag.NONE

    def __post_init__(self) -> None:
        self.state = DoublePointState(int(self.state) & 0x03)
        self.flags = QualityFlag(int(self.flags) & STATUS_QUALITY_MASK)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.flags) | int(self.state)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "DoublePointWithQuality":
        value = reader.read_byte()
        return cls(state=DoublePointState(value & 0x03), flags=QualityFlag(value & 0xF0))
