"""
Command elements (control direction).

SCO, DCO and RCO share one octet layout:
    bit 7     S/E  1 = select, 0 = execute
    bits 2-6  QU   qualifier of command (0 = no additional definition,
                   1 = short pulse, 2 = long pulse, 3 = persistent output)
    bits 0-1  state (SCO uses bit 0 only, bit 1 reserved)

QOS, the qualifier of set-point commands, keeps a 7-bit qualifier (QL) in
bits 0-6 and the same S/E bit.
"""

from dataclasses import dataclass
from enum import IntEnum

from iec60870py.elements.base import InformationElement, check_range
from iec60870py.utils.stream import ByteReader

SELECT_BIT = 0x80


class CommandQualifier(IntEnum):
    """Qualifier of command (QU) values defined by the standard."""

    NO_ADDITIONAL_DEFINITION = 0
    SHORT_PULSE = 1
    LONG_PULSE = 2
    PERSISTENT = 3


class DoubleCommandState(IntEnum):
    """Double command states (DCS)."""

    NOT_PERMITTED_A = 0
    OFF = 1
    ON = 2
    NOT_PERMITTED_B = 3


class RegulatingStepState(IntEnum):
    """Regulating step command states (RCS)."""

    NOT_PERMITTED_A = 0
    NEXT_STEP_LOWER = 1
    NEXT_STEP_HIGHER = 2
    NOT_PERMITTED_B = 3


def _command_octet(state: int, qualifier: int, select: bool) -> int:
    return (state & 0x03) | ((qualifier & 0x1F) << 2) | (SELECT_BIT if select else 0x00)


@dataclass
class SingleCommand(InformationElement):
    """Single command (SCO)."""

    SIZE = 1

    on: bool = False
    qualifier: int = CommandQualifier.NO_ADDITIONAL_DEFINITION
    select: bool = False

    def __post_init__(self) -> None:
        self.qualifier = check_range("Command qualifier", self.qualifier, 0, 31)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = _command_octet(0x01 if self.on else 0x00, self.qualifier, self.select)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "SingleCommand":
        value = reader.read_byte()
        return cls(
            on=bool(value & 0x01),
            qualifier=(value >> 2) & 0x1F,
            select=bool(value & SELECT_BIT),
        )


@dataclass
class DoubleCommand(InformationElement):
    """Double command (DCO)."""

    SIZE = 1

    state: DoubleCommandState = DoubleCommandState.OFF
    qualifier: int = CommandQualifier.NO_ADDITIONAL_DEFINITION
    select: bool = False

    def __post_init__(self) -> None:
        self.state = DoubleCommandState(check_range("Double command state", self.state, 0, 3))
        self.qualifier = check_range("Command qualifier", self.qualifier, 0, 31)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = _command_octet(self.state, self.qualifier, self.select)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "DoubleCommand":
        value = reader.read_byte()
        return cls(
            state=DoubleCommandState(value & 0x03),
            qualifier=(value >> 2) & 0x1F,
            select=bool(value & SELECT_BIT),
        )


@dataclass
class RegulatingStepCommand(InformationElement):
    """Regulating step command (RCO)."""

    SIZE = 1

    state: RegulatingStepState = RegulatingStepState.NEXT_STEP_HIGHER
    qualifier: int = CommandQualifier.NO_ADDITIONAL_DEFINITION
    select: bool = False

    def __post_init__(self) -> None:
        self.state = RegulatingStepState(check_range("Regulating step state", self.state, 0, 3))
        self.qualifier = check_range("Command qualifier", self.qualifier, 0, 31)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = _command_octet(self.state, self.qualifier, self.select)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "RegulatingStepCommand":
        value = reader.read_byte()
        return cls(
            state=RegulatingStepState(value & 0x03),
            qualifier=(value >> 2) & 0x1F,
            select=bool(value & SELECT_BIT),
        )


@dataclass
class QualifierOfSetPointCommand(InformationElement):
    """Qualifier of set-point command (QOS)."""

    SIZE = 1

    qualifier: int = 0
    select: bool = False

    def __post_init__(self) -> None:
        self.qualifier = check_range("Set-point qualifier", self.qualifier, 0, 127)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.qualifier | (SELECT_BIT if self.select else 0x00)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "QualifierOfSetPointCommand":
        value = reader.read_byte()
        return cls(qualifier=value & 0x7F, select=bool(value & SELECT_BIT))
