"""
Qualifier and system information elements.

These are carried by system commands (interrogation, counter interrogation,
reset process, test command), by parameter loading and by the end of
initialization message.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum

from iec60870py.elements.base import InformationElement, check_range
from iec60870py.utils.stream import ByteReader


@dataclass
class OctetElement(InformationElement):
    """Element consisting of one unsigned octet."""

    SIZE = 1

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range(type(self).__name__, self.value, 0, 255)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.value
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader):
        return cls(reader.read_byte())


@dataclass
class QualifierOfInterrogation(OctetElement):
    """Qualifier of interrogation (QOI). 20 = station, 21-36 = group 1-16."""

    value: int = 20


@dataclass
class QualifierOfParameterActivation(OctetElement):
    """Qualifier of parameter activation (QPA)."""

    value: int = 3  # act/deact of persistent cyclic or periodic transmission


@dataclass
class QualifierOfResetProcessCommand(OctetElement):
    """Qualifier of reset process command (QRP). 1 = general reset, 2 = reset event buffer."""

    value: int = 1


class FreezeBehaviour(IntEnum):
    """FRZ field of the qualifier of counter interrogation."""

    READ = 0
    COUNTER_FREEZE_WITHOUT_RESET = 1
    COUNTER_FREEZE_WITH_RESET = 2
    COUNTER_RESET = 3


@dataclass
class QualifierOfCounterInterrogation(InformationElement):
    """
    Qualifier of counter interrogation (QCC).

    bits 0-5 RQT request (5 = general counter request, 1-4 = group 1-4)
    bits 6-7 FRZ freeze behaviour
    """

    SIZE = 1

    request: int = 5
    freeze: FreezeBehaviour = FreezeBehaviour.READ

    def __post_init__(self) -> None:
        self.request = check_range("Counter request", self.request, 0, 63)
        self.freeze = FreezeBehaviour(check_range("Freeze", self.freeze, 0, 3))

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.request | (int(self.freeze) << 6)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "QualifierOfCounterInterrogation":
        value = reader.read_byte()
        return cls(request=value & 0x3F, freeze=FreezeBehaviour((value >> 6) & 0x03))


@dataclass
class QualifierOfParameterOfMeasuredValues(InformationElement):
    """
    Qualifier of parameter of measured values (QPM).

    bits 0-5 KPA kind of parameter (1 = threshold, 2 = smoothing, 3 = low limit, 4 = high limit)
    bit 6    LPC local parameter change
    bit 7    POP parameter not in operation
    """

    SIZE = 1

    kind: int = 1
    change: bool = False
    not_in_operation: bool = False

    def __post_init__(self) -> None:
        self.kind = check_range("Parameter kind", self.kind, 0, 63)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = (
            self.kind | (0x40 if self.change else 0x00) | (0x80 if self.not_in_operation else 0x00)
        )
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "QualifierOfParameterOfMeasuredValues":
        value = reader.read_byte()
        return cls(
            kind=value & 0x3F,
            change=bool(value & 0x40),
            not_in_operation=bool(value & 0x80),
        )


@dataclass
class CauseOfInitialization(InformationElement):
    """
    Cause of initialization (COI) carried by M_EI_NA_1.

    bits 0-6 cause (0 = power on, 1 = manual reset, 2 = remote reset)
    bit 7    initialization after change of local parameters
    """

    SIZE = 1

    cause: int = 0
    after_parameter_change: bool = False

    def __post_init__(self) -> None:
        self.cause = check_range("Cause of initialization", self.cause, 0, 127)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.cause | (0x80 if self.after_parameter_change else 0x00)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "CauseOfInitialization":
        value = reader.read_byte()
        return cls(cause=value & 0x7F, after_parameter_change=bool(value & 0x80))


@dataclass
class FixedTestBitPattern(InformationElement):
    """Fixed test bit pattern (FBP) of C_TS_NA_1, always 0x55 0xAA on the wire."""

    SIZE = 2

    PATTERN = b"\x55\xaa"

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = self.PATTERN[0]
        buffer[offset + 1] = self.PATTERN[1]
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "FixedTestBitPattern":
        reader.read(cls.SIZE)
        return cls()


@dataclass
class TestSequenceCounter(InformationElement):
    """Test sequence counter (TSC) of C_TS_TA_1."""

    SIZE = 2
    __test__ = False  # not a pytest test class

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range("Test sequence counter", self.value, 0, 0xFFFF)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<H", buffer, offset, self.value)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "TestSequenceCounter":
        return cls(struct.unpack("<H", reader.read(cls.SIZE))[0])
