"""
Protection equipment elements.

Used by the event of protection equipment types M_EP_TA_1..M_EP_TF_1:
    SEP  single event: bits 0-1 event state, bit 3 EI, bits 4-7 BL SB NT IV
    QDP  quality descriptor for protection: bit 3 EI, bits 4-7 BL SB NT IV
    SPE  packed start events: GS, SL1-SL3, SIE, SRD in bits 0-5
    OCI  packed output circuit information: GC, CL1-CL3 in bits 0-3

The elapsed time, relay duration and relay operating time that follow them are
CP16Time2a values (Time16).
"""

from dataclasses import dataclass
from enum import IntEnum, IntFlag

from iec60870py.elements.base import InformationElement
from iec60870py.elements.quality import STATUS_QUALITY_MASK, QualityFlag, QualityMixin
from iec60870py.utils.stream import ByteReader

_PROTECTION_QUALITY_MASK = STATUS_QUALITY_MASK | QualityFlag.ELAPSED_TIME_INVALID


class _ProtectionQualityMixin(QualityMixin):
    @property
    def is_elapsed_time_invalid(self) -> bool:
        return bool(self.flags & QualityFlag.ELAPSED_TIME_INVALID)


class EventState(IntEnum):
    """Event state (ES) of a single protection event."""

    INDETERMINATE_OR_INTERMEDIATE = 0
    OFF = 1
    ON = 2
    INDETERMINATE = 3


@dataclass
class SingleProtectionEvent(_ProtectionQualityMixin, InformationElement):
    """Single event of protection equipment (SEP)."""

    SIZE = 1

    state: EventState = EventState.INDETERMINATE_OR_INTERMEDIATE
    flags: QualityFlag = QualityFlag.NONE

    def __post_init__(self) -> None:
        self.state = EventState(int(self.state) & 0x03)
        self.flags = QualityFlag(int(self.flags) & _PROTECTION_QUALITY_MASK)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.flags) | int(self.state)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "SingleProtectionEvent":
        value = reader.read_byte()
        return cls(state=EventState(value & 0x03), flags=QualityFlag(value & 0xF8))


@dataclass
class ProtectionQuality(_ProtectionQualityMixin, InformationElement):
    """Quality descriptor for events of protection equipment (QDP)."""

    SIZE = 1

    flags: QualityFlag = QualityFlag.NONE

    def __post_init__(self) -> None:
        self.flags = QualityFlag(int(self.flags) & _PROTECTION_QUALITY_MASK)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.flags)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "ProtectionQuality":
        return cls(QualityFlag(reader.read_byte() & 0xF8))


class StartEventFlag(IntFlag):
    """Start events of protection equipment (SPE)."""

    NONE = 0x00
    GENERAL_START = 0x01
    START_L1 = 0x02
    START_L2 = 0x04
    START_L3 = 0x08
    START_EARTH_CURRENT = 0x10
    REVERSE_DIRECTION = 0x20


@dataclass
class ProtectionStartEvent(InformationElement):
    """Packed start events of protection equipment (SPE)."""

    SIZE = 1

    events: StartEventFlag = StartEventFlag.NONE

    def __post_init__(self) -> None:
        self.events = StartEventFlag(int(self.events) & 0x3F)

    @property
    def is_general_start(self) -> bool:
        return bool(self.events & StartEventFlag.GENERAL_START)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.events)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "ProtectionStartEvent":
        return cls(StartEventFlag(reader.read_byte() & 0x3F))


class OutputCircuitFlag(IntFlag):
    """Output circuit information of protection equipment (OCI)."""

    NONE = 0x00
    GENERAL_COMMAND = 0x01
    COMMAND_L1 = 0x02
    COMMAND_L2 = 0x04
    COMMAND_L3 = 0x08


@dataclass
class OutputCircuitInformation(InformationElement):
    """Packed output circuit information of protection equipment (OCI)."""

    SIZE = 1

    commands: OutputCircuitFlag = OutputCircuitFlag.NONE

    def __post_init__(self) -> None:
        self.commands = OutputCircuitFlag(int(self.commands) & 0x0F)

    @property
    def is_general_command(self) -> bool:
        return bool(self.commands & OutputCircuitFlag.GENERAL_COMMAND)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = int(self.commands)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "OutputCircuitInformation":
        return cls(OutputCircuitFlag(reader.read_byte() & 0x0F))
