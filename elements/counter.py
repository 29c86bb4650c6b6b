"""
Binary counter reading (BCR).

Integrated totals such as energy meters or pulse counts are reported as a
32-bit signed counter followed by one status octet:
    bits 0-4  sequence number (0-31)
    bit 5     CY  carry (counter overflow since last reading)
    bit 6     CA  counter adjusted
    bit 7     IV  invalid
"""

import struct
from dataclasses import dataclass
from enum import IntFlag

from iec60870py.elements.base import InformationElement, check_range
from iec60870py.utils.stream import ByteReader


class CounterFlags(IntFlag):
    """Status flags of a binary counter reading."""

    NONE = 0x00
    CARRY = 0x20  # Counter overflowed in the integration period
    COUNTER_ADJUSTED = 0x40  # Counter was adjusted since last reading
    INVALID = 0x80  # Reading is invalid


@dataclass
class BinaryCounterReading(InformationElement):
    """
    Binary counter reading (BCR).

    Represents an integrated total with its sequence number and status flags.
    """

    SIZE = 5

    value: int = 0
    sequence_number: int = 0
    flags: CounterFlags = CounterFlags.NONE

    def __post_init__(self) -> None:
        self.value = check_range("Counter value", self.value, -(1 << 31), (1 << 31) - 1)
        self.sequence_number = check_range("Sequence number", self.sequence_number, 0, 31)
        self.flags = CounterFlags(int(self.flags) & 0xE0)

    @property
    def has_carry(self) -> bool:
        """Check if the counter overflowed."""
        return bool(self.flags & CounterFlags.CARRY)

    @property
    def is_counter_adjusted(self) -> bool:
        return bool(self.flags & CounterFlags.COUNTER_ADJUSTED)

    @property
    def is_invalid(self) -> bool:
        return bool(self.flags & CounterFlags.INVALID)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<iB", buffer, offset, self.value, self.sequence_number | int(self.flags))
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "BinaryCounterReading":
        value, status = struct.unpack("<iB", reader.read(cls.SIZE))
        return cls(
            value=value,
            sequence_number=status & 0x1F,
            flags=CounterFlags(status & 0xE0),
        )

    def __repr__(self) -> str:
        flag_names = [
            flag.name
            for flag in (CounterFlags.CARRY, CounterFlags.COUNTER_ADJUSTED, CounterFlags.INVALID)
            if self.flags & flag
        ]
        return (
            f"BinaryCounterReading(value={self.value}, seq={self.sequence_number}, "
            f"flags={'|'.join(flag_names) or 'NONE'})"
        )
