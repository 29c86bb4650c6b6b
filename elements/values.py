"""
Measured value and bitstring elements.

Measured values are transmitted in one of three representations:
- Normalized value (NVA): 16-bit signed fixed point, value / 32768 in [-1.0, 1.0)
- Scaled value (SVA): 16-bit signed integer
- Short floating point: IEEE 754 single precision

All multi-octet fields are little endian.
"""

import struct
from dataclasses import dataclass

from iec60870py.elements.base import InformationElement, check_range
from iec60870py.utils.stream import ByteReader


@dataclass
class ScaledValue(InformationElement):
    """Scaled value (SVA), -32768..32767."""

    SIZE = 2

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range("Scaled value", self.value, -32768, 32767)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<h", buffer, offset, self.value)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "ScaledValue":
        return cls(struct.unpack("<h", reader.read(cls.SIZE))[0])


@dataclass
class NormalizedValue(InformationElement):
    """
    Normalized value (NVA).

    Stores the raw 16-bit integer; ``normalized`` exposes it scaled by 1/32768.
    """

    SIZE = 2

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range("Normalized value", self.value, -32768, 32767)

    @classmethod
    def from_normalized(cls, normalized: float) -> "NormalizedValue":
        """
        Build from a float in [-1.0, 1.0).

        Raises:
            ValueError: If normalized is outside [-1.0, 1.0).
        """
        if not -1.0 <= normalized < 1.0:
            raise ValueError(f"Normalized value must be in [-1.0, 1.0), got {normalized}")
        return cls(min(int(round(normalized * 32768)), 32767))

    @property
    def normalized(self) -> float:
        return self.value / 32768.0

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<h", buffer, offset, self.value)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "NormalizedValue":
        return cls(struct.unpack("<h", reader.read(cls.SIZE))[0])


@dataclass
class ShortFloat(InformationElement):
    """Short floating point number (IEEE 754 single precision)."""

    SIZE = 4

    value: float = 0.0

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<f", buffer, offset, self.value)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "ShortFloat":
        return cls(struct.unpack("<f", reader.read(cls.SIZE))[0])


@dataclass
class BinaryStateInformation(InformationElement):
    """Bitstring of 32 bits (BSI)."""

    SIZE = 4

    value: int = 0

    def __post_init__(self) -> None:
        self.value = check_range("Bitstring", self.value, 0, 0xFFFFFFFF)

    def bit(self, position: int) -> bool:
        """Return bit at position (0 = least significant)."""
        if not 0 <= position < 32:
            raise ValueError(f"Bit position must be 0-31, got {position}")
        return bool((self.value >> position) & 0x01)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<I", buffer, offset, self.value)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "BinaryStateInformation":
        return cls(struct.unpack("<I", reader.read(cls.SIZE))[0])


@dataclass
class ValueWithTransientState(InformationElement):
    """
    Value with transient state indication (VTI), used for step positions.

    Bits 0-6 hold a 7-bit two's complement value (-64..63), bit 7 is set
    while the equipment is in transient state.
    """

    SIZE = 1

    value: int = 0
    transient: bool = False

    def __post_init__(self) -> None:
        self.value = check_range("Step position", self.value, -64, 63)

    def encode(self, buffer: bytearray, offset: int) -> int:
        buffer[offset] = (self.value & 0x7F) | (0x80 if self.transient else 0x00)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "ValueWithTransientState":
        raw = reader.read_byte()
        value = raw & 0x7F
        if value & 0x40:
            value -= 0x80
        return cls(value=value, transient=bool(raw & 0x80))
