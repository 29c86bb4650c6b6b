"""
Common contract of all information elements.

Every element has an encoded SIZE and provides encode(buffer, offset),
which writes into a caller-provided bytearray and returns the number of bytes
written, and decode(reader), which consumes exactly SIZE bytes from a
ByteReader. The file segment is the one variable-length element: its SIZE is
the length octet alone and encoded_size() adds the payload.
"""

from typing import ClassVar, Union

from iec60870py.utils.stream import ByteReader


class InformationElement:
    """Base class for fixed-size information elements."""

    SIZE: ClassVar[int] = 0

    def encode(self, buffer: bytearray, offset: int) -> int:
        """
        Encode this element into buffer at offset.

        Returns:
            Number of bytes written (always encoded_size())
        """
        raise NotImplementedError

    @classmethod
    def decode(cls, reader: ByteReader) -> "InformationElement":
        raise NotImplementedError

    def encoded_size(self) -> int:
        """Bytes this element occupies on the wire."""
        return self.SIZE

    def to_bytes(self) -> bytes:
        buffer = bytearray(self.encoded_size())
        self.encode(buffer, 0)
        return bytes(buffer)

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray]) -> "InformationElement":
        """
        Decode an element from the start of data.

        Raises:
            IEC60870ElementError: If data is shorter than SIZE.
        """
        return cls.decode(ByteReader(data))


def check_range(name: str, value: int, low: int, high: int) -> int:
    """Coerce value to int and check low <= value <= high.

    Raises:
        ValueError: If value is out of range or not an integer.
    """
    try:
        result = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e
    if not low <= result <= high:
        raise ValueError(f"{name} must be {low}-{high}, got {result}")
    return result
