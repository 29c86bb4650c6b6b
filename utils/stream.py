"""
Bounded byte reader used by the ASDU and information element decoders.

Decoders pull fixed-width fields from a ByteReader. Reading past the end
raises the configured error class (IEC60870ElementError by default) so a
truncated payload never yields a partially built object.
"""

from typing import Type, Union

from iec60870py.core.exceptions import IEC60870ElementError, IEC60870Error


class ByteReader:
    """Sequential little-endian reader over an immutable byte buffer."""

    def __init__(
        self,
        data: Union[bytes, bytearray, memoryview],
        error_class: Type[IEC60870Error] = IEC60870ElementError,
    ):
        self._data = bytes(data)
        self._pos = 0
        self._error_class = error_class

    @property
    def position(self) -> int:
        """Number of bytes consumed so far."""
        return self._pos

    @property
    def remaining(self) -> int:
        """Number of bytes not yet consumed."""
        return len(self._data) - self._pos

    def read(self, count: int) -> bytes:
        """
        Read exactly count bytes.

        Raises:
            IEC60870ElementError: (or the configured error class) if fewer bytes remain.
        """
        if count > self.remaining:
            message = f"Truncated data: need {count} bytes, {self.remaining} available"
            if issubclass(self._error_class, IEC60870ElementError):
                raise self._error_class(message, required=count, available=self.remaining)
            raise self._error_class(message)
        chunk = self._data[self._pos:self._pos + count]
        self._pos += count
        return chunk

    def read_byte(self) -> int:
        return self.read(1)[0]

    def read_uint(self, width: int) -> int:
        """Read an unsigned little-endian integer of width bytes."""
        return int.from_bytes(self.read(width), "little")
