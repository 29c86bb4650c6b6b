"""
FT1.2 frame checksum.

IEC 60870-5-101 link frames use the FT1.2 format whose checksum is the
arithmetic sum, modulo 256, of all octets between the start/length header
and the checksum itself (control field, link address and user data).
"""

from typing import Union


def calculate_checksum(data: Union[bytes, bytearray]) -> int:
    """
    Calculate the FT1.2 checksum for the given octets.

    Args:
        data: Control field, link address and user data octets

    Returns:
        8-bit checksum

    Raises:
        ValueError: If data is None.
        TypeError: If data is not bytes or bytearray.
    """
    if data is None:
        raise ValueError("Checksum input data cannot be None")
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"Checksum input must be bytes or bytearray, got {type(data).__name__}")
    return sum(data) & 0xFF


def verify_checksum(data: Union[bytes, bytearray], checksum: int) -> bool:
    """Return True if checksum matches the octets in data."""
    return calculate_checksum(data) == (checksum & 0xFF)
