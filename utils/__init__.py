"""
IEC 60870-5 utility modules.

This package provides:
- Checksum: calculate_checksum, verify_checksum (FT1.2 link frames).
- Stream: ByteReader (bounds-checked little endian reads for the codecs).
- Logging: setup_logging, get_logger, log_frame, log_apdu and the
  format_frame/describe_apdu formatters they use.
"""

from iec60870py.utils.checksum import calculate_checksum, verify_checksum
from iec60870py.utils.logging import (
    describe_apdu,
    format_frame,
    get_logger,
    log_apdu,
    log_frame,
    setup_logging,
)
from iec60870py.utils.stream import ByteReader

__all__ = [
    "ByteReader",
    "calculate_checksum",
    "describe_apdu",
    "format_frame",
    "get_logger",
    "log_apdu",
    "log_frame",
    "setup_logging",
    "verify_checksum",
]
