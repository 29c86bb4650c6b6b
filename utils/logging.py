"""IEC 60870-5 logging utilities."""

import logging
import sys
from typing import Optional, Union

LOGGER_NAME = "iec60870py"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"

# Marks handlers installed by setup_logging so a second call replaces only those
_HANDLER_TAG = "_iec60870py_handler"

_configured = False


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for the iec60870py package.

    Handlers added by an earlier call are replaced; handlers installed by the
    application are left alone.

    Args:
        level: Logging level name (DEBUG, INFO, ...) or number
        log_file: Optional file path to write logs to
        log_format: Optional custom log format string

    Returns:
        Configured package logger
    """
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_TAG, False)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, True)
        logger.addHandler(handler)

    _configured = True
    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """
    Get the package logger, or the child logger of one component.

    The first call configures console logging at INFO if setup_logging()
    has not been called yet.

    Args:
        component: Child name such as "link" (gives "iec60870py.link")
    """
    if not _configured:
        setup_logging()
    if component:
        return logging.getLogger(f"{LOGGER_NAME}.{component}")
    return logging.getLogger(LOGGER_NAME)


def format_frame(frame: bytes) -> str:
    """
    Hex dump of one frame with its header fields set apart.

    An APDU (0x68 followed by a length octet) is split into start and length,
    the four control octets and the ASDU. FT1.2 variable frames repeat the
    start octet after the two length octets and are split into header, user
    data and trailer. Anything else is dumped as is.
    """
    def hex_of(chunk: bytes) -> str:
        return " ".join(f"{b:02X}" for b in chunk)

    if len(frame) >= 4 and frame[0] == 0x68 and frame[3] == 0x68 and frame[1] == frame[2]:
        parts = [frame[:4], frame[4:-2], frame[-2:]]
    elif len(frame) >= 6 and frame[0] == 0x68:
        parts = [frame[:2], frame[2:6], frame[6:]]
    else:
        parts = [frame]
    return " | ".join(hex_of(part) for part in parts if part)


def log_frame(frame: bytes, direction: str = "TX", logger: Optional[logging.Logger] = None) -> None:
    """
    Log a raw APDU or link frame in hex format.

    Args:
        frame: Frame bytes to log
        direction: "TX" for transmitted, "RX" for received
        logger: Optional logger instance (uses default if not provided)
    """
    if logger is None:
        logger = get_logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"{direction}: [{len(frame)} bytes] {format_frame(frame)}")


def describe_apdu(apdu) -> str:
    """One line summary of an APdu: format, sequence numbers and ASDU header."""
    parts = [apdu.apci_type.name]
    if apdu.is_i_format:
        parts.append(f"ssn={apdu.send_seq}")
    if apdu.is_i_format or apdu.is_s_format:
        parts.append(f"rsn={apdu.receive_seq}")
    asdu = apdu.asdu
    if asdu is not None:
        cause = getattr(asdu.cause, "name", asdu.cause)
        type_name = getattr(asdu.type_id, "name", f"Type {asdu.type_id}")
        parts.append(f"type={type_name} cot={cause} ca={asdu.common_address}")
        parts.append(f"n={asdu.number_of_objects}")
    return " ".join(parts)


def log_apdu(apdu, direction: str = "TX", logger: Optional[logging.Logger] = None) -> None:
    """
    Log a decoded APDU summary.

    Args:
        apdu: APdu instance
        direction: "TX" for transmitted, "RX" for received
        logger: Optional logger instance
    """
    if logger is None:
        logger = get_logger()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"{direction} {describe_apdu(apdu)}")
