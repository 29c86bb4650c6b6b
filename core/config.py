"""IEC 60870-5-101/104 configuration."""

from dataclasses import dataclass
from enum import IntEnum


class CauseOfTransmission(IntEnum):
    """Cause of transmission codes (6-bit field of the COT octet)."""

    PERIODIC = 1
    BACKGROUND_SCAN = 2
    SPONTANEOUS = 3
    INITIALIZED = 4
    REQUEST = 5
    ACTIVATION = 6
    ACTIVATION_CON = 7
    DEACTIVATION = 8
    DEACTIVATION_CON = 9
    ACTIVATION_TERMINATION = 10
    RETURN_INFO_REMOTE = 11
    RETURN_INFO_LOCAL = 12
    FILE_TRANSFER = 13

    # Responses to station and group interrogation
    INTERROGATED_BY_STATION = 20
    INTERROGATED_BY_GROUP_1 = 21
    INTERROGATED_BY_GROUP_2 = 22
    INTERROGATED_BY_GROUP_3 = 23
    INTERROGATED_BY_GROUP_4 = 24
    INTERROGATED_BY_GROUP_5 = 25
    INTERROGATED_BY_GROUP_6 = 26
    INTERROGATED_BY_GROUP_7 = 27
    INTERROGATED_BY_GROUP_8 = 28
    INTERROGATED_BY_GROUP_9 = 29
    INTERROGATED_BY_GROUP_10 = 30
    INTERROGATED_BY_GROUP_11 = 31
    INTERROGATED_BY_GROUP_12 = 32
    INTERROGATED_BY_GROUP_13 = 33
    INTERROGATED_BY_GROUP_14 = 34
    INTERROGATED_BY_GROUP_15 = 35
    INTERROGATED_BY_GROUP_16 = 36

    # Responses to counter interrogation
    REQUESTED_BY_GENERAL_COUNTER = 37
    REQUESTED_BY_GROUP_1_COUNTER = 38
    REQUESTED_BY_GROUP_2_COUNTER = 39
    REQUESTED_BY_GROUP_3_COUNTER = 40
    REQUESTED_BY_GROUP_4_COUNTER = 41

    # Negative confirmations from the controlled station
    UNKNOWN_TYPE_ID = 44
    UNKNOWN_CAUSE_OF_TRANSMISSION = 45
    UNKNOWN_COMMON_ADDRESS_OF_ASDU = 46
    UNKNOWN_INFORMATION_OBJECT_ADDRESS = 47


class QualifierOfInterrogation(IntEnum):
    """Qualifier of interrogation (QOI) values."""

    STATION = 20
    GROUP_1 = 21
    GROUP_2 = 22
    GROUP_3 = 23
    GROUP_4 = 24
    GROUP_5 = 25
    GROUP_6 = 26
    GROUP_7 = 27
    GROUP_8 = 28
    GROUP_9 = 29
    GROUP_10 = 30
    GROUP_11 = 31
    GROUP_12 = 32
    GROUP_13 = 33
    GROUP_14 = 34
    GROUP_15 = 35
    GROUP_16 = 36


@dataclass(frozen=True)
class FieldWidths:
    """Byte widths of the variable-size ASDU header fields.

    Both stations must agree on these out-of-band; they are fixed for the
    lifetime of a connection.
    """

    cot_field_length: int = 2  # 1 or 2 (second octet is the originator address)
    common_address_field_length: int = 2  # 1 or 2
    ioa_field_length: int = 3  # 1, 2 or 3

    def __post_init__(self) -> None:
        if self.cot_field_length not in (1, 2):
            raise ValueError(f"cot_field_length must be 1 or 2, got {self.cot_field_length}")
        if self.common_address_field_length not in (1, 2):
            raise ValueError(
                "common_address_field_length must be 1 or 2, "
                f"got {self.common_address_field_length}"
            )
        if self.ioa_field_length not in (1, 2, 3):
            raise ValueError(f"ioa_field_length must be 1, 2 or 3, got {self.ioa_field_length}")


@dataclass
class IEC60870Config:
    """Configuration for an IEC 60870-5-104 connection (and -101 link framing)."""

    # Network settings
    host: str = "127.0.0.1"
    port: int = 2404
    connection_timeout: float = 10.0

    # Connect retry settings
    max_retries: int = 3
    retry_delay: float = 1.0

    # Server settings
    max_connections: int = 100

    # ASDU field widths
    cot_field_length: int = 2
    common_address_field_length: int = 2
    ioa_field_length: int = 3
    originator_address: int = 0

    # Link layer settings (FT1.2, -101 only)
    link_address: int = 1
    link_address_length: int = 2
    link_response_timeout: float = 1.0  # Wait for the secondary station to answer a request
    link_max_retries: int = 3  # Repetitions of an unanswered request
    poll_interval: float = 1.0  # Class 1/2 polling period, 0 disables periodic polling

    # Protocol timers (in seconds)
    t1: float = 15.0  # Timeout for acknowledgment of sent I-frames and test frames
    t2: float = 10.0  # Acknowledgment delay for received I-frames (t2 < t1)
    t3: float = 20.0  # Idle time before a TESTFR_ACT is sent

    # STARTDT/STOPDT handshake
    handshake_timeout: float = 30.0
    handshake_poll_interval: float = 5.0
    max_handshake_retries: int = 3

    # Flow control
    k: int = 12  # Max outstanding unacknowledged I-frames
    w: int = 8  # Acknowledge at the latest after receiving w I-frames

    # Logging
    log_level: str = "INFO"
    log_raw_frames: bool = False

    @property
    def field_widths(self) -> FieldWidths:
        """ASDU field widths as used by the codecs."""
        return FieldWidths(
            cot_field_length=self.cot_field_length,
            common_address_field_length=self.common_address_field_length,
            ioa_field_length=self.ioa_field_length,
        )

    def validate(self) -> None:
        """Validate and normalize configuration values.

        Raises:
            ValueError: If any value is out of range or invalid.
            TypeError: If host is not a string.
        """
        if self.host is None or not isinstance(self.host, str):
            raise TypeError(
                f"Host must be a non-empty string, got {type(self.host).__name__ if self.host is not None else 'NoneType'}"
            )
        self.host = self.host.strip()
        if not self.host:
            raise ValueError("Host must be a non-empty string")

        # Port 0 lets a server bind an ephemeral port
        self.port = self._coerce_int("port", self.port, 0, 65535)

        for name, (low, high) in (
            ("cot_field_length", (1, 2)),
            ("common_address_field_length", (1, 2)),
            ("ioa_field_length", (1, 3)),
            ("originator_address", (0, 255)),
            ("link_address_length", (0, 2)),
            ("k", (1, 32767)),
            ("w", (1, 32767)),
            ("max_connections", (1, 65535)),
        ):
            setattr(self, name, self._coerce_int(name, getattr(self, name), low, high))

        max_link_address = (1 << (8 * self.link_address_length)) - 1
        self.link_address = self._coerce_int("link_address", self.link_address, 0, max_link_address)

        for name in (
            "t1",
            "t2",
            "t3",
            "connection_timeout",
            "handshake_timeout",
            "handshake_poll_interval",
            "link_response_timeout",
        ):
            try:
                val = float(getattr(self, name))
            except (TypeError, ValueError) as e:
                raise ValueError(f"{name} must be a number, got {getattr(self, name)!r}") from e
            if val <= 0:
                raise ValueError(f"{name} must be positive, got {val}")
            setattr(self, name, val)

        if self.t2 >= self.t1:
            raise ValueError(f"t2 must be less than t1, got t2={self.t2} t1={self.t1}")

        for name in ("max_retries", "max_handshake_retries", "link_max_retries"):
            setattr(self, name, self._coerce_int(name, getattr(self, name), 0, None))

        for name in ("retry_delay", "poll_interval"):
            try:
                val = float(getattr(self, name))
            except (TypeError, ValueError) as e:
                raise ValueError(f"{name} must be a number, got {getattr(self, name)!r}") from e
            if val < 0:
                raise ValueError(f"{name} must be >= 0, got {val}")
            setattr(self, name, val)

        if not isinstance(self.log_level, str):
            raise ValueError(f"log_level must be a string, got {type(self.log_level).__name__}")
        normalized = self.log_level.strip().upper()
        if normalized not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(
                f"log_level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got {self.log_level!r}"
            )
        self.log_level = normalized

    @staticmethod
    def _coerce_int(name: str, value, low: int, high) -> int:
        try:
            result = int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{name} must be an integer, got {value!r}") from e
        if result < low or (high is not None and result > high):
            bound = f"{low}-{high}" if high is not None else f">= {low}"
            raise ValueError(f"{name} must be {bound}, got {result}")
        return result
