"""
Binary time elements.

CP56Time2a (7 octets):
    octets 0-1  milliseconds of the minute (0-59999), little endian
    octet 2     bits 0-5 minute, bit 7 IV (invalid)
    octet 3     bits 0-4 hour, bit 7 SU (summer time)
    octet 4     bits 0-4 day of month, bits 5-7 day of week (1 = Monday, 0 = unused)
    octet 5     bits 0-3 month
    octet 6     bits 0-6 year of century

CP24Time2a keeps the first three octets and CP16Time2a only the milliseconds.

The wall-clock fields are local time in whatever timezone the two stations
agreed on. Converting to an absolute instant needs that timezone; the SU bit
decides which of two overlapping local times (DST fall-back) is meant.
"""

import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from iec60870py.core.exceptions import IEC60870ElementError
from iec60870py.elements.base import InformationElement, check_range
from iec60870py.utils.stream import ByteReader

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def _datetime_from_millis(timestamp: int, tz: tzinfo) -> datetime:
    return (EPOCH + timedelta(milliseconds=timestamp)).astimezone(tz)


def _millis_from_datetime(dt: datetime) -> int:
    return (dt - EPOCH) // _ONE_MS


@dataclass
class Time56(InformationElement):
    """
    Seven octet binary time (CP56Time2a).

    Build from an instant with from_timestamp()/from_datetime(); read the
    instant back with get_timestamp(tz)/to_datetime(tz).
    """

    SIZE = 7

    milliseconds: int = 0
    minute: int = 0
    hour: int = 0
    day_of_month: int = 1
    day_of_week: int = 0
    month: int = 1
    year: int = 0
    invalid: bool = False
    summer_time: bool = False

    def __post_init__(self) -> None:
        self.milliseconds = check_range("Milliseconds", self.milliseconds, 0, 59999)
        self.minute = check_range("Minute", self.minute, 0, 59)
        self.hour = check_range("Hour", self.hour, 0, 23)
        self.day_of_month = check_range("Day of month", self.day_of_month, 1, 31)
        self.day_of_week = check_range("Day of week", self.day_of_week, 0, 7)
        self.month = check_range("Month", self.month, 1, 12)
        self.year = check_range("Year", self.year, 0, 99)

    @classmethod
    def from_datetime(cls, dt: datetime, invalid: bool = False) -> "Time56":
        """
        Build from a timezone-aware datetime.

        The SU bit is set when the datetime's timezone reports DST in effect.

        Raises:
            ValueError: If dt is naive.
        """
        if dt.tzinfo is None or dt.utcoffset() is None:
            raise ValueError("Time56 requires a timezone-aware datetime")
        return cls(
            milliseconds=dt.second * 1000 + dt.microsecond // 1000,
            minute=dt.minute,
            hour=dt.hour,
            day_of_month=dt.day,
            day_of_week=dt.isoweekday(),
            month=dt.month,
            year=dt.year % 100,
            invalid=invalid,
            summer_time=bool(dt.dst()),
        )

    @classmethod
    def from_timestamp(
        cls,
        timestamp: int,
        tz: Optional[tzinfo] = None,
        invalid: bool = False,
    ) -> "Time56":
        """
        Build from milliseconds since the Unix epoch.

        Args:
            timestamp: Milliseconds since 1970-01-01T00:00:00Z
            tz: Timezone the wall-clock fields are expressed in (UTC if None)
            invalid: Value of the IV bit
        """
        return cls.from_datetime(_datetime_from_millis(timestamp, tz or timezone.utc), invalid)

    def to_datetime(self, tz: Optional[tzinfo] = None) -> datetime:
        """
        Resolve the wall-clock fields to an aware datetime in tz (UTC if None).

        Years are taken as 2000 + year of century.

        Raises:
            IEC60870ElementError: If the fields do not form a valid date.
        """
        tz = tz or timezone.utc
        try:
            naive = datetime(
                2000 + self.year,
                self.month,
                self.day_of_month,
                self.hour,
                self.minute,
                self.milliseconds // 1000,
                (self.milliseconds % 1000) * 1000,
            )
        except ValueError as e:
            raise IEC60870ElementError(f"Invalid CP56Time2a value {self!r}: {e}") from e

        # fold=1 picks the second occurrence of an ambiguous fall-back time
        for fold in (0, 1):
            candidate = naive.replace(tzinfo=tz, fold=fold)
            if bool(candidate.dst()) == self.summer_time:
                return candidate

        # tz disagrees with the SU bit at this wall time; apply the bit to tz's standard offset
        local = naive.replace(tzinfo=tz)
        standard_offset = local.utcoffset() - (local.dst() or timedelta(0))
        offset = standard_offset + (timedelta(hours=1) if self.summer_time else timedelta(0))
        return naive.replace(tzinfo=timezone(offset))

    def get_timestamp(self, tz: Optional[tzinfo] = None) -> int:
        """Milliseconds since the Unix epoch, interpreting the fields in tz."""
        return _millis_from_datetime(self.to_datetime(tz))

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into(
            "<HBBBBB",
            buffer,
            offset,
            self.milliseconds,
            self.minute | (0x80 if self.invalid else 0x00),
            self.hour | (0x80 if self.summer_time else 0x00),
            self.day_of_month | (self.day_of_week << 5),
            self.month,
            self.year,
        )
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "Time56":
        """Decode seven octets. Fields outside their calendar range are clamped into it."""
        ms, minute, hour, day, month, year = struct.unpack("<HBBBBB", reader.read(cls.SIZE))
        return cls(
            milliseconds=min(ms, 59999),
            minute=min(minute & 0x3F, 59),
            hour=min(hour & 0x1F, 23),
            day_of_month=max(day & 0x1F, 1),
            day_of_week=(day >> 5) & 0x07,
            month=min(max(month & 0x0F, 1), 12),
            year=min(year & 0x7F, 99),
            invalid=bool(minute & 0x80),
            summer_time=bool(hour & 0x80),
        )

    def __str__(self) -> str:
        return (
            f"{2000 + self.year:04d}-{self.month:02d}-{self.day_of_month:02d} "
            f"{self.hour:02d}:{self.minute:02d}:{self.milliseconds // 1000:02d}."
            f"{self.milliseconds % 1000:03d}"
            f"{' SU' if self.summer_time else ''}{' IV' if self.invalid else ''}"
        )


@dataclass
class Time24(InformationElement):
    """Three octet binary time (CP24Time2a): milliseconds and minute of the hour."""

    SIZE = 3

    milliseconds: int = 0
    minute: int = 0
    invalid: bool = False

    def __post_init__(self) -> None:
        self.milliseconds = check_range("Milliseconds", self.milliseconds, 0, 59999)
        self.minute = check_range("Minute", self.minute, 0, 59)

    @classmethod
    def from_timestamp(cls, timestamp: int, invalid: bool = False) -> "Time24":
        dt = _datetime_from_millis(timestamp, timezone.utc)
        return cls(dt.second * 1000 + dt.microsecond // 1000, dt.minute, invalid)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into(
            "<HB",
            buffer,
            offset,
            self.milliseconds,
            self.minute | (0x80 if self.invalid else 0x00),
        )
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "Time24":
        ms, minute = struct.unpack("<HB", reader.read(cls.SIZE))
        return cls(min(ms, 59999), min(minute & 0x3F, 59), bool(minute & 0x80))


@dataclass
class Time16(InformationElement):
    """Two octet binary time (CP16Time2a): C_CD_NA_1 delay and protection durations."""

    SIZE = 2

    milliseconds: int = 0

    def __post_init__(self) -> None:
        self.milliseconds = check_range("Milliseconds", self.milliseconds, 0, 59999)

    def encode(self, buffer: bytearray, offset: int) -> int:
        struct.pack_into("<H", buffer, offset, self.milliseconds)
        return self.SIZE

    @classmethod
    def decode(cls, reader: ByteReader) -> "Time16":
        return cls(min(struct.unpack("<H", reader.read(cls.SIZE))[0], 59999))
