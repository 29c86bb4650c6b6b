"""Tests for CP56Time2a, CP24Time2a and CP16Time2a time elements."""

from datetime import datetime, timezone

import pytest
from zoneinfo import ZoneInfo

from iec60870py.core.exceptions import IEC60870ElementError
from iec60870py.elements.time import Time16, Time24, Time56

BERLIN = ZoneInfo("Europe/Berlin")


class TestTime56Encode:
    """Tests for building CP56Time2a from instants."""

    @pytest.mark.parametrize(
        "timestamp,invalid,summer_time,expected",
        [
            (1383060654596, True, False, "44D59E105D0A0D"),
            (1530883043000, True, True, "D859918FA60712"),
            (1540688399999, False, True, "5FEA3B82FC0A12"),
            (1540688400000, False, False, "00000002FC0A12"),
        ],
    )
    def test_encode_central_european_time(self, timestamp, invalid, summer_time, expected):
        """Test encoding of instants around the CET/CEST transitions."""
        time_tag = Time56.from_timestamp(timestamp, tz=BERLIN, invalid=invalid)
        assert time_tag.to_bytes() == bytes.fromhex(expected)
        assert time_tag.summer_time is summer_time
        assert time_tag.invalid is invalid

    @pytest.mark.parametrize(
        "timestamp",
        [1383060654596, 1530883043000, 1540688399999, 1540688400000],
    )
    def test_timestamp_survives_encoding(self, timestamp):
        """Test that decoding the encoded bytes yields the same instant."""
        data = Time56.from_timestamp(timestamp, tz=BERLIN).to_bytes()
        assert Time56.from_bytes(data).get_timestamp(BERLIN) == timestamp

    def test_day_of_week_monday_is_one(self):
        """Test that Monday is encoded as day of week 1."""
        time_tag = Time56.from_datetime(datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert time_tag.day_of_week == 1

    def test_naive_datetime_rejected(self):
        """Test that a naive datetime raises ValueError."""
        with pytest.raises(ValueError, match="timezone-aware"):
            Time56.from_datetime(datetime(2024, 1, 1))

    def test_defaults_to_utc(self):
        """Test that the wall clock is UTC without a timezone."""
        time_tag = Time56.from_timestamp(0)
        assert (time_tag.year, time_tag.month, time_tag.day_of_month) == (70, 1, 1)
        assert time_tag.hour == 0
        assert time_tag.summer_time is False

    @pytest.mark.parametrize(
        "timestamp,expected,hour,summer_time",
        [
            (1553993999999, "5FEA3B01FF0313", 1, False),
            (1553994000000, "00000083FF0313", 3, True),
        ],
    )
    def test_encode_across_spring_forward(self, timestamp, expected, hour, summer_time):
        """Test that the last CET and the first CEST millisecond skip the missing hour."""
        time_tag = Time56.from_timestamp(timestamp, tz=BERLIN)
        assert time_tag.to_bytes() == bytes.fromhex(expected)
        assert time_tag.hour == hour
        assert time_tag.summer_time is summer_time
        assert Time56.from_bytes(time_tag.to_bytes()).get_timestamp(BERLIN) == timestamp

    def test_spring_forward_instants_are_one_millisecond_apart(self):
        """Test that wall clocks one hour apart resolve to consecutive instants."""
        before = Time56.from_bytes(bytes.fromhex("5FEA3B01FF0313")).get_timestamp(BERLIN)
        after = Time56.from_bytes(bytes.fromhex("00000083FF0313")).get_timestamp(BERLIN)
        assert after - before == 1


class TestTime56Decode:
    """Tests for resolving CP56Time2a to instants."""

    @pytest.mark.parametrize(
        "data,expected",
        [
            ("30750081FC0A12", 1540681230000),
            ("30750082FC0A12", 1540684830000),
            ("30750002FC0A12", 1540688430000),
            ("30750001FF0313", 1553990430000),
            ("30750083FF0313", 1553994030000),
        ],
    )
    def test_summer_time_bit_selects_offset(self, data, expected):
        """Test that the SU bit disambiguates local times at DST transitions."""
        time_tag = Time56.from_bytes(bytes.fromhex(data))
        assert time_tag.get_timestamp(BERLIN) == expected

    def test_decode_fields(self):
        """Test individual field extraction."""
        time_tag = Time56.from_bytes(bytes.fromhex("44D59E105D0A0D"))
        assert time_tag.milliseconds == 54596
        assert time_tag.minute == 30
        assert time_tag.hour == 16
        assert time_tag.day_of_month == 29
        assert time_tag.day_of_week == 2
        assert time_tag.month == 10
        assert time_tag.year == 13
        assert time_tag.invalid is True
        assert time_tag.summer_time is False

    def test_summer_time_bit_in_zone_without_dst(self):
        """Test that SU adds one hour to the standard offset when the zone has no DST."""
        time_tag = Time56(hour=12, day_of_month=1, month=7, year=20, summer_time=True)
        dt = time_tag.to_datetime(timezone.utc)
        assert dt.utcoffset().total_seconds() == 3600
        assert dt.astimezone(timezone.utc).hour == 11

    def test_invalid_date_raises(self):
        """Test that impossible dates raise an element error."""
        time_tag = Time56(day_of_month=31, month=2, year=21)
        with pytest.raises(IEC60870ElementError):
            time_tag.to_datetime()

    def test_truncated_input(self):
        """Test that fewer than 7 bytes raise an element error."""
        with pytest.raises(IEC60870ElementError):
            Time56.from_bytes(bytes(6))

    def test_str(self):
        """Test readable representation."""
        time_tag = Time56.from_bytes(bytes.fromhex("D859918FA60712"))
        assert str(time_tag) == "2018-07-06 15:17:23.000 SU IV"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("milliseconds", 60000),
            ("milliseconds", -1),
            ("minute", 60),
            ("minute", 75),
            ("hour", 24),
            ("day_of_month", 0),
            ("day_of_month", 32),
            ("day_of_week", 8),
            ("month", 0),
            ("month", 13),
            ("year", 100),
        ],
    )
    def test_range(self, field, value):
        """Test that fields outside their calendar range are rejected."""
        with pytest.raises(ValueError):
            Time56(**{field: value})

    def test_decode_clamps(self):
        """Test that out of range octets are clamped on decode."""
        time_tag = Time56.from_bytes(bytes.fromhex("FFFF3F1F00007F"))
        assert time_tag.milliseconds == 59999
        assert time_tag.minute == 59
        assert time_tag.hour == 23
        assert time_tag.day_of_month == 1
        assert time_tag.month == 1
        assert time_tag.year == 99

    def test_zero_time_with_invalid_bit(self):
        """Test that an all-zero time tag flagged invalid still decodes."""
        time_tag = Time56.from_bytes(bytes.fromhex("00008000000000"))
        assert time_tag.invalid is True
        assert (time_tag.day_of_month, time_tag.month) == (1, 1)


class TestTime24:
    """Tests for CP24Time2a."""

    def test_encode(self):
        """Test milliseconds and minute with IV bit."""
        time_tag = Time24(milliseconds=54596, minute=30, invalid=True)
        assert time_tag.to_bytes() == bytes([0x44, 0xD5, 0x9E])

    def test_from_timestamp(self):
        """Test that only the minute of the hour is kept."""
        time_tag = Time24.from_timestamp(1383060654596)
        assert time_tag.milliseconds == 54596
        assert time_tag.minute == 30

    def test_range(self):
        """Test field bounds."""
        with pytest.raises(ValueError):
            Time24(milliseconds=60000)
        with pytest.raises(ValueError):
            Time24(minute=60)


class TestTime16:
    """Tests for CP16Time2a."""

    def test_encode(self):
        """Test millisecond encoding."""
        assert Time16(1000).to_bytes() == bytes([0xE8, 0x03])

    def test_decode_clamps(self):
        """Test that out of range values are clamped on decode."""
        assert Time16.from_bytes(bytes([0xFF, 0xFF])).milliseconds == 59999
