"""Tests for IEC 60870-5-101 FT1.2 link framing."""

import pytest
from iec60870py.core.config import CauseOfTransmission, FieldWidths
from iec60870py.core.exceptions import (
    IEC60870ChecksumError,
    IEC60870FrameError,
    IEC60870UnsupportedTypeError,
)
from iec60870py.elements.quality import SinglePointWithQuality
from iec60870py.elements.types import ASduType
from iec60870py.layers.asdu import ASdu, InformationObject
from iec60870py.utils.stream import ByteReader
from iec60870py.layers.link import (
    END_BYTE,
    FIXED_START,
    VARIABLE_START,
    ControlField,
    LinkFrameKind,
    LinkLayer,
    PrimaryFunction,
    SecondaryFunction,
)


def _asdu() -> ASdu:
    return ASdu(
        type_id=ASduType.M_SP_NA_1,
        cause=CauseOfTransmission.SPONTANEOUS,
        common_address=1,
        objects=[InformationObject(1, [[SinglePointWithQuality(on=True)]])],
    )


class TestControlField:
    """Tests for ControlField."""

    def test_to_byte(self):
        """Test bit positions of the control field."""
        control = ControlField(
            prm=True, function=PrimaryFunction.USER_DATA_CONFIRMED, fcb_acd=True, fcv_dfc=True
        )
        assert control.to_byte() == 0x73

    def test_from_byte_primary(self):
        """Test decoding a primary control field."""
        control = ControlField.from_byte(0x49)
        assert control.prm is True
        assert control.function == PrimaryFunction.REQUEST_LINK_STATUS

    def test_from_byte_secondary(self):
        """Test decoding a secondary control field with ACD."""
        control = ControlField.from_byte(0x2B)
        assert control.prm is False
        assert control.fcb_acd is True
        assert control.function == SecondaryFunction.LINK_STATUS

    def test_reserved_function_kept(self):
        """Test that reserved function codes decode as plain ints."""
        assert ControlField.from_byte(0x45).function == 5

    def test_function_range(self):
        """Test that function codes must fit in 4 bits."""
        with pytest.raises(ValueError):
            ControlField(prm=True, function=16)


class TestLinkLayerBuild:
    """Tests for building FT1.2 frames."""

    def setup_method(self):
        """Set up test fixtures."""
        self.layer = LinkLayer(link_address_length=1)

    def test_single_characters(self):
        """Test ACK and NACK single characters."""
        assert LinkLayer.build_ack() == b"\xe5"
        assert LinkLayer.build_nack() == b"\xa2"

    def test_request_link_status(self):
        """Test fixed frame layout and checksum."""
        frame = self.layer.build_request_link_status(address=1)
        assert frame == bytes([FIXED_START, 0x49, 0x01, 0x4A, END_BYTE])

    def test_two_octet_address(self):
        """Test little endian two-octet link address."""
        layer = LinkLayer(link_address_length=2)
        frame = layer.build_reset_remote_link(address=0x0102)
        assert frame == bytes([0x10, 0x40, 0x02, 0x01, 0x43, 0x16])

    def test_no_address(self):
        """Test link address width 0."""
        layer = LinkLayer(link_address_length=0)
        assert layer.build_request_link_status(address=0) == bytes([0x10, 0x49, 0x49, 0x16])

    def test_address_too_wide(self):
        """Test that the link address must fit its width."""
        with pytest.raises(ValueError):
            self.layer.build_request_link_status(address=256)

    def test_invalid_address_length(self):
        """Test that widths above 2 are rejected."""
        with pytest.raises(ValueError):
            LinkLayer(link_address_length=3)

    def test_variable_frame(self):
        """Test variable frame header, length and checksum."""
        frame = self.layer.build_user_data(address=5, asdu=_asdu(), confirmed=False)
        asdu_bytes = _asdu().to_bytes()
        length = 2 + len(asdu_bytes)
        assert frame[:4] == bytes([VARIABLE_START, length, length, VARIABLE_START])
        assert frame[4] == 0x44
        assert frame[5] == 5
        assert frame[6:-2] == asdu_bytes
        assert frame[-2] == sum(frame[4:-2]) & 0xFF
        assert frame[-1] == END_BYTE

    def test_frame_count_bit_alternates(self):
        """Test FCB toggling for confirmed user data."""
        first = self.layer.build_user_data(1, _asdu())
        second = self.layer.build_user_data(1, _asdu())
        assert first[4] == 0x73
        assert second[4] == 0x53

    def test_reset_clears_frame_count_bit(self):
        """Test that reset remote link restarts the FCB sequence."""
        self.layer.build_user_data(1, _asdu())
        self.layer.build_reset_remote_link(1)
        assert self.layer.build_user_data(1, _asdu())[4] == 0x73

    def test_request_class_data(self):
        """Test class 1 and class 2 polling requests."""
        frame = self.layer.build_request_class_data(1, data_class=1)
        assert frame[1] & 0x0F == PrimaryFunction.REQUEST_CLASS_1_DATA
        with pytest.raises(ValueError):
            self.layer.build_request_class_data(1, data_class=3)


class TestLinkLayerParse:
    """Tests for parsing FT1.2 frames."""

    def setup_method(self):
        """Set up test fixtures."""
        self.layer = LinkLayer(link_address_length=1, field_widths=FieldWidths())

    def test_parse_single_character(self):
        """Test ACK parse consumes one byte."""
        frame, consumed = self.layer.parse_frame(b"\xe5\x10")
        assert frame.kind is LinkFrameKind.SINGLE_ACK
        assert consumed == 1

    def test_parse_fixed(self):
        """Test fixed frame parse."""
        frame, consumed = self.layer.parse_frame(bytes([0x10, 0x0B, 0x07, 0x12, 0x16]))
        assert frame.kind is LinkFrameKind.FIXED
        assert frame.control.function == SecondaryFunction.LINK_STATUS
        assert frame.address == 7
        assert consumed == 5

    def test_parse_variable(self):
        """Test variable frame parse decodes the ASDU."""
        data = self.layer.build_user_data(9, _asdu(), confirmed=False)
        frame, consumed = self.layer.parse_frame(data + b"\xe5")
        assert frame.kind is LinkFrameKind.VARIABLE
        assert frame.address == 9
        assert frame.asdu.type_id == ASduType.M_SP_NA_1
        assert frame.asdu.objects[0].elements[0][0].on is True
        assert consumed == len(data)

    def test_checksum_mismatch(self):
        """Test checksum verification."""
        with pytest.raises(IEC60870ChecksumError) as exc_info:
            self.layer.parse_frame(bytes([0x10, 0x0B, 0x07, 0x13, 0x16]))
        assert exc_info.value.expected == 0x12
        assert exc_info.value.actual == 0x13

    def test_invalid_end_byte(self):
        """Test end byte verification."""
        with pytest.raises(IEC60870FrameError, match="end byte"):
            self.layer.parse_frame(bytes([0x10, 0x0B, 0x07, 0x12, 0x17]))

    def test_length_octets_differ(self):
        """Test that both length octets must match."""
        with pytest.raises(IEC60870FrameError, match="header"):
            self.layer.parse_frame(bytes([0x68, 0x05, 0x06, 0x68, 0, 0, 0, 0, 0, 0, 0x16]))

    def test_incomplete(self):
        """Test that truncated frames are rejected."""
        with pytest.raises(IEC60870FrameError, match="Incomplete"):
            self.layer.parse_frame(bytes([0x10, 0x0B, 0x07]))

    def test_invalid_start(self):
        """Test that unknown start bytes are rejected."""
        with pytest.raises(IEC60870FrameError, match="start byte"):
            self.layer.parse_frame(bytes([0x05, 0x64]))

    def test_find_frame_start(self):
        """Test resynchronization helper."""
        assert LinkLayer.find_frame_start(bytes([0x00, 0x01, 0x68, 0x10])) == 2
        assert LinkLayer.find_frame_start(bytes([0x00, 0x01])) == -1

    def test_unsupported_type_keeps_frame(self):
        """Test that an unknown ASDU type still reports control field and address."""
        body = bytes([0x08, 0x04]) + bytes.fromhex("140106000100000000AA")
        data = bytes([0x68, len(body), len(body), 0x68]) + body + bytes([sum(body) & 0xFF, 0x16])
        with pytest.raises(IEC60870UnsupportedTypeError) as exc_info:
            self.layer.parse_frame(data)
        frame = exc_info.value.frame
        assert frame.control.function == SecondaryFunction.USER_DATA
        assert frame.address == 4
        assert frame.asdu is None


class TestLinkLayerStream:
    """Tests for reading frames from a byte stream."""

    def setup_method(self):
        """Set up test fixtures."""
        self.layer = LinkLayer(link_address_length=1)

    def test_reads_one_frame_at_a_time(self):
        """Test that each frame format consumes exactly its own bytes."""
        variable = self.layer.build_user_data(2, _asdu(), confirmed=False)
        fixed = self.layer.build_request_link_status(2)
        reader = ByteReader(b"\xe5" + fixed + variable, error_class=IEC60870FrameError)
        assert self.layer.read_frame(reader) == b"\xe5"
        assert self.layer.read_frame(reader) == fixed
        assert self.layer.read_frame(reader) == variable
        assert reader.remaining == 0

    def test_invalid_header(self):
        """Test that mismatched length octets are rejected before reading the body."""
        reader = ByteReader(bytes([0x68, 0x05, 0x04, 0x68]), error_class=IEC60870FrameError)
        with pytest.raises(IEC60870FrameError, match="header"):
            self.layer.read_frame(reader)

    def test_invalid_start(self):
        """Test that an unknown start octet is rejected."""
        reader = ByteReader(b"\x00", error_class=IEC60870FrameError)
        with pytest.raises(IEC60870FrameError, match="start byte"):
            self.layer.read_frame(reader)

    def test_failed_encoding_keeps_frame_count_bit(self):
        """Test that the FCB only advances for frames that were built."""
        oversized = ASdu(
            type_id=ASduType.M_SP_NA_1,
            cause=CauseOfTransmission.SPONTANEOUS,
            common_address=1,
            objects=[
                InformationObject(i, [[SinglePointWithQuality()]]) for i in range(100)
            ],
        )
        with pytest.raises(IEC60870FrameError):
            self.layer.build_user_data(1, oversized)
        assert self.layer.build_user_data(1, _asdu())[4] == 0x73
