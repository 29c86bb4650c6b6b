"""Tests for protection equipment elements and ASDU types."""

import pytest
from iec60870py.core.config import CauseOfTransmission
from iec60870py.elements.protection import (
    EventState,
    OutputCircuitFlag,
    OutputCircuitInformation,
    ProtectionQuality,
    ProtectionStartEvent,
    SingleProtectionEvent,
    StartEventFlag,
)
from iec60870py.elements.quality import QualityFlag
from iec60870py.elements.time import Time16, Time24, Time56
from iec60870py.elements.types import ASduType, ELEMENT_LAYOUTS, get_layout_size
from iec60870py.layers.asdu import ASdu, InformationObject


class TestSingleProtectionEvent:
    """Tests for the SEP element."""

    def test_encode(self):
        """Test event state in bits 0-1 with EI and IV."""
        sep = SingleProtectionEvent(
            EventState.ON, QualityFlag.ELAPSED_TIME_INVALID | QualityFlag.INVALID
        )
        assert sep.to_bytes() == bytes([0x8A])
        assert sep.is_elapsed_time_invalid
        assert sep.is_invalid

    def test_decode(self):
        """Test SEP decode drops the reserved bit 2."""
        sep = SingleProtectionEvent.from_bytes(bytes([0x47]))
        assert sep.state == EventState.INDETERMINATE
        assert sep.flags == QualityFlag.NOT_TOPICAL
        assert not sep.is_elapsed_time_invalid

    def test_overflow_not_carried(self):
        """Test that SEP has no overflow bit."""
        sep = SingleProtectionEvent(EventState.OFF, QualityFlag.OVERFLOW)
        assert sep.to_bytes() == bytes([0x01])


class TestProtectionQuality:
    """Tests for the QDP element."""

    def test_encode(self):
        """Test QDP keeps EI and the status quality bits."""
        qdp = ProtectionQuality(QualityFlag.BLOCKED | QualityFlag.ELAPSED_TIME_INVALID)
        assert qdp.to_bytes() == bytes([0x18])

    def test_decode_ignores_reserved_bits(self):
        """Test that bits 0-2 are dropped on decode."""
        qdp = ProtectionQuality.from_bytes(bytes([0x0F]))
        assert qdp.flags == QualityFlag.ELAPSED_TIME_INVALID
        assert qdp.is_elapsed_time_invalid


class TestPackedEvents:
    """Tests for SPE and OCI."""

    def test_start_events(self):
        """Test SPE bit positions."""
        spe = ProtectionStartEvent(StartEventFlag.GENERAL_START | StartEventFlag.START_L2)
        assert spe.to_bytes() == bytes([0x05])
        assert spe.is_general_start

    def test_start_events_decode_masks_reserved(self):
        """Test that bits 6-7 of SPE are reserved."""
        spe = ProtectionStartEvent.from_bytes(bytes([0xE0]))
        assert spe.events == StartEventFlag.REVERSE_DIRECTION
        assert not spe.is_general_start

    def test_output_circuit(self):
        """Test OCI bit positions."""
        oci = OutputCircuitInformation(OutputCircuitFlag.COMMAND_L3)
        assert oci.to_bytes() == bytes([0x08])
        decoded = OutputCircuitInformation.from_bytes(bytes([0xF3]))
        assert decoded.commands == OutputCircuitFlag.GENERAL_COMMAND | OutputCircuitFlag.COMMAND_L1
        assert decoded.is_general_command


class TestProtectionASdu:
    """Tests for M_EP_TA_1..M_EP_TF_1 ASDUs."""

    def test_event_with_cp56_time(self):
        """Test M_EP_TD_1: SEP, elapsed time and CP56Time2a."""
        time = Time56(
            milliseconds=1000, minute=2, hour=3, day_of_month=4, day_of_week=5, month=6, year=19
        )
        asdu = ASdu(
            type_id=ASduType.M_EP_TD_1,
            cause=CauseOfTransmission.SPONTANEOUS,
            common_address=1,
            objects=[
                InformationObject(
                    10,
                    [[
                        SingleProtectionEvent(
                            EventState.ON,
                            QualityFlag.ELAPSED_TIME_INVALID | QualityFlag.INVALID,
                        ),
                        Time16(250),
                        time,
                    ]],
                )
            ],
        )
        data = asdu.to_bytes()
        assert data == bytes.fromhex("260103000100" "0A0000" "8A" "FA00" "E8030203A40613")
        assert ASdu.from_bytes(data) == asdu

    def test_start_events_with_cp24_time(self):
        """Test M_EP_TB_1 decode: SPE, QDP, relay duration and CP24Time2a."""
        data = bytes.fromhex("120103000100" "0B0000" "05" "10" "6400" "E80302")
        asdu = ASdu.from_bytes(data)
        assert asdu.type_id == ASduType.M_EP_TB_1
        start, quality, duration, time = asdu.objects[0].elements[0]
        assert start.events == StartEventFlag.GENERAL_START | StartEventFlag.START_L2
        assert quality.is_blocked
        assert duration == Time16(100)
        assert time == Time24(1000, 2)

    @pytest.mark.parametrize(
        "type_id, size",
        [
            (ASduType.M_EP_TA_1, 1 + 2 + 3),
            (ASduType.M_EP_TB_1, 1 + 1 + 2 + 3),
            (ASduType.M_EP_TC_1, 1 + 1 + 2 + 3),
            (ASduType.M_EP_TD_1, 1 + 2 + 7),
            (ASduType.M_EP_TE_1, 1 + 1 + 2 + 7),
            (ASduType.M_EP_TF_1, 1 + 1 + 2 + 7),
        ],
    )
    def test_layout_sizes(self, type_id, size):
        """Test the element group size of each protection type."""
        assert get_layout_size(ELEMENT_LAYOUTS[type_id]) == size
