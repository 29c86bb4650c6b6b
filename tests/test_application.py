"""Tests for the control direction ASDU builders."""

import pytest
from iec60870py.core.config import CauseOfTransmission
from iec60870py.elements.commands import (
    DoubleCommand,
    DoubleCommandState,
    QualifierOfSetPointCommand,
    SingleCommand,
)
from iec60870py.elements.qualifiers import (
    FreezeBehaviour,
    QualifierOfCounterInterrogation,
    QualifierOfInterrogation,
)
from iec60870py.elements.time import Time16, Time56
from iec60870py.elements.types import ASduType
from iec60870py.elements.values import (
    BinaryStateInformation,
    NormalizedValue,
    ScaledValue,
    ShortFloat,
)
from iec60870py.layers.application import STATION_IOA, ApplicationLayer


class TestSystemCommands:
    """Tests for interrogation, read, clock sync and other system commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.layer = ApplicationLayer(originator_address=3)

    def test_station_interrogation(self):
        """Test C_IC_NA_1 with station qualifier."""
        asdu = self.layer.build_interrogation(common_address=1)
        assert asdu.type_id == ASduType.C_IC_NA_1
        assert asdu.cause == CauseOfTransmission.ACTIVATION
        assert asdu.originator_address == 3
        assert asdu.objects[0].address == STATION_IOA
        assert asdu.objects[0].elements == [[QualifierOfInterrogation(20)]]
        assert asdu.to_bytes() == bytes.fromhex("640106030100000000" "14")

    def test_group_interrogation(self):
        """Test C_IC_NA_1 with group qualifier."""
        asdu = self.layer.build_interrogation(common_address=1, qualifier=21)
        assert asdu.objects[0].elements[0][0].value == 21

    def test_counter_interrogation(self):
        """Test C_CI_NA_1 default and explicit qualifier."""
        asdu = self.layer.build_counter_interrogation(1)
        assert asdu.objects[0].elements[0][0].request == 5
        qualifier = QualifierOfCounterInterrogation(
            request=1, freeze=FreezeBehaviour.COUNTER_FREEZE_WITHOUT_RESET
        )
        asdu = self.layer.build_counter_interrogation(1, qualifier)
        assert asdu.objects[0].elements[0][0] is qualifier

    def test_read(self):
        """Test C_RD_NA_1 with cause REQUEST and no elements."""
        asdu = self.layer.build_read(common_address=2, address=4000)
        assert asdu.type_id == ASduType.C_RD_NA_1
        assert asdu.cause == CauseOfTransmission.REQUEST
        assert asdu.objects[0].elements == []

    def test_clock_sync(self):
        """Test C_CS_NA_1."""
        time_tag = Time56.from_timestamp(1540688400000)
        asdu = self.layer.build_clock_sync(1, time_tag)
        assert asdu.type_id == ASduType.C_CS_NA_1
        assert asdu.objects[0].elements[0][0] == time_tag

    def test_test_commands(self):
        """Test C_TS_NA_1 and C_TS_TA_1."""
        assert self.layer.build_test_command(1).to_bytes().endswith(bytes([0x55, 0xAA]))
        asdu = self.layer.build_test_command_with_time(1, 7, Time56.from_timestamp(0))
        assert asdu.type_id == ASduType.C_TS_TA_1
        assert asdu.objects[0].elements[0][0].value == 7

    def test_reset_process(self):
        """Test C_RP_NA_1 defaults to general reset."""
        asdu = self.layer.build_reset_process(1)
        assert asdu.objects[0].elements[0][0].value == 1

    def test_delay_acquisition(self):
        """Test C_CD_NA_1."""
        asdu = self.layer.build_delay_acquisition(1, Time16(250))
        assert asdu.type_id == ASduType.C_CD_NA_1
        assert asdu.objects[0].elements[0][0].milliseconds == 250


class TestProcessCommands:
    """Tests for command builders."""

    def setup_method(self):
        """Set up test fixtures."""
        self.layer = ApplicationLayer()

    def test_single_command(self):
        """Test C_SC_NA_1 without time."""
        asdu = self.layer.build_single_command(1, 5000, SingleCommand(on=True, select=True))
        assert asdu.type_id == ASduType.C_SC_NA_1
        assert asdu.to_bytes() == bytes.fromhex("2D010600" "0100" "881300" "81")

    def test_single_command_with_time(self):
        """Test that a time tag selects C_SC_TA_1."""
        time_tag = Time56.from_timestamp(0)
        asdu = self.layer.build_single_command(1, 5000, SingleCommand(on=True), time_tag)
        assert asdu.type_id == ASduType.C_SC_TA_1
        assert len(asdu.to_bytes()) == 6 + 3 + 1 + 7

    def test_double_command_with_time(self):
        """Test C_DC_TA_1."""
        command = DoubleCommand(DoubleCommandState.OFF)
        asdu = self.layer.build_double_command(1, 1, command, Time56.from_timestamp(0))
        assert asdu.type_id == ASduType.C_DC_TA_1

    @pytest.mark.parametrize(
        "value,plain,timed",
        [
            (NormalizedValue(100), ASduType.C_SE_NA_1, ASduType.C_SE_TA_1),
            (ScaledValue(100), ASduType.C_SE_NB_1, ASduType.C_SE_TB_1),
            (ShortFloat(1.5), ASduType.C_SE_NC_1, ASduType.C_SE_TC_1),
        ],
    )
    def test_set_point_type_follows_value(self, value, plain, timed):
        """Test that the set-point type is chosen by value representation."""
        assert self.layer.build_set_point_command(1, 1, value).type_id == plain
        timed_asdu = self.layer.build_set_point_command(
            1, 1, value, QualifierOfSetPointCommand(), Time56.from_timestamp(0)
        )
        assert timed_asdu.type_id == timed

    def test_set_point_rejects_other_values(self):
        """Test that unsupported value types raise TypeError."""
        with pytest.raises(TypeError):
            self.layer.build_set_point_command(1, 1, 1.5)

    def test_bitstring_command(self):
        """Test C_BO_NA_1."""
        asdu = self.layer.build_bitstring_command(1, 1, BinaryStateInformation(0xF0))
        assert asdu.type_id == ASduType.C_BO_NA_1

    def test_parameter_commands(self):
        """Test parameter loading and activation."""
        asdu = self.layer.build_parameter_command(1, 10, ShortFloat(0.5))
        assert asdu.type_id == ASduType.P_ME_NC_1
        assert asdu.objects[0].elements[0][1].kind == 1
        asdu = self.layer.build_parameter_activation(1, 10)
        assert asdu.type_id == ASduType.P_AC_NA_1
        assert asdu.objects[0].elements[0][0].value == 3


class TestConfirmations:
    """Tests for mirroring received commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.layer = ApplicationLayer()
        self.command = self.layer.build_interrogation(1)

    def test_activation_confirmation(self):
        """Test ACTIVATION -> ACTIVATION_CON."""
        confirmation = ApplicationLayer.build_confirmation(self.command)
        assert confirmation.cause == CauseOfTransmission.ACTIVATION_CON
        assert confirmation.is_negative is False
        assert self.command.cause == CauseOfTransmission.ACTIVATION

    def test_negative_confirmation(self):
        """Test P/N bit on confirmation."""
        confirmation = ApplicationLayer.build_confirmation(self.command, negative=True)
        assert confirmation.is_negative is True

    def test_deactivation_confirmation(self):
        """Test DEACTIVATION -> DEACTIVATION_CON."""
        command = self.layer.build_interrogation(1, cause=CauseOfTransmission.DEACTIVATION)
        confirmation = ApplicationLayer.build_confirmation(command)
        assert confirmation.cause == CauseOfTransmission.DEACTIVATION_CON

    def test_activation_termination(self):
        """Test ACTIVATION_TERMINATION mirror."""
        termination = ApplicationLayer.build_activation_termination(self.command)
        assert termination.cause == CauseOfTransmission.ACTIVATION_TERMINATION
        assert termination.objects == self.command.objects
