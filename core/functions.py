"""
Application functions shared by the -104 and -101 connections.

ApplicationFunctions turns plain arguments into ASDUs through an
ApplicationLayer and hands them to send(). A class mixing it in provides
send(asdu) and an ``_application`` builder.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from iec60870py.elements.commands import (
    DoubleCommand,
    DoubleCommandState,
    QualifierOfSetPointCommand,
    RegulatingStepCommand,
    RegulatingStepState,
    SingleCommand,
)
from iec60870py.elements.file import (
    AcknowledgeFileQualifier,
    FileChecksum,
    FileReadyQualifier,
    LastSectionQualifier,
    LengthOfFile,
    NameOfFile,
    SectionReadyQualifier,
    SelectAndCallQualifier,
    StatusOfFile,
)
from iec60870py.elements.qualifiers import (
    QualifierOfCounterInterrogation,
    QualifierOfParameterActivation,
    QualifierOfParameterOfMeasuredValues,
    QualifierOfResetProcessCommand,
)
from iec60870py.elements.time import Time16, Time56
from iec60870py.elements.values import (
    BinaryStateInformation,
    NormalizedValue,
    ScaledValue,
    ShortFloat,
)
from iec60870py.layers.application import ApplicationLayer
from iec60870py.layers.asdu import ASdu


class ApplicationFunctions:
    """Convenience commands; each builds one ASDU and sends it."""

    _application: ApplicationLayer

    def send(self, asdu: ASdu) -> None:
        raise NotImplementedError

    def interrogation(self, common_address: int, qualifier: int = 20) -> None:
        """Send a station (20) or group (21-36) interrogation command."""
        self.send(self._application.build_interrogation(common_address, qualifier))

    def counter_interrogation(
        self,
        common_address: int,
        qualifier: Optional[QualifierOfCounterInterrogation] = None,
    ) -> None:
        """Send a counter interrogation command."""
        self.send(self._application.build_counter_interrogation(common_address, qualifier))

    def read(self, common_address: int, address: int) -> None:
        """Send a read command for one information object."""
        self.send(self._application.build_read(common_address, address))

    def synchronize_clocks(self, common_address: int, time_tag: Optional[Time56] = None) -> None:
        """Send a clock synchronization command (current UTC time if time_tag is None)."""
        if time_tag is None:
            time_tag = Time56.from_datetime(datetime.now(timezone.utc))
        self.send(self._application.build_clock_sync(common_address, time_tag))

    def single_command(
        self,
        common_address: int,
        address: int,
        on: bool,
        qualifier: int = 0,
        select: bool = False,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a single command (C_SC_NA_1, or C_SC_TA_1 with time_tag)."""
        command = SingleCommand(on=on, qualifier=qualifier, select=select)
        self.send(
            self._application.build_single_command(common_address, address, command, time_tag)
        )

    def double_command(
        self,
        common_address: int,
        address: int,
        state: DoubleCommandState,
        qualifier: int = 0,
        select: bool = False,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a double command (C_DC_NA_1, or C_DC_TA_1 with time_tag)."""
        command = DoubleCommand(state=state, qualifier=qualifier, select=select)
        self.send(
            self._application.build_double_command(common_address, address, command, time_tag)
        )

    def regulating_step_command(
        self,
        common_address: int,
        address: int,
        state: RegulatingStepState,
        qualifier: int = 0,
        select: bool = False,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a regulating step command (C_RC_NA_1, or C_RC_TA_1 with time_tag)."""
        command = RegulatingStepCommand(state=state, qualifier=qualifier, select=select)
        self.send(
            self._application.build_regulating_step_command(
                common_address, address, command, time_tag
            )
        )

    def set_normalized_value(
        self,
        common_address: int,
        address: int,
        value: float,
        select: bool = False,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a normalized set-point command; value in [-1.0, 1.0)."""
        self.send(
            self._application.build_set_point_command(
                common_address,
                address,
                NormalizedValue.from_normalized(value),
                QualifierOfSetPointCommand(select=select),
                time_tag,
            )
        )

    def set_scaled_value(
        self,
        common_address: int,
        address: int,
        value: int,
        select: bool = False,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a scaled set-point command; value in -32768..32767."""
        self.send(
            self._application.build_set_point_command(
                common_address,
                address,
                ScaledValue(value),
                QualifierOfSetPointCommand(select=select),
                time_tag,
            )
        )

    def set_short_float(
        self,
        common_address: int,
        address: int,
        value: float,
        select: bool = False,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a short floating point set-point command."""
        self.send(
            self._application.build_set_point_command(
                common_address,
                address,
                ShortFloat(value),
                QualifierOfSetPointCommand(select=select),
                time_tag,
            )
        )

    def bitstring_command(
        self,
        common_address: int,
        address: int,
        value: int,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a bitstring of 32 bit command."""
        self.send(
            self._application.build_bitstring_command(
                common_address, address, BinaryStateInformation(value), time_tag
            )
        )

    def test_command(self, common_address: int) -> None:
        """Send a test command (C_TS_NA_1)."""
        self.send(self._application.build_test_command(common_address))

    def test_command_with_time(
        self,
        common_address: int,
        counter: int,
        time_tag: Optional[Time56] = None,
    ) -> None:
        """Send a test command with time tag (C_TS_TA_1)."""
        if time_tag is None:
            time_tag = Time56.from_datetime(datetime.now(timezone.utc))
        self.send(self._application.build_test_command_with_time(common_address, counter, time_tag))

    def reset_process(self, common_address: int, qualifier: int = 1) -> None:
        """Send a reset process command (1 = general reset, 2 = reset event buffer)."""
        self.send(
            self._application.build_reset_process(
                common_address, QualifierOfResetProcessCommand(qualifier)
            )
        )

    def delay_acquisition(self, common_address: int, delay_ms: int) -> None:
        """Send a delay acquisition command with the given delay in milliseconds."""
        self.send(self._application.build_delay_acquisition(common_address, Time16(delay_ms)))

    def parameter_normalized_value(
        self,
        common_address: int,
        address: int,
        value: float,
        qualifier: Optional[QualifierOfParameterOfMeasuredValues] = None,
    ) -> None:
        """Load a normalized parameter of measured value (P_ME_NA_1)."""
        self.send(
            self._application.build_parameter_command(
                common_address, address, NormalizedValue.from_normalized(value), qualifier
            )
        )

    def parameter_scaled_value(
        self,
        common_address: int,
        address: int,
        value: int,
        qualifier: Optional[QualifierOfParameterOfMeasuredValues] = None,
    ) -> None:
        """Load a scaled parameter of measured value (P_ME_NB_1)."""
        self.send(
            self._application.build_parameter_command(
                common_address, address, ScaledValue(value), qualifier
            )
        )

    def parameter_short_float(
        self,
        common_address: int,
        address: int,
        value: float,
        qualifier: Optional[QualifierOfParameterOfMeasuredValues] = None,
    ) -> None:
        """Load a short floating point parameter of measured value (P_ME_NC_1)."""
        self.send(
            self._application.build_parameter_command(
                common_address, address, ShortFloat(value), qualifier
            )
        )

    def parameter_activation(self, common_address: int, address: int, qualifier: int = 3) -> None:
        """Send a parameter activation (P_AC_NA_1)."""
        self.send(
            self._application.build_parameter_activation(
                common_address, address, QualifierOfParameterActivation(qualifier)
            )
        )

    # File transfer

    def file_ready(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        length: int,
        negative: bool = False,
    ) -> None:
        """Announce a file ready for transfer (F_FR_NA_1)."""
        self.send(
            self._application.build_file_ready(
                common_address, address, name_of_file, length, FileReadyQualifier(negative=negative)
            )
        )

    def section_ready(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        name_of_section: int,
        length: int,
        not_ready: bool = False,
    ) -> None:
        """Announce a section ready for transfer (F_SR_NA_1)."""
        self.send(
            self._application.build_section_ready(
                common_address,
                address,
                name_of_file,
                name_of_section,
                length,
                SectionReadyQualifier(negative=not_ready),
            )
        )

    def select_and_call(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        action: int,
        name_of_section: int = 0,
    ) -> None:
        """Call a directory, select or call a file, or call a section (F_SC_NA_1)."""
        self.send(
            self._application.build_select_and_call(
                common_address,
                address,
                name_of_file,
                SelectAndCallQualifier(action),
                name_of_section,
            )
        )

    def last_section(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        name_of_section: int,
        action: int,
        checksum: int,
    ) -> None:
        """Report the last section or segment with its checksum (F_LS_NA_1)."""
        self.send(
            self._application.build_last_section(
                common_address,
                address,
                name_of_file,
                name_of_section,
                LastSectionQualifier(action),
                FileChecksum(checksum),
            )
        )

    def ack_file(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        action: int,
        error: int = 0,
        name_of_section: int = 0,
    ) -> None:
        """Acknowledge a file or section (F_AF_NA_1)."""
        self.send(
            self._application.build_ack_file(
                common_address,
                address,
                name_of_file,
                AcknowledgeFileQualifier(action, error),
                name_of_section,
            )
        )

    def file_segment(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        name_of_section: int,
        data: bytes,
    ) -> None:
        """Send one segment of a section (F_SG_NA_1)."""
        self.send(
            self._application.build_file_segment(
                common_address, address, name_of_file, name_of_section, data
            )
        )

    def send_directory(
        self,
        common_address: int,
        address: int,
        entries: Sequence[Tuple[NameOfFile, LengthOfFile, StatusOfFile, Time56]],
    ) -> None:
        """Send a directory (F_DR_TA_1), one entry per file."""
        self.send(self._application.build_directory(common_address, address, entries))

    def query_log(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        range_start: Time56,
        range_end: Time56,
    ) -> None:
        """Query a log or request an archive file for a time range (F_SC_NB_1)."""
        self.send(
            self._application.build_query_log(
                common_address, address, name_of_file, range_start, range_end
            )
        )

    def send_confirmation(self, asdu: ASdu, negative: bool = False) -> None:
        """Answer a received command with its (negative) activation confirmation."""
        self.send(self._application.build_confirmation(asdu, negative))

    def send_activation_termination(self, asdu: ASdu) -> None:
        """Signal that a received command has been carried out."""
        self.send(self._application.build_activation_termination(asdu))
