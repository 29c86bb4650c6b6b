"""
IEC 60870-5 application functions in control direction.

The ApplicationLayer builds the ASDUs of the standard's basic application
functions so callers do not assemble information objects by hand:
- Station/group interrogation and counter interrogation
- Read command and clock synchronization
- Single, double and regulating step commands (select or execute)
- Set-point commands (normalized, scaled, short float) and bitstring command
- Test command, reset process command, delay acquisition
- Parameter loading and parameter activation
- File transfer: file and section ready, select and call, segments, last
  section, acknowledgement, directory and log query (cause FILE_TRANSFER)
- Activation confirmation/termination of received commands (controlled station)

Commands with a CP56Time2a time tag use the *_TA_1 type when a time is given.
"""

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple, Union

from iec60870py.core.config import CauseOfTransmission, QualifierOfInterrogation
from iec60870py.elements.commands import (
    DoubleCommand,
    QualifierOfSetPointCommand,
    RegulatingStepCommand,
    SingleCommand,
)
from iec60870py.elements.file import (
    AcknowledgeFileQualifier,
    FileChecksum,
    FileReadyQualifier,
    FileSegment,
    LastSectionQualifier,
    LengthOfFile,
    NameOfFile,
    NameOfSection,
    SectionReadyQualifier,
    SelectAndCallQualifier,
    StatusOfFile,
)
from iec60870py.elements.qualifiers import (
    FixedTestBitPattern,
    QualifierOfCounterInterrogation,
    QualifierOfInterrogation as QOI,
    QualifierOfParameterActivation,
    QualifierOfParameterOfMeasuredValues,
    QualifierOfResetProcessCommand,
    TestSequenceCounter,
)
from iec60870py.elements.time import Time16, Time56
from iec60870py.elements.types import ASduType
from iec60870py.elements.values import (
    BinaryStateInformation,
    NormalizedValue,
    ScaledValue,
    ShortFloat,
)
from iec60870py.layers.asdu import ASdu, InformationObject

# System commands are addressed to IOA 0
STATION_IOA = 0

_CONFIRMATION_CAUSE = {
    CauseOfTransmission.ACTIVATION: CauseOfTransmission.ACTIVATION_CON,
    CauseOfTransmission.DEACTIVATION: CauseOfTransmission.DEACTIVATION_CON,
}


class ApplicationLayer:
    """
    Builder for control direction ASDUs.

    Args:
        originator_address: Originator address placed in every ASDU (COT octet 2)
    """

    def __init__(self, originator_address: int = 0):
        self.originator_address = originator_address

    def _single(
        self,
        type_id: ASduType,
        common_address: int,
        address: int,
        *elements,
        cause: Union[CauseOfTransmission, int] = CauseOfTransmission.ACTIVATION,
    ) -> ASdu:
        return ASdu(
            type_id=type_id,
            cause=cause,
            common_address=common_address,
            originator_address=self.originator_address,
            objects=[InformationObject(address, [list(elements)] if elements else [])],
        )

    def build_interrogation(
        self,
        common_address: int,
        qualifier: int = QualifierOfInterrogation.STATION,
        cause: Union[CauseOfTransmission, int] = CauseOfTransmission.ACTIVATION,
    ) -> ASdu:
        """Station (qualifier 20) or group (21-36) interrogation, C_IC_NA_1."""
        return self._single(
            ASduType.C_IC_NA_1, common_address, STATION_IOA, QOI(int(qualifier)), cause=cause
        )

    def build_counter_interrogation(
        self,
        common_address: int,
        qualifier: Optional[QualifierOfCounterInterrogation] = None,
        cause: Union[CauseOfTransmission, int] = CauseOfTransmission.ACTIVATION,
    ) -> ASdu:
        """Counter interrogation, C_CI_NA_1 (general request, read only by default)."""
        return self._single(
            ASduType.C_CI_NA_1,
            common_address,
            STATION_IOA,
            qualifier or QualifierOfCounterInterrogation(),
            cause=cause,
        )

    def build_read(self, common_address: int, address: int) -> ASdu:
        """Read command, C_RD_NA_1, for one information object."""
        return self._single(
            ASduType.C_RD_NA_1, common_address, address, cause=CauseOfTransmission.REQUEST
        )

    def build_clock_sync(self, common_address: int, time: Time56) -> ASdu:
        """Clock synchronization command, C_CS_NA_1."""
        return self._single(ASduType.C_CS_NA_1, common_address, STATION_IOA, time)

    def build_single_command(
        self,
        common_address: int,
        address: int,
        command: SingleCommand,
        time: Optional[Time56] = None,
    ) -> ASdu:
        """Single command, C_SC_NA_1 or C_SC_TA_1 when time is given."""
        if time is None:
            return self._single(ASduType.C_SC_NA_1, common_address, address, command)
        return self._single(ASduType.C_SC_TA_1, common_address, address, command, time)

    def build_double_command(
        self,
        common_address: int,
        address: int,
        command: DoubleCommand,
        time: Optional[Time56] = None,
    ) -> ASdu:
        """Double command, C_DC_NA_1 or C_DC_TA_1 when time is given."""
        if time is None:
            return self._single(ASduType.C_DC_NA_1, common_address, address, command)
        return self._single(ASduType.C_DC_TA_1, common_address, address, command, time)

    def build_regulating_step_command(
        self,
        common_address: int,
        address: int,
        command: RegulatingStepCommand,
        time: Optional[Time56] = None,
    ) -> ASdu:
        """Regulating step command, C_RC_NA_1 or C_RC_TA_1 when time is given."""
        if time is None:
            return self._single(ASduType.C_RC_NA_1, common_address, address, command)
        return self._single(ASduType.C_RC_TA_1, common_address, address, command, time)

    def build_set_point_command(
        self,
        common_address: int,
        address: int,
        value: Union[NormalizedValue, ScaledValue, ShortFloat],
        qualifier: Optional[QualifierOfSetPointCommand] = None,
        time: Optional[Time56] = None,
    ) -> ASdu:
        """
        Set-point command; the type follows the value representation.

        NormalizedValue -> C_SE_NA_1/C_SE_TA_1, ScaledValue -> C_SE_NB_1/C_SE_TB_1,
        ShortFloat -> C_SE_NC_1/C_SE_TC_1.

        Raises:
            TypeError: If value is not one of the three representations.
        """
        types = {
            NormalizedValue: (ASduType.C_SE_NA_1, ASduType.C_SE_TA_1),
            ScaledValue: (ASduType.C_SE_NB_1, ASduType.C_SE_TB_1),
            ShortFloat: (ASduType.C_SE_NC_1, ASduType.C_SE_TC_1),
        }
        if type(value) not in types:
            raise TypeError(f"Unsupported set-point value type: {type(value).__name__}")
        plain_type, timed_type = types[type(value)]
        qualifier = qualifier or QualifierOfSetPointCommand()
        if time is None:
            return self._single(plain_type, common_address, address, value, qualifier)
        return self._single(timed_type, common_address, address, value, qualifier, time)

    def build_bitstring_command(
        self,
        common_address: int,
        address: int,
        value: BinaryStateInformation,
        time: Optional[Time56] = None,
    ) -> ASdu:
        """Bitstring of 32 bit command, C_BO_NA_1 or C_BO_TA_1 when time is given."""
        if time is None:
            return self._single(ASduType.C_BO_NA_1, common_address, address, value)
        return self._single(ASduType.C_BO_TA_1, common_address, address, value, time)

    def build_test_command(self, common_address: int) -> ASdu:
        """Test command with fixed test bit pattern, C_TS_NA_1."""
        return self._single(ASduType.C_TS_NA_1, common_address, STATION_IOA, FixedTestBitPattern())

    def build_test_command_with_time(
        self,
        common_address: int,
        counter: int,
        time: Time56,
    ) -> ASdu:
        """Test command with test sequence counter and time tag, C_TS_TA_1."""
        return self._single(
            ASduType.C_TS_TA_1, common_address, STATION_IOA, TestSequenceCounter(counter), time
        )

    def build_reset_process(
        self,
        common_address: int,
        qualifier: Optional[QualifierOfResetProcessCommand] = None,
    ) -> ASdu:
        """Reset process command, C_RP_NA_1 (general reset by default)."""
        return self._single(
            ASduType.C_RP_NA_1,
            common_address,
            STATION_IOA,
            qualifier or QualifierOfResetProcessCommand(),
        )

    def build_delay_acquisition(
        self,
        common_address: int,
        delay: Time16,
        cause: Union[CauseOfTransmission, int] = CauseOfTransmission.ACTIVATION,
    ) -> ASdu:
        """Delay acquisition command, C_CD_NA_1 (cause ACTIVATION or SPONTANEOUS)."""
        return self._single(ASduType.C_CD_NA_1, common_address, STATION_IOA, delay, cause=cause)

    def build_parameter_command(
        self,
        common_address: int,
        address: int,
        value: Union[NormalizedValue, ScaledValue, ShortFloat],
        qualifier: Optional[QualifierOfParameterOfMeasuredValues] = None,
    ) -> ASdu:
        """
        Parameter of measured value; P_ME_NA_1, P_ME_NB_1 or P_ME_NC_1 by value type.

        Raises:
            TypeError: If value is not one of the three representations.
        """
        types = {
            NormalizedValue: ASduType.P_ME_NA_1,
            ScaledValue: ASduType.P_ME_NB_1,
            ShortFloat: ASduType.P_ME_NC_1,
        }
        if type(value) not in types:
            raise TypeError(f"Unsupported parameter value type: {type(value).__name__}")
        return self._single(
            types[type(value)],
            common_address,
            address,
            value,
            qualifier or QualifierOfParameterOfMeasuredValues(),
        )

    def build_parameter_activation(
        self,
        common_address: int,
        address: int,
        qualifier: Optional[QualifierOfParameterActivation] = None,
    ) -> ASdu:
        """Parameter activation, P_AC_NA_1."""
        return self._single(
            ASduType.P_AC_NA_1,
            common_address,
            address,
            qualifier or QualifierOfParameterActivation(),
        )

    def _file(self, type_id: ASduType, common_address: int, address: int, *elements) -> ASdu:
        return self._single(
            type_id, common_address, address, *elements, cause=CauseOfTransmission.FILE_TRANSFER
        )

    def build_file_ready(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        length: int,
        qualifier: Optional[FileReadyQualifier] = None,
    ) -> ASdu:
        """File ready, F_FR_NA_1 (positive confirm by default)."""
        return self._file(
            ASduType.F_FR_NA_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            LengthOfFile(length),
            qualifier or FileReadyQualifier(),
        )

    def build_section_ready(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        name_of_section: int,
        length: int,
        qualifier: Optional[SectionReadyQualifier] = None,
    ) -> ASdu:
        """Section ready, F_SR_NA_1 (section ready by default)."""
        return self._file(
            ASduType.F_SR_NA_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            NameOfSection(name_of_section),
            LengthOfFile(length),
            qualifier or SectionReadyQualifier(),
        )

    def build_select_and_call(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        qualifier: SelectAndCallQualifier,
        name_of_section: int = 0,
    ) -> ASdu:
        """
        Call directory, select file, call file or call section, F_SC_NA_1.

        The action of the qualifier picks the request; see SelectAndCallAction.
        """
        return self._file(
            ASduType.F_SC_NA_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            NameOfSection(name_of_section),
            qualifier,
        )

    def build_last_section(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        name_of_section: int,
        qualifier: LastSectionQualifier,
        checksum: FileChecksum,
    ) -> ASdu:
        """Last section or last segment, F_LS_NA_1."""
        return self._file(
            ASduType.F_LS_NA_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            NameOfSection(name_of_section),
            qualifier,
            checksum,
        )

    def build_ack_file(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        qualifier: AcknowledgeFileQualifier,
        name_of_section: int = 0,
    ) -> ASdu:
        """Acknowledge file or section, F_AF_NA_1."""
        return self._file(
            ASduType.F_AF_NA_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            NameOfSection(name_of_section),
            qualifier,
        )

    def build_file_segment(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        name_of_section: int,
        data: bytes,
    ) -> ASdu:
        """
        One segment of a section, F_SG_NA_1.

        The segment must fit the frame: with the default field widths that
        leaves 249 - 6 - 3 - 3 - 1 = 236 data octets. Larger segments are
        rejected when the ASDU is encoded.
        """
        return self._file(
            ASduType.F_SG_NA_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            NameOfSection(name_of_section),
            FileSegment(data),
        )

    def build_directory(
        self,
        common_address: int,
        address: int,
        entries: Sequence[Tuple[NameOfFile, LengthOfFile, StatusOfFile, Time56]],
        cause: Union[CauseOfTransmission, int] = CauseOfTransmission.FILE_TRANSFER,
    ) -> ASdu:
        """
        Directory, F_DR_TA_1, as a sequence of entries at consecutive addresses.

        Args:
            common_address: Common address of ASDU
            address: Address of the first entry
            entries: (name, length, status, creation time) per file
            cause: FILE_TRANSFER, or SPONTANEOUS/REQUEST for an unsolicited or
                requested directory

        Raises:
            ValueError: If entries is empty
        """
        if not entries:
            raise ValueError("A directory needs at least one entry")
        groups: List[list] = [list(entry) for entry in entries]
        return ASdu(
            type_id=ASduType.F_DR_TA_1,
            cause=cause,
            common_address=common_address,
            originator_address=self.originator_address,
            objects=[InformationObject(address, groups)],
            is_sequence=True,
        )

    def build_query_log(
        self,
        common_address: int,
        address: int,
        name_of_file: int,
        range_start: Time56,
        range_end: Time56,
    ) -> ASdu:
        """Query log or request archive file for a time range, F_SC_NB_1."""
        return self._file(
            ASduType.F_SC_NB_1,
            common_address,
            address,
            NameOfFile(name_of_file),
            range_start,
            range_end,
        )

    @staticmethod
    def build_confirmation(asdu: ASdu, negative: bool = False) -> ASdu:
        """
        Mirror a received command as its confirmation.

        ACTIVATION becomes ACTIVATION_CON and DEACTIVATION becomes
        DEACTIVATION_CON; other causes are kept.
        """
        return replace(
            asdu,
            cause=_CONFIRMATION_CAUSE.get(asdu.cause, asdu.cause),
            is_negative=negative,
        )

    @staticmethod
    def build_activation_termination(asdu: ASdu) -> ASdu:
        """Mirror a received command with cause ACTIVATION_TERMINATION."""
        return replace(asdu, cause=CauseOfTransmission.ACTIVATION_TERMINATION, is_negative=False)
