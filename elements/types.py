"""
ASDU type identifications and their information element layouts.

Each supported type identification maps to a fixed tuple of element classes
that make up one element group of an information object. Decoding looks the
layout up by type id; ids without a layout (private ranges, the types this
package does not implement) are reported as unsupported. The file segment is
the one element whose size depends on its content, so get_layout_size gives
the minimum size of a group.
"""

from enum import IntEnum
from typing import Dict, Optional, Tuple, Type

from iec60870py.elements.base import InformationElement
from iec60870py.elements.commands import (
    DoubleCommand,
    QualifierOfSetPointCommand,
    RegulatingStepCommand,
    SingleCommand,
)
from iec60870py.elements.counter import BinaryCounterReading
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
from iec60870py.elements.protection import (
    OutputCircuitInformation,
    ProtectionQuality,
    ProtectionStartEvent,
    SingleProtectionEvent,
)
from iec60870py.elements.qualifiers import (
    CauseOfInitialization,
    FixedTestBitPattern,
    QualifierOfCounterInterrogation,
    QualifierOfInterrogation,
    QualifierOfParameterActivation,
    QualifierOfParameterOfMeasuredValues,
    QualifierOfResetProcessCommand,
    TestSequenceCounter,
)
from iec60870py.elements.quality import DoublePointWithQuality, Quality, SinglePointWithQuality
from iec60870py.elements.time import Time16, Time24, Time56
from iec60870py.elements.values import (
    BinaryStateInformation,
    NormalizedValue,
    ScaledValue,
    ShortFloat,
    ValueWithTransientState,
)


class ASduType(IntEnum):
    """Supported type identifications."""

    # Process information in monitor direction
    M_SP_NA_1 = 1  # Single-point information
    M_SP_TA_1 = 2  # Single-point information with time tag
    M_DP_NA_1 = 3  # Double-point information
    M_DP_TA_1 = 4  # Double-point information with time tag
    M_ST_NA_1 = 5  # Step position information
    M_ST_TA_1 = 6  # Step position information with time tag
    M_BO_NA_1 = 7  # Bitstring of 32 bit
    M_BO_TA_1 = 8  # Bitstring of 32 bit with time tag
    M_ME_NA_1 = 9  # Measured value, normalized
    M_ME_TA_1 = 10  # Measured value, normalized with time tag
    M_ME_NB_1 = 11  # Measured value, scaled
    M_ME_TB_1 = 12  # Measured value, scaled with time tag
    M_ME_NC_1 = 13  # Measured value, short floating point
    M_ME_TC_1 = 14  # Measured value, short floating point with time tag
    M_IT_NA_1 = 15  # Integrated totals
    M_IT_TA_1 = 16  # Integrated totals with time tag
    M_EP_TA_1 = 17  # Event of protection equipment with time tag
    M_EP_TB_1 = 18  # Packed start events of protection equipment with time tag
    M_EP_TC_1 = 19  # Packed output circuit information of protection equipment with time tag
    M_ME_ND_1 = 21  # Measured value, normalized without quality descriptor
    M_SP_TB_1 = 30  # Single-point information with CP56Time2a
    M_DP_TB_1 = 31  # Double-point information with CP56Time2a
    M_ST_TB_1 = 32  # Step position information with CP56Time2a
    M_BO_TB_1 = 33  # Bitstring of 32 bit with CP56Time2a
    M_ME_TD_1 = 34  # Measured value, normalized with CP56Time2a
    M_ME_TE_1 = 35  # Measured value, scaled with CP56Time2a
    M_ME_TF_1 = 36  # Measured value, short floating point with CP56Time2a
    M_IT_TB_1 = 37  # Integrated totals with CP56Time2a
    M_EP_TD_1 = 38  # Event of protection equipment with CP56Time2a
    M_EP_TE_1 = 39  # Packed start events of protection equipment with CP56Time2a
    M_EP_TF_1 = 40  # Packed output circuit information with CP56Time2a

    # Process information in control direction
    C_SC_NA_1 = 45  # Single command
    C_DC_NA_1 = 46  # Double command
    C_RC_NA_1 = 47  # Regulating step command
    C_SE_NA_1 = 48  # Set-point command, normalized value
    C_SE_NB_1 = 49  # Set-point command, scaled value
    C_SE_NC_1 = 50  # Set-point command, short floating point
    C_BO_NA_1 = 51  # Bitstring of 32 bit
    C_SC_TA_1 = 58  # Single command with CP56Time2a
    C_DC_TA_1 = 59  # Double command with CP56Time2a
    C_RC_TA_1 = 60  # Regulating step command with CP56Time2a
    C_SE_TA_1 = 61  # Set-point command, normalized value with CP56Time2a
    C_SE_TB_1 = 62  # Set-point command, scaled value with CP56Time2a
    C_SE_TC_1 = 63  # Set-point command, short floating point with CP56Time2a
    C_BO_TA_1 = 64  # Bitstring of 32 bit with CP56Time2a

    # System information in monitor direction
    M_EI_NA_1 = 70  # End of initialization

    # System information in control direction
    C_IC_NA_1 = 100  # Interrogation command
    C_CI_NA_1 = 101  # Counter interrogation command
    C_RD_NA_1 = 102  # Read command
    C_CS_NA_1 = 103  # Clock synchronization command
    C_TS_NA_1 = 104  # Test command
    C_RP_NA_1 = 105  # Reset process command
    C_CD_NA_1 = 106  # Delay acquisition command
    C_TS_TA_1 = 107  # Test command with CP56Time2a

    # Parameter in control direction
    P_ME_NA_1 = 110  # Parameter of measured value, normalized
    P_ME_NB_1 = 111  # Parameter of measured value, scaled
    P_ME_NC_1 = 112  # Parameter of measured value, short floating point
    P_AC_NA_1 = 113  # Parameter activation

    # File transfer
    F_FR_NA_1 = 120  # File ready
    F_SR_NA_1 = 121  # Section ready
    F_SC_NA_1 = 122  # Call directory, select file, call file, call section
    F_LS_NA_1 = 123  # Last section, last segment
    F_AF_NA_1 = 124  # Ack file, ack section
    F_SG_NA_1 = 125  # Segment
    F_DR_TA_1 = 126  # Directory
    F_SC_NB_1 = 127  # Query log, request archive file


ElementLayout = Tuple[Type[InformationElement], ...]

ELEMENT_LAYOUTS: Dict[ASduType, ElementLayout] = {
    ASduType.M_SP_NA_1: (SinglePointWithQuality,),
    ASduType.M_SP_TA_1: (SinglePointWithQuality, Time24),
    ASduType.M_DP_NA_1: (DoublePointWithQuality,),
    ASduType.M_DP_TA_1: (DoublePointWithQuality, Time24),
    ASduType.M_ST_NA_1: (ValueWithTransientState, Quality),
    ASduType.M_ST_TA_1: (ValueWithTransientState, Quality, Time24),
    ASduType.M_BO_NA_1: (BinaryStateInformation, Quality),
    ASduType.M_BO_TA_1: (BinaryStateInformation, Quality, Time24),
    ASduType.M_ME_NA_1: (NormalizedValue, Quality),
    ASduType.M_ME_TA_1: (NormalizedValue, Quality, Time24),
    ASduType.M_ME_NB_1: (ScaledValue, Quality),
    ASduType.M_ME_TB_1: (ScaledValue, Quality, Time24),
    ASduType.M_ME_NC_1: (ShortFloat, Quality),
    ASduType.M_ME_TC_1: (ShortFloat, Quality, Time24),
    ASduType.M_IT_NA_1: (BinaryCounterReading,),
    ASduType.M_IT_TA_1: (BinaryCounterReading, Time24),
    ASduType.M_EP_TA_1: (SingleProtectionEvent, Time16, Time24),
    ASduType.M_EP_TB_1: (ProtectionStartEvent, ProtectionQuality, Time16, Time24),
    ASduType.M_EP_TC_1: (OutputCircuitInformation, ProtectionQuality, Time16, Time24),
    ASduType.M_ME_ND_1: (NormalizedValue,),
    ASduType.M_SP_TB_1: (SinglePointWithQuality, Time56),
    ASduType.M_DP_TB_1: (DoublePointWithQuality, Time56),
    ASduType.M_ST_TB_1: (ValueWithTransientState, Quality, Time56),
    ASduType.M_BO_TB_1: (BinaryStateInformation, Quality, Time56),
    ASduType.M_ME_TD_1: (NormalizedValue, Quality, Time56),
    ASduType.M_ME_TE_1: (ScaledValue, Quality, Time56),
    ASduType.M_ME_TF_1: (ShortFloat, Quality, Time56),
    ASduType.M_IT_TB_1: (BinaryCounterReading, Time56),
    ASduType.M_EP_TD_1: (SingleProtectionEvent, Time16, Time56),
    ASduType.M_EP_TE_1: (ProtectionStartEvent, ProtectionQuality, Time16, Time56),
    ASduType.M_EP_TF_1: (OutputCircuitInformation, ProtectionQuality, Time16, Time56),
    ASduType.C_SC_NA_1: (SingleCommand,),
    ASduType.C_DC_NA_1: (DoubleCommand,),
    ASduType.C_RC_NA_1: (RegulatingStepCommand,),
    ASduType.C_SE_NA_1: (NormalizedValue, QualifierOfSetPointCommand),
    ASduType.C_SE_NB_1: (ScaledValue, QualifierOfSetPointCommand),
    ASduType.C_SE_NC_1: (ShortFloat, QualifierOfSetPointCommand),
    ASduType.C_BO_NA_1: (BinaryStateInformation,),
    ASduType.C_SC_TA_1: (SingleCommand, Time56),
    ASduType.C_DC_TA_1: (DoubleCommand, Time56),
    ASduType.C_RC_TA_1: (RegulatingStepCommand, Time56),
    ASduType.C_SE_TA_1: (NormalizedValue, QualifierOfSetPointCommand, Time56),
    ASduType.C_SE_TB_1: (ScaledValue, QualifierOfSetPointCommand, Time56),
    ASduType.C_SE_TC_1: (ShortFloat, QualifierOfSetPointCommand, Time56),
    ASduType.C_BO_TA_1: (BinaryStateInformation, Time56),
    ASduType.M_EI_NA_1: (CauseOfInitialization,),
    ASduType.C_IC_NA_1: (QualifierOfInterrogation,),
    ASduType.C_CI_NA_1: (QualifierOfCounterInterrogation,),
    ASduType.C_RD_NA_1: (),
    ASduType.C_CS_NA_1: (Time56,),
    ASduType.C_TS_NA_1: (FixedTestBitPattern,),
    ASduType.C_RP_NA_1: (QualifierOfResetProcessCommand,),
    ASduType.C_CD_NA_1: (Time16,),
    ASduType.C_TS_TA_1: (TestSequenceCounter, Time56),
    ASduType.P_ME_NA_1: (NormalizedValue, QualifierOfParameterOfMeasuredValues),
    ASduType.P_ME_NB_1: (ScaledValue, QualifierOfParameterOfMeasuredValues),
    ASduType.P_ME_NC_1: (ShortFloat, QualifierOfParameterOfMeasuredValues),
    ASduType.P_AC_NA_1: (QualifierOfParameterActivation,),
    ASduType.F_FR_NA_1: (NameOfFile, LengthOfFile, FileReadyQualifier),
    ASduType.F_SR_NA_1: (NameOfFile, NameOfSection, LengthOfFile, SectionReadyQualifier),
    ASduType.F_SC_NA_1: (NameOfFile, NameOfSection, SelectAndCallQualifier),
    ASduType.F_LS_NA_1: (NameOfFile, NameOfSection, LastSectionQualifier, FileChecksum),
    ASduType.F_AF_NA_1: (NameOfFile, NameOfSection, AcknowledgeFileQualifier),
    ASduType.F_SG_NA_1: (NameOfFile, NameOfSection, FileSegment),
    ASduType.F_DR_TA_1: (NameOfFile, LengthOfFile, StatusOfFile, Time56),
    ASduType.F_SC_NB_1: (NameOfFile, Time56, Time56),
}


def get_element_layout(type_id: int) -> Optional[ElementLayout]:
    """
    Get the element layout of one information object group.

    Args:
        type_id: Type identification

    Returns:
        Tuple of element classes, or None if the type is not supported
    """
    try:
        return ELEMENT_LAYOUTS[ASduType(type_id)]
    except ValueError:
        return None


def get_layout_size(layout: ElementLayout) -> int:
    """Encoded size in bytes of one element group (the minimum for F_SG_NA_1)."""
    return sum(element.SIZE for element in layout)


def get_type_name(type_id: int) -> str:
    """Get mnemonic for a type id. Unknown ids return 'Type N'."""
    try:
        return ASduType(type_id).name
    except ValueError:
        return f"Type {type_id}"
