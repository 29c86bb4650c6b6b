"""
IEC 60870-5 information element codecs.

Each element is a dataclass with a SIZE, encode(buffer, offset) and
decode(reader). elements.types maps every supported ASDU type id to the
ordered element layout of one information object.
"""

from iec60870py.elements.base import InformationElement
from iec60870py.elements.commands import (
    CommandQualifier,
    DoubleCommand,
    DoubleCommandState,
    QualifierOfSetPointCommand,
    RegulatingStepCommand,
    RegulatingStepState,
    SingleCommand,
)
from iec60870py.elements.counter import BinaryCounterReading, CounterFlags
from iec60870py.elements.file import (
    AcknowledgeAction,
    AcknowledgeFileQualifier,
    FileChecksum,
    FileError,
    FileReadyQualifier,
    FileSegment,
    FileStatusFlag,
    LastSectionAction,
    LastSectionQualifier,
    LengthOfFile,
    NameOfFile,
    NameOfSection,
    SectionReadyQualifier,
    SelectAndCallAction,
    SelectAndCallQualifier,
    StatusOfFile,
)
from iec60870py.elements.protection import (
    EventState,
    OutputCircuitFlag,
    OutputCircuitInformation,
    ProtectionQuality,
    ProtectionStartEvent,
    SingleProtectionEvent,
    StartEventFlag,
)
from iec60870py.elements.qualifiers import (
    CauseOfInitialization,
    FixedTestBitPattern,
    FreezeBehaviour,
    QualifierOfCounterInterrogation,
    QualifierOfInterrogation,
    QualifierOfParameterActivation,
    QualifierOfParameterOfMeasuredValues,
    QualifierOfResetProcessCommand,
    TestSequenceCounter,
)
from iec60870py.elements.quality import (
    DoublePointState,
    DoublePointWithQuality,
    Quality,
    QualityFlag,
    SinglePointWithQuality,
)
from iec60870py.elements.time import Time16, Time24, Time56
from iec60870py.elements.types import ASduType, get_element_layout, get_type_name
from iec60870py.elements.values import (
    BinaryStateInformation,
    NormalizedValue,
    ScaledValue,
    ShortFloat,
    ValueWithTransientState,
)

__all__ = [
    "ASduType",
    "AcknowledgeAction",
    "AcknowledgeFileQualifier",
    "BinaryCounterReading",
    "BinaryStateInformation",
    "CauseOfInitialization",
    "CommandQualifier",
    "CounterFlags",
    "DoubleCommand",
    "DoubleCommandState",
    "DoublePointState",
    "DoublePointWithQuality",
    "EventState",
    "FileChecksum",
    "FileError",
    "FileReadyQualifier",
    "FileSegment",
    "FileStatusFlag",
    "FixedTestBitPattern",
    "FreezeBehaviour",
    "InformationElement",
    "LastSectionAction",
    "LastSectionQualifier",
    "LengthOfFile",
    "NameOfFile",
    "NameOfSection",
    "NormalizedValue",
    "OutputCircuitFlag",
    "OutputCircuitInformation",
    "ProtectionQuality",
    "ProtectionStartEvent",
    "QualifierOfCounterInterrogation",
    "QualifierOfInterrogation",
    "QualifierOfParameterActivation",
    "QualifierOfParameterOfMeasuredValues",
    "QualifierOfResetProcessCommand",
    "QualifierOfSetPointCommand",
    "Quality",
    "QualityFlag",
    "RegulatingStepCommand",
    "RegulatingStepState",
    "ScaledValue",
    "SectionReadyQualifier",
    "SelectAndCallAction",
    "SelectAndCallQualifier",
    "ShortFloat",
    "SingleCommand",
    "SingleProtectionEvent",
    "SinglePointWithQuality",
    "StartEventFlag",
    "StatusOfFile",
    "TestSequenceCounter",
    "Time16",
    "Time24",
    "Time56",
    "ValueWithTransientState",
    "get_element_layout",
    "get_type_name",
]
