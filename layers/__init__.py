"""
IEC 60870-5 protocol layer implementations.

This package provides:
- APdu: APCI framing of -104 (apdu.py)
- ASdu, InformationObject: application service data units (asdu.py)
- ApplicationLayer: builders for control direction ASDUs (application.py)
- LinkLayer: FT1.2 framing of -101 (link.py)

For constants and helper types, use the submodules directly:
- iec60870py.layers.apdu: ApciType, SEQUENCE_MODULUS, MAX_APDU_LENGTH, etc.
- iec60870py.layers.link: LinkFrame, ControlField, PrimaryFunction, etc.
"""

from .asdu import ASdu, InformationObject
from .apdu import APdu, ApciType
from .application import ApplicationLayer
from .link import LinkLayer

__all__ = [
    "APdu",
    "ASdu",
    "ApciType",
    "ApplicationLayer",
    "InformationObject",
    "LinkLayer",
]
