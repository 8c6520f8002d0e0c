# Reference Data Module

from marketintel.reference.reference_data import (
    DEFAULT_REFERENCE_PATH,
    ReferenceData,
    SectorBehavior,
    SectorDefinition,
    SectorGroup,
    get_reference_data,
    load_reference_data,
)

__all__ = [
    "DEFAULT_REFERENCE_PATH",
    "ReferenceData",
    "SectorBehavior",
    "SectorDefinition",
    "SectorGroup",
    "get_reference_data",
    "load_reference_data",
]
