"""
Reference Data Provider

Sector taxonomy (sector -> group and risk behavior) and symbol -> sector
mapping, loaded from YAML and injected into every analyzer that needs a
static lookup.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml

from marketintel.core.errors import ReferenceDataError

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_PATH = Path(__file__).parent / "data" / "reference.yaml"
REFERENCE_PATH_ENV = "MARKETINTEL_REFERENCE_DATA_PATH"


class SectorGroup(Enum):
    """Behavioral grouping of a sector."""

    DEFENSIVE = "Defensive"
    CYCLICAL = "Cyclical"
    GROWTH = "Growth"
    RESOURCE = "Resource"
    PROPERTY = "Property"
    UNKNOWN = "Unknown"


class SectorBehavior(Enum):
    """How a sector reacts to a risk regime."""

    BENEFITS = "benefits"
    NEUTRAL = "neutral"
    HURTS = "hurts"


@dataclass(frozen=True)
class SectorDefinition:
    """Static description of one sector."""

    id: str
    name: str
    group: SectorGroup
    risk_on_behavior: SectorBehavior = SectorBehavior.NEUTRAL
    risk_off_behavior: SectorBehavior = SectorBehavior.NEUTRAL

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "group": self.group.value,
            "risk_on_behavior": self.risk_on_behavior.value,
            "risk_off_behavior": self.risk_off_behavior.value,
        }


@dataclass(frozen=True)
class ReferenceData:
    """
    Injected reference-data provider.

    Holds the sector taxonomy and the symbol -> sector lookup. Instances
    are immutable; build a new one to change the mapping.
    """

    sectors: Mapping[str, SectorDefinition] = field(default_factory=dict)
    symbols: Mapping[str, str] = field(default_factory=dict)
    defensive_keywords: List[str] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferenceData":
        """
        Build reference data from a parsed mapping.

        Symbols may be listed either per sector (``{FIN: [KBANK, SCB]}``)
        or per symbol (``{KBANK: FIN}``).

        Raises:
            ReferenceDataError: If the structure is invalid
        """
        if not isinstance(data, dict):
            raise ReferenceDataError(detail="Top-level reference data must be a mapping")

        raw_sectors = data.get("sectors") or {}
        if not isinstance(raw_sectors, dict):
            raise ReferenceDataError(detail="'sectors' must be a mapping of sector id to definition")

        sectors: Dict[str, SectorDefinition] = {}
        for sector_id, entry in raw_sectors.items():
            sector_id = str(sector_id).upper()
            entry = entry or {}
            try:
                sectors[sector_id] = SectorDefinition(
                    id=sector_id,
                    name=str(entry.get("name", sector_id)),
                    group=SectorGroup(entry.get("group", "Unknown")),
                    risk_on_behavior=SectorBehavior(entry.get("risk_on_behavior", "neutral")),
                    risk_off_behavior=SectorBehavior(entry.get("risk_off_behavior", "neutral")),
                )
            except (ValueError, AttributeError) as e:
                raise ReferenceDataError(
                    detail=f"Invalid definition for sector {sector_id}: {e}",
                    original_error=e,
                    context={"sector_id": sector_id},
                )

        symbols = cls._parse_symbols(data.get("symbols") or {})
        keywords = [str(k).lower() for k in data.get("defensive_keywords") or []]

        return cls(sectors=sectors, symbols=symbols, defensive_keywords=keywords)

    @staticmethod
    def _parse_symbols(raw: Any) -> Dict[str, str]:
        if not isinstance(raw, dict):
            raise ReferenceDataError(detail="'symbols' must be a mapping")

        symbols: Dict[str, str] = {}
        for key, value in raw.items():
            if isinstance(value, list):
                sector_id = str(key).upper()
                for symbol in value:
                    symbols[str(symbol).upper()] = sector_id
            elif isinstance(value, str):
                symbols[str(key).upper()] = value.upper()
            else:
                raise ReferenceDataError(
                    detail=f"Invalid symbol entry for {key!r}",
                    context={"key": str(key)},
                )
        return symbols

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ReferenceData":
        """
        Load reference data from a YAML file.

        Raises:
            ReferenceDataError: If the file is missing or malformed
        """
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except FileNotFoundError as e:
            raise ReferenceDataError(
                detail=f"Reference data file not found: {path}",
                original_error=e,
            )
        except yaml.YAMLError as e:
            raise ReferenceDataError(
                detail=f"Invalid YAML in {path}: {e}",
                original_error=e,
            )

        reference = cls.from_dict(data)
        logger.info(
            f"Loaded reference data from {path}: "
            f"{len(reference.sectors)} sectors, {len(reference.symbols)} symbols"
        )
        return reference

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def sector_for_symbol(self, symbol: str) -> Optional[str]:
        """Resolve a symbol's sector id, or None when unmapped."""
        if not symbol:
            return None
        return self.symbols.get(symbol.strip().upper())

    def get_sector(self, sector_id: str) -> Optional[SectorDefinition]:
        return self.sectors.get(sector_id.upper()) if sector_id else None

    def group_for_sector(self, sector_id: str) -> SectorGroup:
        definition = self.get_sector(sector_id)
        return definition.group if definition else SectorGroup.UNKNOWN

    def is_defensive(self, sector_id: str) -> bool:
        return self.group_for_sector(sector_id) == SectorGroup.DEFENSIVE

    def is_cyclical(self, sector_id: str) -> bool:
        """Cyclical and Growth sectors lead in risk-on markets."""
        return self.group_for_sector(sector_id) in (SectorGroup.CYCLICAL, SectorGroup.GROWTH)

    def is_defensive_name(self, name: str) -> bool:
        lowered = (name or "").lower()
        return any(keyword in lowered for keyword in self.defensive_keywords)

    def sector_name(self, sector_id: str) -> str:
        definition = self.get_sector(sector_id)
        return definition.name if definition else sector_id

    def sector_ids(self) -> Iterable[str]:
        return self.sectors.keys()


def load_reference_data(path: Optional[Union[str, Path]] = None) -> ReferenceData:
    """
    Load reference data from ``path``, the MARKETINTEL_REFERENCE_DATA_PATH
    environment variable, or the packaged default, in that order.
    """
    resolved = path or os.environ.get(REFERENCE_PATH_ENV) or DEFAULT_REFERENCE_PATH
    return ReferenceData.from_yaml(resolved)


@lru_cache()
def get_reference_data() -> ReferenceData:
    """Get the cached default reference data."""
    return load_reference_data()
