"""
Rankings to Sector Mapping Module

Maps the ranked stock lists onto sectors, tallies appearances per list,
flags sectors whose rankings contradict their index move, and scores how
concentrated the rankings are.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from marketintel.models.snapshots import IndustrySectorSnapshot, RankedStock, TopRankings
from marketintel.reference.reference_data import ReferenceData, get_reference_data

logger = logging.getLogger(__name__)

UNKNOWN_SECTOR = "Unknown"

RANKING_LISTS = ("top_gainers", "top_losers", "top_volume", "top_value")


@dataclass(frozen=True)
class RankingsBySector:
    """Ranking appearances for one sector."""

    sector_id: str
    sector_name: str
    top_gainers: int = 0
    top_losers: int = 0
    top_volume: int = 0
    top_value: int = 0
    total_rankings: int = 0
    sector_change: float = 0.0
    is_anomaly: bool = False
    anomaly_reason: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "sector_id": self.sector_id,
            "sector_name": self.sector_name,
            "top_gainers": self.top_gainers,
            "top_losers": self.top_losers,
            "top_volume": self.top_volume,
            "top_value": self.top_value,
            "total_rankings": self.total_rankings,
            "sector_change": self.sector_change,
            "is_anomaly": self.is_anomaly,
            "anomaly_reason": self.anomaly_reason,
        }


@dataclass(frozen=True)
class RankingsSectorMap:
    """Rankings rolled up by sector."""

    by_sector: List[RankingsBySector] = field(default_factory=list)
    dominant_sectors: List[str] = field(default_factory=list)
    concentration_score: int = 0
    anomalies: List[RankingsBySector] = field(default_factory=list)

    def get(self, sector_id: str) -> Optional[RankingsBySector]:
        for mapping in self.by_sector:
            if mapping.sector_id == sector_id:
                return mapping
        return None

    def to_dict(self) -> Dict:
        return {
            "by_sector": [s.to_dict() for s in self.by_sector],
            "dominant_sectors": list(self.dominant_sectors),
            "concentration_score": self.concentration_score,
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


def resolve_stock_sector(
    stock: RankedStock,
    reference: ReferenceData,
    sector_ids: Iterable[str] = (),
) -> str:
    """
    Sector for a ranked stock.

    The stock's own sector code is used only when it names a known sector,
    either one of ``sector_ids`` or a taxonomy sector. Industry codes and
    other unrecognized codes fall back to the symbol lookup.
    """
    if stock.sector_code:
        code = stock.sector_code.upper()
        known = {s.upper(): s for s in sector_ids}
        if code in known:
            return known[code]
        if code in reference.sectors:
            return code
    return reference.sector_for_symbol(stock.symbol) or UNKNOWN_SECTOR


def map_rankings_to_sectors(
    rankings: TopRankings,
    sectors: Optional[IndustrySectorSnapshot] = None,
    reference: Optional[ReferenceData] = None,
) -> RankingsSectorMap:
    """
    Tally ranking appearances per sector.

    Every taxonomy sector starts at zero; sectors without any appearance
    are dropped from the result.

    Args:
        rankings: The four ranked lists
        sectors: Sector snapshot used to fill in each sector's change
        reference: Reference data for symbol -> sector lookup
    """
    reference = reference or get_reference_data()
    sector_ids = [s.id for s in sectors.sectors] if sectors is not None else []

    counts: Dict[str, Dict[str, int]] = {}
    names: Dict[str, str] = {}
    for sector_id, definition in reference.sectors.items():
        counts[sector_id] = dict.fromkeys(RANKING_LISTS, 0)
        names[sector_id] = definition.name

    for list_name in RANKING_LISTS:
        for stock in getattr(rankings, list_name):
            sector_id = resolve_stock_sector(stock, reference, sector_ids)
            if sector_id not in counts:
                counts[sector_id] = dict.fromkeys(RANKING_LISTS, 0)
                names[sector_id] = sector_id
            counts[sector_id][list_name] += 1

    changes: Dict[str, float] = {}
    if sectors is not None:
        for snapshot in sectors.sectors:
            changes[snapshot.id] = snapshot.change_percent

    mappings = []
    for sector_id, tally in counts.items():
        total = sum(tally.values())
        if total == 0:
            continue
        mappings.append(
            RankingsBySector(
                sector_id=sector_id,
                sector_name=names[sector_id],
                top_gainers=tally["top_gainers"],
                top_losers=tally["top_losers"],
                top_volume=tally["top_volume"],
                top_value=tally["top_value"],
                total_rankings=total,
                sector_change=changes.get(sector_id, 0.0),
            )
        )

    anomalies = detect_sector_anomalies(mappings)
    reasons: Dict[str, str] = {}
    for anomaly in anomalies:
        reasons.setdefault(anomaly.sector_id, anomaly.anomaly_reason)

    by_sector = [
        RankingsBySector(
            **{**m.to_dict(), "is_anomaly": True, "anomaly_reason": reasons[m.sector_id]}
        )
        if m.sector_id in reasons
        else m
        for m in mappings
    ]
    by_sector.sort(key=lambda s: s.total_rankings, reverse=True)

    return RankingsSectorMap(
        by_sector=by_sector,
        dominant_sectors=[s.sector_name for s in by_sector[:3]],
        concentration_score=calculate_rankings_concentration(by_sector),
        anomalies=anomalies,
    )


def detect_sector_anomalies(by_sector: List[RankingsBySector]) -> List[RankingsBySector]:
    """Sectors whose ranking appearances contradict their index move."""
    anomalies = []

    for sector in by_sector:
        change = sector.sector_change
        reasons = []

        if change > 1 and sector.top_gainers == 0:
            reasons.append(f"Sector up {change:.1f}% but no stocks in top gainers")
        if change < -1 and sector.top_gainers >= 2:
            reasons.append(
                f"Sector down {change:.1f}% but {sector.top_gainers} stocks in top gainers"
            )
        if change > 1 and sector.top_losers >= 2:
            reasons.append(
                f"Sector up {change:.1f}% but {sector.top_losers} stocks in top losers"
            )

        for reason in reasons:
            anomalies.append(
                RankingsBySector(
                    **{**sector.to_dict(), "is_anomaly": True, "anomaly_reason": reason}
                )
            )

    return anomalies


def calculate_rankings_concentration(by_sector: List[RankingsBySector]) -> int:
    """Share of appearances held by the three busiest sectors, 0-100."""
    total = sum(s.total_rankings for s in by_sector)
    if total == 0:
        return 0

    top3 = sorted((s.total_rankings for s in by_sector), reverse=True)[:3]
    return round(sum(top3) / total * 100)


def calculate_sector_momentum(
    sector_id: str,
    rankings_map: RankingsSectorMap,
    sector_change: float,
) -> float:
    """
    Rankings-driven momentum score for one sector (0-100).

    Starts at 50; rewards ranking presence and gainers, then adjusts by
    the sector's own change.
    """
    sector = rankings_map.get(sector_id)
    if sector is None:
        return 50.0

    score = 50.0
    score += min(30, sector.total_rankings * 6)
    score += sector.top_gainers * 3

    if sector_change > 0:
        score += min(10, sector_change * 2)
    else:
        score -= min(10, abs(sector_change) * 2)

    return max(0.0, min(100.0, score))
