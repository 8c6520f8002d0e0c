"""
Sector Rotation Analysis Module

Analyze sector performance against the market, classify momentum and
rotation signals per sector, and detect the market-wide rotation pattern
(broad advance or decline, risk-on or risk-off rotation, sector-specific
moves). Ranking appearances can be folded in to confirm where the money is
concentrated.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from marketintel.analytics.market_regime import MarketRegime
from marketintel.analytics.rankings_mapper import RankingsSectorMap, map_rankings_to_sectors
from marketintel.core.errors import ErrorCodes, MissingPrerequisiteError
from marketintel.models.snapshots import (
    HistoricalSectorSnapshot,
    IndustrySectorSnapshot,
    SectorSnapshot,
    TopRankings,
)
from marketintel.reference.reference_data import ReferenceData, get_reference_data

logger = logging.getLogger(__name__)


class Momentum(Enum):
    """Sector momentum relative to the market."""

    STRONG_OUTPERFORM = "Strong Outperform"
    OUTPERFORM = "Outperform"
    IN_LINE = "In-line"
    UNDERPERFORM = "Underperform"
    SIGNIFICANT_LAG = "Significant Lag"


class RotationSignal(Enum):
    """Money-flow signal for a single sector."""

    ENTRY = "Entry"
    ACCUMULATE = "Accumulate"
    HOLD = "Hold"
    DISTRIBUTE = "Distribute"
    EXIT = "Exit"


class RotationPattern(Enum):
    """Market-wide rotation pattern."""

    BROAD_ADVANCE = "Broad-Based Advance"
    BROAD_DECLINE = "Broad-Based Decline"
    RISK_ON_ROTATION = "Risk-On Rotation"
    RISK_OFF_ROTATION = "Risk-Off Rotation"
    SECTOR_SPECIFIC = "Sector-Specific"
    MIXED = "Mixed/No Clear Pattern"


# Momentum thresholds, % points vs market
ROTATION_THRESHOLDS = {
    "strong_outperform": 1.5,
    "outperform": 0.5,
    "in_line": -0.5,
    "underperform": -1.5,
}

# Change in relative performance vs the prior period that upgrades a signal
IMPROVEMENT_THRESHOLD = 0.5

MAX_SIGNAL_CONFIDENCE = 85
HOLD_CONFIDENCE = 50.0

BROAD_MOVE_SHARE = 0.6
GROUP_SPREAD = 1.0
REGIME_MARGIN = 0.5
SECTOR_SPECIFIC_MAX = 3

MIN_PERCENTILE_COUNT = 3
MAX_PERCENTILE_COUNT = 6

LEADING_MOMENTUM = (Momentum.STRONG_OUTPERFORM, Momentum.OUTPERFORM)
LAGGING_MOMENTUM = (Momentum.UNDERPERFORM, Momentum.SIGNIFICANT_LAG)


# =============================================================================
# Result Records
# =============================================================================


@dataclass(frozen=True)
class SectorPerformance:
    """One sector measured against the market."""

    sector: SectorSnapshot
    vs_market: float
    rank: int
    momentum: Momentum
    signal: RotationSignal
    confidence: float
    value: float
    value_ratio: float = 1.0
    rankings_count: int = 0

    def to_dict(self) -> Dict:
        return {
            "sector_id": self.sector.id,
            "sector_name": self.sector.name,
            "change_percent": self.sector.change_percent,
            "vs_market": round(self.vs_market, 4),
            "rank": self.rank,
            "momentum": self.momentum.value,
            "signal": self.signal.value,
            "confidence": self.confidence,
            "value": self.value,
            "value_ratio": self.value_ratio,
            "rankings_count": self.rankings_count,
        }


@dataclass(frozen=True)
class GroupPerformance:
    average_change: float
    vs_market: float

    def to_dict(self) -> Dict[str, float]:
        return {"average_change": self.average_change, "vs_market": self.vs_market}


@dataclass(frozen=True)
class RegimeContext:
    """Cyclical vs defensive group comparison."""

    regime: MarketRegime
    defensives: GroupPerformance
    cyclicals: GroupPerformance
    confirmed: bool

    def to_dict(self) -> Dict:
        return {
            "regime": self.regime.value,
            "defensives": self.defensives.to_dict(),
            "cyclicals": self.cyclicals.to_dict(),
            "confirmed": self.confirmed,
        }


@dataclass(frozen=True)
class SectorLeadership:
    leaders: List[SectorPerformance] = field(default_factory=list)
    laggards: List[SectorPerformance] = field(default_factory=list)
    market_driver: Optional[SectorPerformance] = None
    concentration: float = 50.0

    def to_dict(self) -> Dict:
        return {
            "leaders": [p.to_dict() for p in self.leaders],
            "laggards": [p.to_dict() for p in self.laggards],
            "market_driver": self.market_driver.to_dict() if self.market_driver else None,
            "concentration": self.concentration,
        }


@dataclass(frozen=True)
class SectorRotationAnalysis:
    """Complete rotation analysis for one snapshot."""

    pattern: RotationPattern
    leadership: SectorLeadership
    regime_context: RegimeContext
    performances: List[SectorPerformance] = field(default_factory=list)
    entry_signals: List[SectorPerformance] = field(default_factory=list)
    exit_signals: List[SectorPerformance] = field(default_factory=list)
    observations: List[str] = field(default_factory=list)
    focus_sectors: List[str] = field(default_factory=list)
    avoid_sectors: List[str] = field(default_factory=list)
    market_change: float = 0.0
    timestamp: int = 0

    def to_dict(self) -> Dict:
        return {
            "pattern": self.pattern.value,
            "leadership": self.leadership.to_dict(),
            "regime_context": self.regime_context.to_dict(),
            "performances": [p.to_dict() for p in self.performances],
            "entry_signals": [p.to_dict() for p in self.entry_signals],
            "exit_signals": [p.to_dict() for p in self.exit_signals],
            "observations": list(self.observations),
            "focus_sectors": list(self.focus_sectors),
            "avoid_sectors": list(self.avoid_sectors),
            "market_change": self.market_change,
            "timestamp": self.timestamp,
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Per-sector performance table, best first."""
        if not self.performances:
            return pd.DataFrame()
        df = pd.DataFrame([p.to_dict() for p in self.performances])
        return df.sort_values("rank").set_index("sector_id")


# =============================================================================
# Pure Rules
# =============================================================================


def classify_momentum(vs_market: float) -> Momentum:
    """Momentum tier for a sector's performance relative to the market."""
    if vs_market >= ROTATION_THRESHOLDS["strong_outperform"]:
        return Momentum.STRONG_OUTPERFORM
    if vs_market >= ROTATION_THRESHOLDS["outperform"]:
        return Momentum.OUTPERFORM
    if vs_market >= ROTATION_THRESHOLDS["in_line"]:
        return Momentum.IN_LINE
    if vs_market >= ROTATION_THRESHOLDS["underperform"]:
        return Momentum.UNDERPERFORM
    return Momentum.SIGNIFICANT_LAG


def detect_rotation_signal(
    sector: SectorSnapshot,
    market_change: float,
    historical_change: Optional[float] = None,
) -> Tuple[RotationSignal, float]:
    """
    Rotation signal and confidence for one sector.

    Leading sectors that are still improving on the prior period get Entry,
    otherwise Accumulate; lagging sectors that keep deteriorating get Exit,
    otherwise Distribute. Without history the weaker signal is used at a
    lower confidence.

    Returns:
        (signal, confidence) with confidence in [0, 85]
    """
    vs_market = sector.change_percent - market_change
    momentum = classify_momentum(vs_market)
    magnitude = abs(vs_market)

    if momentum in LEADING_MOMENTUM:
        if historical_change is not None:
            improvement = sector.change_percent - historical_change
            if improvement > IMPROVEMENT_THRESHOLD:
                return RotationSignal.ENTRY, _clamp_confidence(60 + magnitude * 10, 85)
            return RotationSignal.ACCUMULATE, _clamp_confidence(55 + magnitude * 8, 75)
        return RotationSignal.ACCUMULATE, _clamp_confidence(50 + magnitude * 8, 70)

    if momentum in LAGGING_MOMENTUM:
        if historical_change is not None:
            deterioration = historical_change - sector.change_percent
            if deterioration > IMPROVEMENT_THRESHOLD:
                return RotationSignal.EXIT, _clamp_confidence(60 + magnitude * 10, 85)
            return RotationSignal.DISTRIBUTE, _clamp_confidence(55 + magnitude * 8, 75)
        return RotationSignal.DISTRIBUTE, _clamp_confidence(50 + magnitude * 8, 70)

    return RotationSignal.HOLD, HOLD_CONFIDENCE


def _clamp_confidence(value: float, ceiling: float) -> float:
    return float(max(0.0, min(ceiling, MAX_SIGNAL_CONFIDENCE, value)))


def select_sectors_by_percentile(
    sectors: Sequence[SectorSnapshot], percentile: float = 30.0
) -> Tuple[List[SectorSnapshot], List[SectorSnapshot]]:
    """
    Top and bottom sectors by % change.

    The count is the percentile share of sectors, never fewer than 3 nor
    more than 6 (and never more than there are sectors). Laggards are
    returned worst first. The two lists may overlap for small inputs.
    """
    if not sectors:
        return [], []

    ordered = sorted(sectors, key=lambda s: s.change_percent, reverse=True)
    total = len(ordered)
    count = math.ceil(percentile / 100 * total)
    count = min(MAX_PERCENTILE_COUNT, max(MIN_PERCENTILE_COUNT, count), total)

    leaders = ordered[:count]
    laggards = list(reversed(ordered[-count:]))
    return leaders, laggards


def calculate_sector_percentile_rank(
    sector: SectorSnapshot, all_sectors: Sequence[SectorSnapshot]
) -> int:
    """Share of sectors that did strictly worse, 0-100."""
    if not all_sectors:
        return 50
    worse = sum(1 for s in all_sectors if s.change_percent < sector.change_percent)
    return round(worse / len(all_sectors) * 100)


def quick_sector_leadership(
    sectors: Sequence[SectorSnapshot], count: int = 3
) -> Dict[str, List[Tuple[str, float]]]:
    """Top and bottom sectors as (name, change) pairs."""
    ordered = sorted(sectors, key=lambda s: s.change_percent, reverse=True)
    return {
        "leaders": [(s.name, s.change_percent) for s in ordered[:count]],
        "laggards": [(s.name, s.change_percent) for s in list(reversed(ordered))[:count]],
    }


def rank_sectors(sectors: Sequence[SectorSnapshot]) -> Dict[str, int]:
    """Rank by % change, 1 = best. Ties keep input order."""
    if not sectors:
        return {}
    changes = pd.Series([s.change_percent for s in sectors], index=[s.id for s in sectors])
    ranks = changes.rank(ascending=False, method="first").astype(int)
    return ranks.to_dict()


# =============================================================================
# Analyzer
# =============================================================================


class SectorRotationAnalyzer:
    """
    Analyze sector rotation from daily sector snapshots.

    Sector groups (cyclical, growth, defensive) come from the injected
    reference data.
    """

    def __init__(self, reference: Optional[ReferenceData] = None, percentile: float = 30.0):
        """
        Initialize sector rotation analyzer.

        Args:
            reference: Sector taxonomy (defaults to the packaged data)
            percentile: Share of sectors reported as leaders and laggards
        """
        self.reference = reference or get_reference_data()
        self.percentile = percentile
        logger.info("SectorRotationAnalyzer initialized")

    def analyze_sector_performance(
        self,
        sector: SectorSnapshot,
        market_change: float,
        all_sectors: Sequence[SectorSnapshot],
        rankings_count: int = 0,
        historical_change: Optional[float] = None,
        historical_volume: Optional[float] = None,
        rank: Optional[int] = None,
    ) -> SectorPerformance:
        """
        Measure one sector against the market.

        ``rank`` may be precomputed with rank_sectors when scoring a whole
        snapshot; otherwise it is derived from ``all_sectors``.
        """
        if rank is None:
            rank = rank_sectors(all_sectors).get(sector.id, len(all_sectors))
        vs_market = sector.change_percent - market_change
        signal, confidence = detect_rotation_signal(sector, market_change, historical_change)

        value_ratio = 1.0
        if historical_volume and historical_volume > 0:
            value_ratio = round(sector.volume / historical_volume, 4)

        return SectorPerformance(
            sector=sector,
            vs_market=vs_market,
            rank=rank,
            momentum=classify_momentum(vs_market),
            signal=signal,
            confidence=confidence,
            value=sector.volume,
            value_ratio=value_ratio,
            rankings_count=rankings_count,
        )

    def detect_rotation_pattern(self, performances: Sequence[SectorPerformance]) -> RotationPattern:
        """Classify the market-wide rotation pattern."""
        if not performances:
            return RotationPattern.MIXED

        total = len(performances)
        avg_change = float(np.mean([p.sector.change_percent for p in performances]))
        leaders = sum(1 for p in performances if p.momentum in LEADING_MOMENTUM)
        laggards = sum(1 for p in performances if p.momentum in LAGGING_MOMENTUM)

        if leaders >= total * BROAD_MOVE_SHARE and avg_change > 0:
            return RotationPattern.BROAD_ADVANCE
        if laggards >= total * BROAD_MOVE_SHARE and avg_change < 0:
            return RotationPattern.BROAD_DECLINE

        cyclical_avg = self._group_average(performances, cyclical=True)
        defensive_avg = self._group_average(performances, cyclical=False)

        if cyclical_avg > defensive_avg + GROUP_SPREAD:
            return RotationPattern.RISK_ON_ROTATION
        if defensive_avg > cyclical_avg + GROUP_SPREAD:
            return RotationPattern.RISK_OFF_ROTATION

        if leaders <= SECTOR_SPECIFIC_MAX and laggards <= SECTOR_SPECIFIC_MAX:
            return RotationPattern.SECTOR_SPECIFIC

        return RotationPattern.MIXED

    def analyze_regime_context(self, performances: Sequence[SectorPerformance]) -> RegimeContext:
        """Compare cyclical and defensive group averages."""
        cyclical_avg = self._group_average(performances, cyclical=True)
        defensive_avg = self._group_average(performances, cyclical=False)

        if cyclical_avg > defensive_avg + REGIME_MARGIN:
            regime = MarketRegime.RISK_ON
        elif defensive_avg > cyclical_avg + REGIME_MARGIN:
            regime = MarketRegime.RISK_OFF
        else:
            regime = MarketRegime.NEUTRAL

        return RegimeContext(
            regime=regime,
            defensives=GroupPerformance(average_change=defensive_avg, vs_market=defensive_avg),
            cyclicals=GroupPerformance(average_change=cyclical_avg, vs_market=cyclical_avg),
            confirmed=abs(cyclical_avg - defensive_avg) > REGIME_MARGIN,
        )

    @staticmethod
    def calculate_concentration(performances: Sequence[SectorPerformance]) -> float:
        """Higher when fewer sectors beat the market, 0-100."""
        if not performances:
            return 50.0
        outperforming = sum(1 for p in performances if p.vs_market > 0)
        score = 100 - outperforming / len(performances) * 100
        return float(max(0.0, min(100.0, score)))

    def detect_sector_rotation(
        self,
        sectors: IndustrySectorSnapshot,
        historical: Optional[Sequence[HistoricalSectorSnapshot]] = None,
    ) -> SectorRotationAnalysis:
        """
        Full rotation analysis for one sector snapshot.

        Args:
            sectors: Today's sector snapshot
            historical: Earlier sector snapshots, most recent first

        Raises:
            MissingPrerequisiteError: If the snapshot has no sectors
        """
        if not sectors.sectors:
            raise MissingPrerequisiteError(
                ErrorCodes.DATA_EMPTY_SNAPSHOT,
                detail="Sector snapshot contains no sectors",
                context={"component": "sector_rotation"},
            )

        all_sectors = list(sectors.sectors)
        market_change = float(np.mean([s.change_percent for s in all_sectors]))
        previous = historical[0] if historical else None
        ranks = rank_sectors(all_sectors)

        performances = []
        for sector in all_sectors:
            prior = previous.get(sector.id) if previous else None
            performances.append(
                self.analyze_sector_performance(
                    sector,
                    market_change,
                    all_sectors,
                    historical_change=prior.change_percent if prior else None,
                    historical_volume=prior.volume if prior else None,
                    rank=ranks[sector.id],
                )
            )

        by_id = {p.sector.id: p for p in performances}
        leader_snapshots, laggard_snapshots = select_sectors_by_percentile(
            all_sectors, self.percentile
        )
        leaders = [by_id[s.id] for s in leader_snapshots]
        laggards = [by_id[s.id] for s in laggard_snapshots]

        pattern = self.detect_rotation_pattern(performances)
        regime_context = self.analyze_regime_context(performances)

        leadership = SectorLeadership(
            leaders=leaders,
            laggards=laggards,
            market_driver=leaders[0] if leaders else None,
            concentration=self.calculate_concentration(performances),
        )

        entry_signals = [
            p for p in performances
            if p.signal in (RotationSignal.ENTRY, RotationSignal.ACCUMULATE)
        ]
        exit_signals = [
            p for p in performances
            if p.signal in (RotationSignal.EXIT, RotationSignal.DISTRIBUTE)
        ]

        observations = [
            f"Rotation pattern: {pattern.value}",
            f"Leading sectors: {', '.join(p.sector.name for p in leaders[:3])}",
            f"Lagging sectors: {', '.join(p.sector.name for p in laggards[:3])}",
            f"Regime: {regime_context.regime.value} "
            f"({'confirmed' if regime_context.confirmed else 'not confirmed'})",
        ]

        logger.debug(
            f"Sector rotation: {pattern.value}, {len(entry_signals)} entry, "
            f"{len(exit_signals)} exit signals"
        )

        return SectorRotationAnalysis(
            pattern=pattern,
            leadership=leadership,
            regime_context=regime_context,
            performances=performances,
            entry_signals=entry_signals,
            exit_signals=exit_signals,
            observations=observations,
            focus_sectors=[p.sector.name for p in leaders[:3]],
            avoid_sectors=[p.sector.name for p in laggards[:3]],
            market_change=market_change,
            timestamp=sectors.timestamp or _now_millis(),
        )

    def analyze_sector_rotation(
        self,
        sectors: IndustrySectorSnapshot,
        rankings: Optional[TopRankings] = None,
        historical: Optional[Sequence[HistoricalSectorSnapshot]] = None,
    ) -> SectorRotationAnalysis:
        """
        Rotation analysis enriched with ranking appearances.

        Without rankings this is the same as detect_sector_rotation.
        """
        analysis = self.detect_sector_rotation(sectors, historical)
        if rankings is None:
            return analysis

        rankings_map = map_rankings_to_sectors(rankings, sectors, self.reference)
        return self._enrich_with_rankings(analysis, rankings_map)

    def _enrich_with_rankings(
        self, analysis: SectorRotationAnalysis, rankings_map: RankingsSectorMap
    ) -> SectorRotationAnalysis:
        def stamp(performance: SectorPerformance) -> SectorPerformance:
            mapping = rankings_map.get(performance.sector.id)
            return replace(performance, rankings_count=mapping.total_rankings if mapping else 0)

        performances = [stamp(p) for p in analysis.performances]
        by_id = {p.sector.id: p for p in performances}

        def restamp(items: Sequence[SectorPerformance]) -> List[SectorPerformance]:
            return [by_id[p.sector.id] for p in items]

        leaders = restamp(analysis.leadership.leaders)
        leadership = replace(
            analysis.leadership,
            leaders=leaders,
            laggards=restamp(analysis.leadership.laggards),
            market_driver=leaders[0] if leaders else None,
        )

        observations = list(analysis.observations)
        dominant = ", ".join(rankings_map.dominant_sectors)
        if rankings_map.concentration_score > 60:
            observations.append(f"High concentration: Rankings dominated by {dominant}")
        elif rankings_map.concentration_score < 30:
            observations.append("Low concentration: Rankings spread across many sectors")

        if rankings_map.anomalies:
            observations.append(f"{len(rankings_map.anomalies)} sector anomalies detected")
            for anomaly in rankings_map.anomalies[:2]:
                observations.append(f"- {anomaly.sector_name}: {anomaly.anomaly_reason}")

        if rankings_map.dominant_sectors:
            observations.append(f"Rankings dominated by: {dominant}")

        return replace(
            analysis,
            performances=performances,
            leadership=leadership,
            entry_signals=restamp(analysis.entry_signals),
            exit_signals=restamp(analysis.exit_signals),
            observations=observations,
        )

    def _group_average(self, performances: Sequence[SectorPerformance], cyclical: bool) -> float:
        """Mean raw % change of one sector group; an empty group counts as 0."""
        if cyclical:
            members = [p for p in performances if self.reference.is_cyclical(p.sector.id)]
        else:
            members = [p for p in performances if self.reference.is_defensive(p.sector.id)]
        if not members:
            return 0.0
        return float(np.mean([p.sector.change_percent for p in members]))


def _now_millis() -> int:
    return int(datetime.now().timestamp() * 1000)


def detect_sector_rotation(
    sectors: IndustrySectorSnapshot,
    historical: Optional[Sequence[HistoricalSectorSnapshot]] = None,
    percentile: float = 30.0,
    reference: Optional[ReferenceData] = None,
) -> SectorRotationAnalysis:
    """Module-level shortcut for SectorRotationAnalyzer.detect_sector_rotation."""
    analyzer = SectorRotationAnalyzer(reference=reference, percentile=percentile)
    return analyzer.detect_sector_rotation(sectors, historical)


def analyze_sector_rotation(
    sectors: IndustrySectorSnapshot,
    rankings: Optional[TopRankings] = None,
    historical: Optional[Sequence[HistoricalSectorSnapshot]] = None,
    percentile: float = 30.0,
    reference: Optional[ReferenceData] = None,
) -> SectorRotationAnalysis:
    """Module-level shortcut for SectorRotationAnalyzer.analyze_sector_rotation."""
    analyzer = SectorRotationAnalyzer(reference=reference, percentile=percentile)
    return analyzer.analyze_sector_rotation(sectors, rankings, historical)
