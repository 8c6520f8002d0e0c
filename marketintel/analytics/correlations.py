"""
Rankings vs Sector Correlation Module

Cross-reference the ranked stock lists against sector performance:
per-sector agreement between a sector's move and its stocks' appearances
in the gainer and loser lists, anomalies where the two contradict, how
concentrated the rankings are, and a per-stock cross-reference table.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

import pandas as pd

from marketintel.analytics.rankings_mapper import resolve_stock_sector
from marketintel.models.snapshots import IndustrySectorSnapshot, RankedStock, TopRankings
from marketintel.reference.reference_data import ReferenceData, get_reference_data

logger = logging.getLogger(__name__)


class CorrelationStrength(Enum):
    STRONG_POSITIVE = "Strong Positive"
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"
    STRONG_NEGATIVE = "Strong Negative"

    @property
    def is_aligned(self) -> bool:
        return self in (CorrelationStrength.STRONG_POSITIVE, CorrelationStrength.POSITIVE)


class AnomalyType(Enum):
    SECTOR_UP_NO_RANKINGS = "Sector Up No Rankings"
    SECTOR_DOWN_MANY_RANKINGS = "Sector Down Many Rankings"
    DIVERGENT_PERFORMANCE = "Divergent Performance"
    NO_ANOMALY = "No Anomaly"


CORRELATION_SCORES = {
    CorrelationStrength.STRONG_POSITIVE: 90,
    CorrelationStrength.POSITIVE: 70,
    CorrelationStrength.NEUTRAL: 50,
    CorrelationStrength.NEGATIVE: 30,
    CorrelationStrength.STRONG_NEGATIVE: 10,
}

# Minimum sector move (%) for a direction
DIRECTION_THRESHOLD = 0.5
STRONG_APPEARANCES = 3
ANOMALY_THRESHOLD = 1.0

# Ranked list attribute -> cross-reference category
CROSS_REFERENCE_CATEGORIES = OrderedDict(
    [
        ("top_gainers", "gainers"),
        ("top_losers", "losers"),
        ("top_volume", "volume"),
        ("top_value", "value"),
    ]
)

UNKNOWN_SECTOR = "Unknown"


# =============================================================================
# Result Records
# =============================================================================


@dataclass(frozen=True)
class SectorRankingCounts:
    """Ranking appearances of one snapshot sector."""

    sector_id: str
    sector_name: str
    sector_change: float
    rankings_count: int = 0
    gainers: int = 0
    losers: int = 0
    volume: int = 0
    value: int = 0


@dataclass(frozen=True)
class SectorCorrelation:
    sector_id: str
    sector_name: str
    sector_change: float
    rankings_count: int
    expected_count: float
    correlation: CorrelationStrength
    correlation_score: int
    anomaly: AnomalyType

    def to_dict(self) -> Dict:
        return {
            "sector_id": self.sector_id,
            "sector_name": self.sector_name,
            "sector_change": self.sector_change,
            "rankings_count": self.rankings_count,
            "expected_count": self.expected_count,
            "correlation": self.correlation.value,
            "correlation_score": self.correlation_score,
            "anomaly": self.anomaly.value,
        }


@dataclass(frozen=True)
class SectorAnomaly:
    sector_id: str
    sector_name: str
    sector_change: float
    rankings_count: int
    anomaly: AnomalyType
    severity: str
    explanation: str
    insight: str

    def to_dict(self) -> Dict:
        return {
            "sector_id": self.sector_id,
            "sector_name": self.sector_name,
            "sector_change": self.sector_change,
            "rankings_count": self.rankings_count,
            "anomaly": self.anomaly.value,
            "severity": self.severity,
            "explanation": self.explanation,
            "insight": self.insight,
        }


@dataclass(frozen=True)
class RankingsVsSectorAnalysis:
    overall_correlation: CorrelationStrength
    correlation_score: int
    sector_correlations: List[SectorCorrelation] = field(default_factory=list)
    anomalies: List[SectorAnomaly] = field(default_factory=list)
    aligned: bool = False
    insights: List[str] = field(default_factory=list)
    timestamp: int = 0

    def to_dict(self) -> Dict:
        return {
            "overall_correlation": self.overall_correlation.value,
            "correlation_score": self.correlation_score,
            "sector_correlations": [c.to_dict() for c in self.sector_correlations],
            "anomalies": [a.to_dict() for a in self.anomalies],
            "aligned": self.aligned,
            "insights": list(self.insights),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SectorDominance:
    dominant: List[str]
    dominance_score: int
    sector_count: int
    top_sector_percent: int

    def to_dict(self) -> Dict:
        return {
            "dominant": list(self.dominant),
            "dominance_score": self.dominance_score,
            "sector_count": self.sector_count,
            "top_sector_percent": self.top_sector_percent,
        }


@dataclass(frozen=True)
class BreadthImpact:
    confirmed: bool
    rankings_breadth: str
    explanation: str

    def to_dict(self) -> Dict:
        return {
            "confirmed": self.confirmed,
            "rankings_breadth": self.rankings_breadth,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class ConcentrationAnalysis:
    score: int
    level: str
    top3_percent: int
    interpretation: str

    def to_dict(self) -> Dict:
        return {
            "score": self.score,
            "level": self.level,
            "top3_percent": self.top3_percent,
            "interpretation": self.interpretation,
        }


@dataclass(frozen=True)
class RankingsImpactAnalysis:
    impact: str
    dominance: SectorDominance
    breadth_impact: BreadthImpact
    concentration: ConcentrationAnalysis
    observations: List[str] = field(default_factory=list)
    timestamp: int = 0

    def to_dict(self) -> Dict:
        return {
            "impact": self.impact,
            "dominance": self.dominance.to_dict(),
            "breadth_impact": self.breadth_impact.to_dict(),
            "concentration": self.concentration.to_dict(),
            "observations": list(self.observations),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CorrelationSummary:
    impact: Dict[str, str]
    correlation: Dict
    anomalies: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "impact": dict(self.impact),
            "correlation": dict(self.correlation),
            "anomalies": list(self.anomalies),
            "insights": list(self.insights),
        }


@dataclass(frozen=True)
class RankedStockWithSector:
    """A unique ranked stock with every list it appears in."""

    symbol: str
    name: str
    change: float
    sector_code: str
    sector_name: str
    sector_change: float
    ranks: Dict[str, int] = field(default_factory=dict)
    value: float = 0.0
    is_anomaly: bool = False

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "change": self.change,
            "sector_code": self.sector_code,
            "sector_name": self.sector_name,
            "sector_change": self.sector_change,
            "in": dict(self.ranks),
            "value": self.value,
            "is_anomaly": self.is_anomaly,
        }


@dataclass(frozen=True)
class SectorCrossReference:
    sector_id: str
    sector_name: str
    top_gainers: int
    top_losers: int
    top_volume: int
    top_value: int
    total_rankings: int
    total_value: float
    sector_change: float
    is_anomaly: bool = False

    def to_dict(self) -> Dict:
        return {
            "sector_id": self.sector_id,
            "sector_name": self.sector_name,
            "top_gainers": self.top_gainers,
            "top_losers": self.top_losers,
            "top_volume": self.top_volume,
            "top_value": self.top_value,
            "total_rankings": self.total_rankings,
            "total_value": self.total_value,
            "sector_change": self.sector_change,
            "is_anomaly": self.is_anomaly,
        }


@dataclass(frozen=True)
class CorrelationMetrics:
    sector_count: int
    unique_stocks: int
    concentration_score: int
    anomaly_count: int
    avg_correlation_score: int
    herfindahl_score: float

    def to_dict(self) -> Dict:
        return {
            "sector_count": self.sector_count,
            "unique_stocks": self.unique_stocks,
            "concentration_score": self.concentration_score,
            "anomaly_count": self.anomaly_count,
            "avg_correlation_score": self.avg_correlation_score,
            "herfindahl_score": self.herfindahl_score,
        }


@dataclass(frozen=True)
class MappingCoverage:
    """How many ranked stocks could be placed in a snapshot sector."""

    total: int
    mapped: int
    coverage_percent: float

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "mapped": self.mapped,
            "coverage_percent": self.coverage_percent,
        }


@dataclass(frozen=True)
class CrossReferenceData:
    ranked_stocks: List[RankedStockWithSector]
    by_sector: List[SectorCrossReference]
    metrics: CorrelationMetrics
    anomalies: List[SectorAnomaly]
    coverage: MappingCoverage

    def to_dict(self) -> Dict:
        return {
            "ranked_stocks": [s.to_dict() for s in self.ranked_stocks],
            "by_sector": [s.to_dict() for s in self.by_sector],
            "metrics": self.metrics.to_dict(),
            "anomalies": [a.to_dict() for a in self.anomalies],
            "coverage": self.coverage.to_dict(),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per ranked stock."""
        rows = []
        for stock in self.ranked_stocks:
            row = stock.to_dict()
            ranks = row.pop("in")
            for category in CROSS_REFERENCE_CATEGORIES.values():
                row[f"rank_{category}"] = ranks.get(category)
            rows.append(row)
        return pd.DataFrame(rows)


# =============================================================================
# Per-Sector Rules
# =============================================================================


def calculate_sector_correlation_strength(
    sector_change: float, gainers: int, losers: int
) -> CorrelationStrength:
    """
    Agreement between a sector's move and its gainer/loser appearances.

    Sector direction needs a move beyond 0.5%; the ranking direction is
    whichever of gainers or losers is larger. Matching directions are
    positive (strong with 3+ appearances in the matching list). Opposing
    directions are negative only with 3+ opposing appearances, and strong
    when the sector has no appearance in its own direction.
    """
    if sector_change > DIRECTION_THRESHOLD:
        direction = 1
    elif sector_change < -DIRECTION_THRESHOLD:
        direction = -1
    else:
        return CorrelationStrength.NEUTRAL

    if gainers > losers:
        dominant = 1
    elif losers > gainers:
        dominant = -1
    else:
        return CorrelationStrength.NEUTRAL

    own = gainers if direction > 0 else losers
    opposing = losers if direction > 0 else gainers

    if direction == dominant:
        if own >= STRONG_APPEARANCES:
            return CorrelationStrength.STRONG_POSITIVE
        return CorrelationStrength.POSITIVE

    if opposing >= STRONG_APPEARANCES:
        if own == 0:
            return CorrelationStrength.STRONG_NEGATIVE
        return CorrelationStrength.NEGATIVE

    return CorrelationStrength.NEUTRAL


def calculate_sector_correlation_score(correlation: CorrelationStrength) -> int:
    return CORRELATION_SCORES[correlation]


def classify_overall_correlation(average_score: float) -> CorrelationStrength:
    """Bucket an averaged score; boundaries belong to the upper bucket."""
    if average_score >= 80:
        return CorrelationStrength.STRONG_POSITIVE
    if average_score >= 60:
        return CorrelationStrength.POSITIVE
    if average_score >= 40:
        return CorrelationStrength.NEUTRAL
    if average_score >= 20:
        return CorrelationStrength.NEGATIVE
    return CorrelationStrength.STRONG_NEGATIVE


def detect_sector_anomaly_type(
    sector_change: float, gainers: int, losers: int, rankings_count: int
) -> AnomalyType:
    if sector_change > ANOMALY_THRESHOLD and gainers == 0:
        return AnomalyType.SECTOR_UP_NO_RANKINGS
    if sector_change < -ANOMALY_THRESHOLD and rankings_count >= STRONG_APPEARANCES:
        return AnomalyType.SECTOR_DOWN_MANY_RANKINGS
    if sector_change > ANOMALY_THRESHOLD and losers > gainers:
        return AnomalyType.DIVERGENT_PERFORMANCE
    if sector_change < -ANOMALY_THRESHOLD and gainers > losers:
        return AnomalyType.DIVERGENT_PERFORMANCE
    return AnomalyType.NO_ANOMALY


def calculate_anomaly_severity(sector_change: float, rankings_count: int) -> str:
    magnitude = abs(sector_change)
    if magnitude > 2 and rankings_count == 0:
        return "High"
    if magnitude > 1.5 or (magnitude > 1 and rankings_count == 0):
        return "Medium"
    return "Low"


def generate_anomaly_explanation(anomaly: AnomalyType, counts: SectorRankingCounts) -> str:
    name = counts.sector_name
    if anomaly == AnomalyType.SECTOR_UP_NO_RANKINGS:
        return f"{name} up {counts.sector_change:.1f}% but no stocks in top gainers"
    if anomaly == AnomalyType.SECTOR_DOWN_MANY_RANKINGS:
        return (
            f"{name} down {abs(counts.sector_change):.1f}% but has "
            f"{counts.gainers + counts.losers} stocks in rankings"
        )
    if anomaly == AnomalyType.DIVERGENT_PERFORMANCE:
        return f"{name} performance diverges from stock rankings"
    return "No anomaly"


def generate_anomaly_insight(anomaly: AnomalyType, sector_name: str) -> str:
    if anomaly == AnomalyType.SECTOR_UP_NO_RANKINGS:
        return f"Broad-based {sector_name} rally not concentrated in top stocks"
    if anomaly == AnomalyType.SECTOR_DOWN_MANY_RANKINGS:
        return f"{sector_name} weakness not reflected in individual stock performance"
    if anomaly == AnomalyType.DIVERGENT_PERFORMANCE:
        return f"Check {sector_name} components for rotation opportunities"
    return "No specific insight"


def _top3_share(counts: List[int]) -> int:
    total = sum(counts)
    if total == 0:
        return 0
    top3 = sum(sorted(counts, reverse=True)[:3])
    return round(top3 / total * 100)


# =============================================================================
# Analyzer
# =============================================================================


class CorrelationAnalyzer:
    """
    Analyze how the ranked stock lists line up with sector performance.

    Ranked stocks are placed in sectors by their own sector code when it
    names a known sector, otherwise by the injected symbol lookup; only
    sectors present in the snapshot count.
    """

    def __init__(self, reference: Optional[ReferenceData] = None):
        self.reference = reference or get_reference_data()
        logger.info("CorrelationAnalyzer initialized")

    def resolve_sector(self, stock: RankedStock, sector_ids: Iterable[str] = ()) -> Optional[str]:
        """Sector id for a ranked stock, or None when it cannot be placed."""
        sector_id = resolve_stock_sector(stock, self.reference, sector_ids)
        return None if sector_id == UNKNOWN_SECTOR else sector_id

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def map_rankings_by_sector(
        self, rankings: TopRankings, sectors: IndustrySectorSnapshot
    ) -> List[SectorRankingCounts]:
        """
        Count appearances per snapshot sector.

        Gainers and losers are directional; volume and value appearances
        count toward the total only. Sectors without appearances are dropped.
        """
        tallies: Dict[str, Dict[str, int]] = OrderedDict()
        for sector in sectors.sectors:
            tallies[sector.id] = {"gainers": 0, "losers": 0, "volume": 0, "value": 0}

        for list_name, category in CROSS_REFERENCE_CATEGORIES.items():
            for stock in getattr(rankings, list_name):
                sector_id = self.resolve_sector(stock, tallies)
                if sector_id in tallies:
                    tallies[sector_id][category] += 1

        snapshot = sectors.by_id()
        result = []
        for sector_id, tally in tallies.items():
            total = sum(tally.values())
            if total == 0:
                continue
            result.append(
                SectorRankingCounts(
                    sector_id=sector_id,
                    sector_name=snapshot[sector_id].name,
                    sector_change=snapshot[sector_id].change_percent,
                    rankings_count=total,
                    gainers=tally["gainers"],
                    losers=tally["losers"],
                    volume=tally["volume"],
                    value=tally["value"],
                )
            )
        return result

    # -------------------------------------------------------------------------
    # Correlation
    # -------------------------------------------------------------------------

    def calculate_sector_correlations(
        self, by_sector: List[SectorRankingCounts], sectors: IndustrySectorSnapshot
    ) -> List[SectorCorrelation]:
        total_rankings = sum(s.rankings_count for s in by_sector)
        sector_count = len(sectors.sectors)
        expected = round(total_rankings / sector_count, 2) if sector_count else 0.0

        correlations = []
        for counts in by_sector:
            strength = calculate_sector_correlation_strength(
                counts.sector_change, counts.gainers, counts.losers
            )
            correlations.append(
                SectorCorrelation(
                    sector_id=counts.sector_id,
                    sector_name=counts.sector_name,
                    sector_change=counts.sector_change,
                    rankings_count=counts.rankings_count,
                    expected_count=expected,
                    correlation=strength,
                    correlation_score=calculate_sector_correlation_score(strength),
                    anomaly=detect_sector_anomaly_type(
                        counts.sector_change, counts.gainers, counts.losers, counts.rankings_count
                    ),
                )
            )
        return correlations

    def detect_sector_anomalies(self, by_sector: List[SectorRankingCounts]) -> List[SectorAnomaly]:
        anomalies = []
        for counts in by_sector:
            anomaly = detect_sector_anomaly_type(
                counts.sector_change, counts.gainers, counts.losers, counts.rankings_count
            )
            if anomaly == AnomalyType.NO_ANOMALY:
                continue
            anomalies.append(
                SectorAnomaly(
                    sector_id=counts.sector_id,
                    sector_name=counts.sector_name,
                    sector_change=counts.sector_change,
                    rankings_count=counts.rankings_count,
                    anomaly=anomaly,
                    severity=calculate_anomaly_severity(counts.sector_change, counts.rankings_count),
                    explanation=generate_anomaly_explanation(anomaly, counts),
                    insight=generate_anomaly_insight(anomaly, counts.sector_name),
                )
            )
        return anomalies

    def analyze_rankings_vs_sector(
        self, rankings: TopRankings, sectors: IndustrySectorSnapshot
    ) -> RankingsVsSectorAnalysis:
        """Overall and per-sector agreement between rankings and sectors."""
        by_sector = self.map_rankings_by_sector(rankings, sectors)
        correlations = self.calculate_sector_correlations(by_sector, sectors)
        anomalies = self.detect_sector_anomalies(by_sector)

        if correlations:
            average = sum(c.correlation_score for c in correlations) / len(correlations)
            overall = classify_overall_correlation(average)
            score = round(average)
        else:
            overall, score = CorrelationStrength.NEUTRAL, 50

        insights = [f"Rankings-to-sector correlation: {overall.value}"]
        if overall.is_aligned:
            insights.append("Top rankings confirm sector trends - good alignment")
        elif overall in (CorrelationStrength.NEGATIVE, CorrelationStrength.STRONG_NEGATIVE):
            insights.append("Top rankings diverge from sector trends - rotation possible")
        if anomalies:
            insights.append(f"{len(anomalies)} sector anomalies detected")

        return RankingsVsSectorAnalysis(
            overall_correlation=overall,
            correlation_score=score,
            sector_correlations=correlations,
            anomalies=anomalies,
            aligned=overall.is_aligned,
            insights=insights,
            timestamp=sectors.timestamp,
        )

    # -------------------------------------------------------------------------
    # Impact
    # -------------------------------------------------------------------------

    def analyze_rankings_impact(
        self, rankings: TopRankings, sectors: IndustrySectorSnapshot
    ) -> RankingsImpactAnalysis:
        """Dominance, breadth and concentration of the rankings by sector."""
        by_sector = self.map_rankings_by_sector(rankings, sectors)
        ordered = sorted(by_sector, key=lambda s: s.rankings_count, reverse=True)
        total = sum(s.rankings_count for s in by_sector)

        share = _top3_share([s.rankings_count for s in by_sector])
        dominance = SectorDominance(
            dominant=[s.sector_id for s in ordered[:3]],
            dominance_score=share,
            sector_count=len(by_sector),
            top_sector_percent=round(ordered[0].rankings_count / total * 100) if total else 0,
        )

        total_sectors = len(sectors.sectors)
        breadth_pct = len(by_sector) / total_sectors * 100 if total_sectors else 0.0
        if breadth_pct >= 70:
            breadth, explanation = "Broad", "Rankings spread across many sectors - broad participation"
        elif breadth_pct <= 40:
            breadth, explanation = "Narrow", "Rankings concentrated in few sectors - narrow participation"
        else:
            breadth, explanation = "Mixed", "Moderately distributed rankings"
        breadth_impact = BreadthImpact(
            confirmed=breadth == "Broad", rankings_breadth=breadth, explanation=explanation
        )

        if share >= 60:
            level, interpretation = "High", "High concentration - market driven by few sectors"
        elif share >= 40:
            level, interpretation = "Medium", "Moderate concentration - balanced sector participation"
        else:
            level, interpretation = "Low", "Low concentration - broad market participation"
        concentration = ConcentrationAnalysis(
            score=share, level=level, top3_percent=share, interpretation=interpretation
        )

        if share >= 60:
            impact = "High"
        elif share >= 40:
            impact = "Medium"
        elif share > 0:
            impact = "Low"
        else:
            impact = "Unclear"

        observations = [f"Rankings impact: {impact}"]
        if dominance.dominant:
            observations.append(f"Dominant sectors: {', '.join(dominance.dominant)}")
        observations.append(f"Concentration: {level} ({share}%)")
        if dominance.sector_count > 0:
            observations.append(f"{dominance.sector_count} sectors represented in rankings")

        return RankingsImpactAnalysis(
            impact=impact,
            dominance=dominance,
            breadth_impact=breadth_impact,
            concentration=concentration,
            observations=observations,
            timestamp=sectors.timestamp,
        )

    # -------------------------------------------------------------------------
    # Cross Reference
    # -------------------------------------------------------------------------

    def generate_cross_reference_data(
        self, rankings: TopRankings, sectors: IndustrySectorSnapshot
    ) -> CrossReferenceData:
        """
        Per-stock and per-sector cross reference of the ranked lists.

        Each unique symbol carries its real position (1-based) in every list
        it appears in. The Herfindahl score is taken over each sector's share
        of ranked traded value and reported on a 0-100 scale.
        """
        snapshot = sectors.by_id()
        by_sector = self.map_rankings_by_sector(rankings, sectors)
        correlations = self.calculate_sector_correlations(by_sector, sectors)
        anomalies = self.detect_sector_anomalies(by_sector)
        anomalous = {a.sector_id for a in anomalies}

        stocks: Dict[str, Dict] = OrderedDict()
        for list_name, category in CROSS_REFERENCE_CATEGORIES.items():
            for position, stock in enumerate(getattr(rankings, list_name)):
                symbol = stock.symbol.upper()
                entry = stocks.get(symbol)
                if entry is None:
                    sector_id = self.resolve_sector(stock, snapshot)
                    entry = {"stock": stock, "sector_id": sector_id, "ranks": {}, "value": 0.0}
                    stocks[symbol] = entry
                entry["ranks"].setdefault(category, position + 1)
                if stock.value:
                    entry["value"] = max(entry["value"], stock.value)

        ranked_stocks = []
        for symbol, entry in stocks.items():
            stock = entry["stock"]
            sector_id = entry["sector_id"]
            sector = snapshot.get(sector_id) if sector_id else None
            ranked_stocks.append(
                RankedStockWithSector(
                    symbol=symbol,
                    name=stock.name or symbol,
                    change=stock.change_pct or 0.0,
                    sector_code=sector_id or UNKNOWN_SECTOR,
                    sector_name=sector.name if sector else UNKNOWN_SECTOR,
                    sector_change=sector.change_percent if sector else 0.0,
                    ranks=entry["ranks"],
                    value=entry["value"],
                    is_anomaly=sector_id in anomalous,
                )
            )

        mapped = [s for s in ranked_stocks if s.sector_code in snapshot]
        sector_values = self._sector_values(mapped)

        sector_refs = [
            SectorCrossReference(
                sector_id=c.sector_id,
                sector_name=c.sector_name,
                top_gainers=c.gainers,
                top_losers=c.losers,
                top_volume=c.volume,
                top_value=c.value,
                total_rankings=c.rankings_count,
                total_value=float(sector_values.get(c.sector_id, 0.0)),
                sector_change=c.sector_change,
                is_anomaly=c.sector_id in anomalous,
            )
            for c in by_sector
        ]

        avg_score = (
            round(sum(c.correlation_score for c in correlations) / len(correlations))
            if correlations
            else 50
        )

        metrics = CorrelationMetrics(
            sector_count=len(by_sector),
            unique_stocks=len(ranked_stocks),
            concentration_score=_top3_share([s.rankings_count for s in by_sector]),
            anomaly_count=len(anomalies),
            avg_correlation_score=avg_score,
            herfindahl_score=self._herfindahl(sector_values),
        )

        total = len(ranked_stocks)
        coverage = MappingCoverage(
            total=total,
            mapped=len(mapped),
            coverage_percent=round(len(mapped) / total * 100, 1) if total else 0.0,
        )
        if total and coverage.coverage_percent < 50:
            logger.warning(
                f"Only {coverage.mapped}/{total} ranked stocks mapped to a snapshot sector"
            )

        return CrossReferenceData(
            ranked_stocks=ranked_stocks,
            by_sector=sector_refs,
            metrics=metrics,
            anomalies=anomalies,
            coverage=coverage,
        )

    @staticmethod
    def _sector_values(stocks: List[RankedStockWithSector]) -> Dict[str, float]:
        if not stocks:
            return {}
        df = pd.DataFrame({"sector": [s.sector_code for s in stocks], "value": [s.value for s in stocks]})
        return df.groupby("sector")["value"].sum().to_dict()

    @staticmethod
    def _herfindahl(sector_values: Dict[str, float]) -> float:
        total = sum(sector_values.values())
        if total <= 0:
            return 0.0
        shares = pd.Series(sector_values, dtype=float) / total
        return round(float((shares**2).sum() * 100), 2)


def generate_correlation_summary(
    impact: RankingsImpactAnalysis, correlation: RankingsVsSectorAnalysis
) -> CorrelationSummary:
    """Combine the impact and correlation analyses into one summary."""
    return CorrelationSummary(
        impact={"level": impact.impact, "explanation": impact.concentration.interpretation},
        correlation={
            "strength": correlation.overall_correlation.value,
            "score": correlation.correlation_score,
            "explanation": "Rankings align with sector performance"
            if correlation.aligned
            else "Rankings diverge from sector performance",
        },
        anomalies=[a.sector_name for a in correlation.anomalies],
        insights=list(impact.observations) + list(correlation.insights),
    )


def analyze_rankings_vs_sector(
    rankings: TopRankings,
    sectors: IndustrySectorSnapshot,
    reference: Optional[ReferenceData] = None,
) -> RankingsVsSectorAnalysis:
    return CorrelationAnalyzer(reference).analyze_rankings_vs_sector(rankings, sectors)


def analyze_rankings_impact(
    rankings: TopRankings,
    sectors: IndustrySectorSnapshot,
    reference: Optional[ReferenceData] = None,
) -> RankingsImpactAnalysis:
    return CorrelationAnalyzer(reference).analyze_rankings_impact(rankings, sectors)


def generate_cross_reference_data(
    rankings: TopRankings,
    sectors: IndustrySectorSnapshot,
    reference: Optional[ReferenceData] = None,
) -> CrossReferenceData:
    return CorrelationAnalyzer(reference).generate_cross_reference_data(rankings, sectors)
