"""
Active Stocks Concentration Module

Measure where the day's trading attention sits: the most traded stocks by
value and volume, stocks that appear in several ranked lists at once, and
how concentrated traded value is among the top names (top-N shares and a
Herfindahl-Hirschman index).
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np

from marketintel.models.snapshots import RankedStock, TopRankings

logger = logging.getLogger(__name__)

DEFAULT_MAX_STOCKS_PER_CATEGORY = 50
DEFAULT_MAX_RESULTS = 20
MIN_CROSS_RANKINGS = 2
MAX_OBSERVATIONS = 3

HIGHLY_CONCENTRATED = "Highly Concentrated"
MODERATELY_CONCENTRATED = "Moderately Concentrated"
BROADLY_DISTRIBUTED = "Broadly Distributed"


@dataclass(frozen=True)
class StockConcentration:
    """A ranked stock with its share of total traded value."""

    symbol: str
    name: Optional[str]
    value: float
    volume: float
    change_percent: float
    sector_code: Optional[str] = None
    market_cap_group: Optional[str] = None
    concentration_score: float = 0.0
    value_percent_of_total: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "value": self.value,
            "volume": self.volume,
            "change_percent": self.change_percent,
            "sector_code": self.sector_code,
            "market_cap_group": self.market_cap_group,
            "concentration_score": self.concentration_score,
            "value_percent_of_total": self.value_percent_of_total,
        }


@dataclass(frozen=True)
class CrossRankedStock:
    """A stock found in two or more ranked lists."""

    symbol: str
    name: Optional[str]
    rankings: Dict[str, int] = field(default_factory=dict)
    ranking_count: int = 0
    strength_score: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "rankings": dict(self.rankings),
            "ranking_count": self.ranking_count,
            "strength_score": self.strength_score,
        }


@dataclass(frozen=True)
class ConcentrationMetrics:
    top10_value_concentration: int = 0
    top5_stock_concentration: int = 0
    cross_ranked_count: int = 0
    hhi: int = 0
    interpretation: str = BROADLY_DISTRIBUTED
    total_value: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "top10_value_concentration": self.top10_value_concentration,
            "top5_stock_concentration": self.top5_stock_concentration,
            "cross_ranked_count": self.cross_ranked_count,
            "hhi": self.hhi,
            "interpretation": self.interpretation,
            "total_value": self.total_value,
        }


@dataclass(frozen=True)
class ActiveStocksAnalysis:
    top_by_value: List[StockConcentration] = field(default_factory=list)
    top_by_volume: List[StockConcentration] = field(default_factory=list)
    cross_ranked: List[CrossRankedStock] = field(default_factory=list)
    metrics: ConcentrationMetrics = field(default_factory=ConcentrationMetrics)
    observations: List[str] = field(default_factory=list)
    timestamp: int = 0

    def to_dict(self) -> Dict:
        return {
            "top_by_value": [s.to_dict() for s in self.top_by_value],
            "top_by_volume": [s.to_dict() for s in self.top_by_volume],
            "cross_ranked": [s.to_dict() for s in self.cross_ranked],
            "metrics": self.metrics.to_dict(),
            "observations": list(self.observations),
            "timestamp": self.timestamp,
        }


def build_stock_concentration(
    stocks: Sequence[RankedStock], total_value: float
) -> List[StockConcentration]:
    """Attach each stock's share of ``total_value`` (0 when the total is 0)."""
    result = []
    for stock in stocks:
        value = stock.value or 0.0
        share = value / total_value * 100 if total_value > 0 else 0.0
        result.append(
            StockConcentration(
                symbol=stock.symbol,
                name=stock.name,
                value=value,
                volume=stock.volume or 0.0,
                change_percent=stock.change_pct or 0.0,
                sector_code=stock.sector_code,
                market_cap_group=stock.market_cap_group,
                concentration_score=share,
                value_percent_of_total=share,
            )
        )
    return result


def calculate_strength_score(rankings: Dict[str, int]) -> float:
    """Mean of per-list scores; rank 1 scores 100, each place below costs 10."""
    if not rankings:
        return 0.0
    return float(np.mean([max(0, 100 - (rank - 1) * 10) for rank in rankings.values()]))


def detect_cross_rankings(
    rankings: Optional[TopRankings],
    max_stocks_per_category: int = DEFAULT_MAX_STOCKS_PER_CATEGORY,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> List[CrossRankedStock]:
    """
    Stocks appearing in at least two ranked lists, strongest first.

    Only the first ``max_stocks_per_category`` entries of each list are
    read and at most ``max_results`` stocks are returned.
    """
    if rankings is None:
        return []

    names: Dict[str, Optional[str]] = {}
    positions: Dict[str, Dict[str, int]] = OrderedDict()

    for category, stocks in rankings.categories().items():
        for index, stock in enumerate(stocks[:max_stocks_per_category]):
            names.setdefault(stock.symbol, stock.name)
            positions.setdefault(stock.symbol, {}).setdefault(category, index + 1)

    results = [
        CrossRankedStock(
            symbol=symbol,
            name=names[symbol],
            rankings=ranks,
            ranking_count=len(ranks),
            strength_score=calculate_strength_score(ranks),
        )
        for symbol, ranks in positions.items()
        if len(ranks) >= MIN_CROSS_RANKINGS
    ]
    results.sort(key=lambda s: s.strength_score, reverse=True)
    return results[:max_results]


def calculate_concentration_metrics(
    rankings: Optional[TopRankings],
    total_value: float,
    cross_ranked_count: int = 0,
) -> ConcentrationMetrics:
    """Top-10 and top-5 value shares and HHI of the value leaders."""
    if rankings is None or total_value == 0:
        return ConcentrationMetrics()

    top_values = np.array([s.value or 0.0 for s in rankings.top_value[:10]], dtype=float)
    top10 = top_values.sum() / total_value * 100
    top5 = top_values[:5].sum() / total_value * 100
    shares = top_values / total_value
    hhi = float((shares**2).sum() * 10000)

    if top5 > 50 or hhi > 2000:
        interpretation = HIGHLY_CONCENTRATED
    elif top5 > 30 or hhi > 1500:
        interpretation = MODERATELY_CONCENTRATED
    else:
        interpretation = BROADLY_DISTRIBUTED

    return ConcentrationMetrics(
        top10_value_concentration=int(round(top10)),
        top5_stock_concentration=int(round(top5)),
        cross_ranked_count=cross_ranked_count,
        hhi=int(round(hhi)),
        interpretation=interpretation,
        total_value=total_value,
    )


def generate_active_stock_observations(
    top_by_value: List[StockConcentration],
    cross_ranked: List[CrossRankedStock],
    metrics: ConcentrationMetrics,
) -> List[str]:
    observations = []

    if metrics.interpretation == HIGHLY_CONCENTRATED:
        observations.append("Market attention highly concentrated in few stocks")
    elif metrics.interpretation == BROADLY_DISTRIBUTED:
        observations.append("Market attention broadly distributed across many stocks")

    if top_by_value:
        top = top_by_value[0]
        observations.append(
            f"Highest concentration: {top.symbol} ({top.value_percent_of_total:.1f}% of value)"
        )

    if cross_ranked:
        observations.append(f"{len(cross_ranked)} stocks appearing in multiple rankings")

    return observations[:MAX_OBSERVATIONS]


def analyze_active_stocks(
    rankings: TopRankings,
    top_stocks_count: int = 10,
    max_stocks_per_category: int = DEFAULT_MAX_STOCKS_PER_CATEGORY,
) -> ActiveStocksAnalysis:
    """
    Concentration analysis of the day's ranked lists.

    Total value is the sum over the value leaderboard. Volume leaders carry
    no value share.
    """
    total_value = float(sum(s.value or 0.0 for s in rankings.top_value))

    top_by_value = build_stock_concentration(rankings.top_value[:top_stocks_count], total_value)
    top_by_volume = build_stock_concentration(rankings.top_volume[:top_stocks_count], 0)

    cross_ranked = detect_cross_rankings(
        rankings,
        max_stocks_per_category=max_stocks_per_category,
        max_results=top_stocks_count,
    )
    metrics = calculate_concentration_metrics(rankings, total_value, len(cross_ranked))

    logger.debug(
        f"Active stocks: {len(cross_ranked)} cross-ranked, hhi={metrics.hhi}, "
        f"{metrics.interpretation}"
    )

    return ActiveStocksAnalysis(
        top_by_value=top_by_value,
        top_by_volume=top_by_volume,
        cross_ranked=cross_ranked,
        metrics=metrics,
        observations=generate_active_stock_observations(top_by_value, cross_ranked, metrics),
        timestamp=int(datetime.now().timestamp() * 1000),
    )
