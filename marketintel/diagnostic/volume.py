"""
Market Volume Module

Volume readings that feed the stock decline diagnostic:
- Volume health: today's traded volume against its recent average
- VWAD: volume-weighted advance/decline across the ranked movers
- Concentration: share of the top-30 volume held by the top 5 names
- Relative volume per ranked stock
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Sequence

import numpy as np

from marketintel.diagnostic.technical import calculate_relative_volume
from marketintel.models.snapshots import RankedStock, TopRankings

logger = logging.getLogger(__name__)


class VolumeHealthStatus(Enum):
    EXPLOSIVE = "Explosive"
    STRONG = "Strong"
    NORMAL = "Normal"
    ANEMIC = "Anemic"


class VolumeTrend(Enum):
    UP = "Up"
    NEUTRAL = "Neutral"
    DOWN = "Down"


class ConvictionLevel(Enum):
    BULLISH = "Bullish"
    NEUTRAL = "Neutral"
    BEARISH = "Bearish"


class ConcentrationLevel(Enum):
    HEALTHY = "Healthy"
    NORMAL = "Normal"
    RISKY = "Risky"


VOLUME_THRESHOLDS = {
    "explosive": 90,
    "strong": 70,
    "normal": 30,
    "trend_change_pct": 10.0,
    "conviction": 30.0,
    "concentration_risky": 40.0,
    "concentration_normal": 25.0,
}

NEUTRAL_HEALTH_SCORE = 50
CONCENTRATION_TOP = 5
CONCENTRATION_UNIVERSE = 30


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class VolumeAnalysisData:
    """Volume health readings for the stock's market."""

    health_score: float  # 0-100
    vwad: float  # volume-weighted advance/decline, -100..100
    concentration: float  # % of value in the top names


@dataclass(frozen=True)
class VolumeHealth:
    current_volume: float
    average_volume: Optional[float]
    health_score: int
    status: VolumeHealthStatus
    trend: VolumeTrend

    def to_dict(self) -> Dict:
        return {
            "current_volume": self.current_volume,
            "average_volume": self.average_volume,
            "health_score": self.health_score,
            "status": self.status.value,
            "trend": self.trend.value,
        }


@dataclass(frozen=True)
class VWADResult:
    vwad: float
    conviction: ConvictionLevel
    up_volume: float
    down_volume: float
    total_volume: float

    def to_dict(self) -> Dict:
        return {
            "vwad": self.vwad,
            "conviction": self.conviction.value,
            "up_volume": self.up_volume,
            "down_volume": self.down_volume,
            "total_volume": self.total_volume,
        }


@dataclass(frozen=True)
class VolumeConcentration:
    top_volume: float
    total_volume: float
    concentration: float
    level: ConcentrationLevel

    def to_dict(self) -> Dict:
        return {
            "top_volume": self.top_volume,
            "total_volume": self.total_volume,
            "concentration": self.concentration,
            "level": self.level.value,
        }


@dataclass(frozen=True)
class MarketVolumeReport:
    """All market-wide volume readings for one day."""

    health: VolumeHealth
    vwad: VWADResult
    concentration: VolumeConcentration

    def to_analysis_data(self) -> VolumeAnalysisData:
        return VolumeAnalysisData(
            health_score=float(self.health.health_score),
            vwad=self.vwad.vwad,
            concentration=self.concentration.concentration,
        )

    def to_dict(self) -> Dict:
        return {
            "health": self.health.to_dict(),
            "vwad": self.vwad.to_dict(),
            "concentration": self.concentration.to_dict(),
        }


# =============================================================================
# Volume Health
# =============================================================================


def classify_health(score: float) -> VolumeHealthStatus:
    if score >= VOLUME_THRESHOLDS["explosive"]:
        return VolumeHealthStatus.EXPLOSIVE
    if score >= VOLUME_THRESHOLDS["strong"]:
        return VolumeHealthStatus.STRONG
    if score >= VOLUME_THRESHOLDS["normal"]:
        return VolumeHealthStatus.NORMAL
    return VolumeHealthStatus.ANEMIC


def calculate_volume_trend(current: float, previous: Optional[float]) -> VolumeTrend:
    """Direction of today's volume against the previous session, +/-10% band."""
    if not previous:
        return VolumeTrend.NEUTRAL

    change_pct = (current - previous) / previous * 100
    if change_pct > VOLUME_THRESHOLDS["trend_change_pct"]:
        return VolumeTrend.UP
    if change_pct < -VOLUME_THRESHOLDS["trend_change_pct"]:
        return VolumeTrend.DOWN
    return VolumeTrend.NEUTRAL


def average_volume(history: Iterable[float]) -> Optional[float]:
    """Mean of earlier session volumes, or None without history."""
    values = [float(v) for v in history if v is not None]
    if not values:
        return None
    return float(np.mean(values))


def calculate_volume_health(
    current_volume: float,
    average: Optional[float] = None,
    previous_volume: Optional[float] = None,
) -> VolumeHealth:
    """
    Score today's volume against its average.

    The score is (current / average) * 50 clamped to 0-100, so an average
    day scores 50. Without a usable average the score is a neutral 50.
    """
    current = max(0.0, float(current_volume))
    if average is not None:
        average = max(0.0, float(average))

    if average:
        score = int(round(min(100.0, max(0.0, current / average * 50))))
    else:
        score = NEUTRAL_HEALTH_SCORE

    return VolumeHealth(
        current_volume=current,
        average_volume=average,
        health_score=score,
        status=classify_health(score),
        trend=calculate_volume_trend(current, previous_volume),
    )


# =============================================================================
# VWAD
# =============================================================================


def classify_conviction(vwad: float) -> ConvictionLevel:
    if vwad >= VOLUME_THRESHOLDS["conviction"]:
        return ConvictionLevel.BULLISH
    if vwad <= -VOLUME_THRESHOLDS["conviction"]:
        return ConvictionLevel.BEARISH
    return ConvictionLevel.NEUTRAL


def calculate_vwad(stocks: Sequence[RankedStock]) -> VWADResult:
    """
    Volume-weighted advance/decline, -100 to +100.

    Unchanged stocks add to the total but to neither side.
    """
    up_volume = down_volume = total_volume = 0.0
    for stock in stocks:
        volume = max(0.0, stock.volume or 0.0)
        total_volume += volume
        change = stock.change_pct or 0.0
        if change > 0:
            up_volume += volume
        elif change < 0:
            down_volume += volume

    vwad = 0.0
    if total_volume > 0:
        vwad = (up_volume - down_volume) / total_volume * 100

    return VWADResult(
        vwad=round(vwad, 2),
        conviction=classify_conviction(vwad),
        up_volume=round(up_volume),
        down_volume=round(down_volume),
        total_volume=round(total_volume),
    )


# =============================================================================
# Concentration
# =============================================================================


def classify_concentration(concentration: float) -> ConcentrationLevel:
    if concentration >= VOLUME_THRESHOLDS["concentration_risky"]:
        return ConcentrationLevel.RISKY
    if concentration >= VOLUME_THRESHOLDS["concentration_normal"]:
        return ConcentrationLevel.NORMAL
    return ConcentrationLevel.HEALTHY


def calculate_volume_concentration(stocks: Sequence[RankedStock]) -> VolumeConcentration:
    """Share of the top-30 volume traded in the five busiest names."""
    volumes = sorted((s.volume or 0.0 for s in stocks), reverse=True)
    top_volume = sum(volumes[:CONCENTRATION_TOP])
    total_volume = sum(volumes[:CONCENTRATION_UNIVERSE])

    concentration = 0.0
    if total_volume > 0:
        concentration = top_volume / total_volume * 100

    return VolumeConcentration(
        top_volume=round(top_volume),
        total_volume=round(total_volume),
        concentration=round(concentration, 2),
        level=classify_concentration(concentration),
    )


# =============================================================================
# Relative Volume
# =============================================================================


def calculate_batch_relative_volume(
    stocks: Sequence[RankedStock], averages: Mapping[str, float]
) -> Dict[str, float]:
    """
    Relative volume per symbol, rounded to 2 places.

    Stocks without volume or a positive average read a neutral 1.0.
    """
    result = {}
    for stock in stocks:
        symbol = stock.symbol.upper()
        average = averages.get(symbol) or averages.get(stock.symbol)
        if stock.volume is None or not average or average <= 0:
            result[symbol] = 1.0
            continue
        result[symbol] = round(calculate_relative_volume(stock.volume, average), 2)
    return result


# =============================================================================
# Market Report
# =============================================================================


def analyze_market_volume(
    total_volume: float,
    rankings: TopRankings,
    average: Optional[float] = None,
    previous_volume: Optional[float] = None,
) -> MarketVolumeReport:
    """
    Build the day's volume readings.

    VWAD is taken over the top gainers and losers; concentration over the
    top volume list.
    """
    report = MarketVolumeReport(
        health=calculate_volume_health(total_volume, average, previous_volume),
        vwad=calculate_vwad(list(rankings.top_gainers) + list(rankings.top_losers)),
        concentration=calculate_volume_concentration(rankings.top_volume),
    )
    logger.debug(
        f"Volume: health={report.health.health_score}, vwad={report.vwad.vwad:.2f}, "
        f"concentration={report.concentration.concentration:.2f}%"
    )
    return report
