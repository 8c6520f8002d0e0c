"""
Single-Stock Technical Indicators

Price-position, participation and trend measures consumed by the stock
decline diagnostic.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import pandas as pd

from marketintel.core.errors import (
    ErrorCodes,
    InvalidArgumentError,
    validate_positive,
    validate_symbol,
)
from marketintel.models.snapshots import TopRankings

logger = logging.getLogger(__name__)

TOP_LIST_SIZE = 10
SHORT_TREND_WINDOW = 5
LONG_TREND_WINDOW = 20


@dataclass(frozen=True)
class TechnicalIndicators:
    """Technical state of one stock on the diagnostic day."""

    symbol: str
    change_percent: float = 0.0
    trend_5d: float = 0.0
    trend_20d: float = 0.0
    week52_position: float = 50.0  # 0-100
    is_top_loser: bool = False
    is_top_gainer: bool = False
    is_in_any_ranking: bool = False
    relative_volume: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "change_percent": self.change_percent,
            "trend_5d": self.trend_5d,
            "trend_20d": self.trend_20d,
            "week52_position": self.week52_position,
            "is_top_loser": self.is_top_loser,
            "is_top_gainer": self.is_top_gainer,
            "is_in_any_ranking": self.is_in_any_ranking,
            "relative_volume": self.relative_volume,
        }


def calculate_week52_position(price: float, low: float, high: float) -> float:
    """
    Position of ``price`` inside the 52-week range, 0 at the low and 100 at
    the high. A flat range sits at the midpoint.

    Raises:
        InvalidArgumentError: If a price is not positive or high < low
    """
    price = validate_positive(price, "price")
    low = validate_positive(low, "week52_low")
    high = validate_positive(high, "week52_high")

    if high < low:
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_ARGUMENT,
            detail=f"52-week high {high} is below 52-week low {low}",
            context={"low": low, "high": high},
        )

    if high == low:
        return 50.0

    position = (price - low) / (high - low) * 100
    return float(min(100.0, max(0.0, position)))


def calculate_relative_volume(volume: float, average_volume: float) -> float:
    """Today's volume as a multiple of its average."""
    if volume is None or volume < 0:
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_ARGUMENT,
            detail=f"volume must be non-negative, got {volume!r}",
            context={"field": "volume"},
        )
    average_volume = validate_positive(average_volume, "average_volume")
    return float(volume) / average_volume


def calculate_trend(prices: Sequence[float], window: int) -> float:
    """
    Percent change of the close over the last ``window`` sessions.

    Prices run oldest to newest. With fewer than ``window + 1`` closes the
    oldest available close is the base; a single close has no trend.

    Raises:
        InvalidArgumentError: If the window is not positive or a close is
            not positive
    """
    if window <= 0:
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_ARGUMENT,
            detail=f"window must be positive, got {window}",
        )

    closes = pd.Series([validate_positive(p, "price") for p in prices], dtype=float)
    if len(closes) < 2:
        return 0.0

    recent = closes.iloc[-(window + 1):]
    return float((recent.iloc[-1] / recent.iloc[0] - 1) * 100)


def build_technical_indicators(
    symbol: str,
    prices: Sequence[float],
    week52_low: float,
    week52_high: float,
    volume: Optional[float] = None,
    average_volume: Optional[float] = None,
    rankings: Optional[TopRankings] = None,
) -> TechnicalIndicators:
    """
    Assemble indicators from a close history and today's ranked lists.

    Args:
        symbol: Exchange symbol
        prices: Daily closes, oldest first; the last one is today
        week52_low: Lowest close of the past year
        week52_high: Highest close of the past year
        volume: Today's traded volume
        average_volume: Average daily volume for the relative measure
        rankings: Today's ranked lists

    Raises:
        InvalidArgumentError: On a malformed symbol or non-positive price
    """
    symbol = validate_symbol(symbol)
    if not prices:
        raise InvalidArgumentError(
            ErrorCodes.VALIDATION_INVALID_ARGUMENT,
            detail="At least one close is required",
            context={"symbol": symbol},
        )

    price = prices[-1]
    change_percent = calculate_trend(prices, 1)

    relative_volume = None
    if volume is not None and average_volume is not None:
        relative_volume = calculate_relative_volume(volume, average_volume)

    is_top_loser = is_top_gainer = is_in_any_ranking = False
    if rankings is not None:
        is_top_loser = any(s.symbol.upper() == symbol for s in rankings.top_losers[:TOP_LIST_SIZE])
        is_top_gainer = any(s.symbol.upper() == symbol for s in rankings.top_gainers[:TOP_LIST_SIZE])
        is_in_any_ranking = rankings.contains(symbol)

    indicators = TechnicalIndicators(
        symbol=symbol,
        change_percent=change_percent,
        trend_5d=calculate_trend(prices, SHORT_TREND_WINDOW),
        trend_20d=calculate_trend(prices, LONG_TREND_WINDOW),
        week52_position=calculate_week52_position(price, week52_low, week52_high),
        is_top_loser=is_top_loser,
        is_top_gainer=is_top_gainer,
        is_in_any_ranking=is_in_any_ranking,
        relative_volume=relative_volume,
    )
    logger.debug(f"Technical indicators for {symbol}: {indicators.to_dict()}")
    return indicators
