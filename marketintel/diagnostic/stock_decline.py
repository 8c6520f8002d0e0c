"""
Stock Decline Diagnostic Module

Explains why a stock is falling by checking five dimensions:
- Volume signals
- Sector and market context
- Smart money flow
- Technical and price action
- Valuation

Each check raises red or yellow flags; the flag counts decide the
recommended action and a 0-100 risk level.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from marketintel.analytics.market_regime import MarketRegime
from marketintel.analytics.sector_rotation import (
    Momentum,
    RegimeContext,
    RotationSignal,
    SectorPerformance,
)
from marketintel.analytics.smart_money import SmartMoneyAnalysis
from marketintel.core.errors import validate_symbol
from marketintel.diagnostic.technical import TechnicalIndicators
from marketintel.diagnostic.volume import VolumeAnalysisData
from marketintel.models.snapshots import TopRankings

logger = logging.getLogger(__name__)


class DiagnosticCategory(Enum):
    VOLUME = "volume"
    SECTOR = "sector"
    SMART_MONEY = "smart_money"
    TECHNICAL = "technical"
    VALUATION = "valuation"


class FlagSeverity(Enum):
    RED = "red"
    YELLOW = "yellow"


class DiagnosticAction(Enum):
    """Recommended position action, most severe first."""

    IMMEDIATE_SELL = "IMMEDIATE_SELL"
    STRONG_SELL = "STRONG_SELL"
    TRIM = "TRIM"
    HOLD = "HOLD"


# =============================================================================
# Thresholds and Flag Text
# =============================================================================

DIAGNOSTIC_THRESHOLDS = {
    "strong_foreign_sell": 500,
    "institution_sell": 100,
    "smart_money_score": 40,
    "cumulative_flow": -200,
    "volume_health": 30,
    "vwad_bearish": -30,
    "concentration": 40,
    "relative_volume_low": 0.5,
    "pe_overvaluation": 1.3,  # 30% above reference P/E
    "week52_position_low": 20,
    "sector_exit_confidence": 70,
}

RED_FLAG_RISK = 25
YELLOW_FLAG_RISK = 10

# category -> flag key -> (signal, description, action)
FLAG_DESCRIPTIONS = {
    DiagnosticCategory.VOLUME: {
        "anemic": (
            "Anemic Volume",
            "Trading volume is critically low, indicating weak liquidity and lack of investor interest.",
            "Exercise extreme caution - bid-ask spreads may widen significantly.",
        ),
        "bearish_vwad": (
            "Bearish Conviction",
            "Volume-weighted advance/decline shows strong bearish conviction.",
            "Sell pressure is confirmed by volume - avoid catching falling knife.",
        ),
        "illiquid": (
            "Illiquid Market",
            "High concentration in top stocks indicates illiquid market conditions.",
            "Exit and re-entry costs may be high - consider market impact.",
        ),
        "low_relative_volume": (
            "Low Relative Volume",
            "Trading volume is below its average, indicating weak participation.",
            "Wait for volume confirmation before making decisions.",
        ),
    },
    DiagnosticCategory.SECTOR: {
        "laggard": (
            "Laggard Sector",
            "Stock sector is underperforming the market significantly.",
            "Consider rotating to leading sectors or defensive positions.",
        ),
        "exit_signal": (
            "Sector Exit Signal",
            "Strong rotation signal detected - money flowing out of this sector.",
            "Follow the smart money - reduce exposure to this sector.",
        ),
        "risk_off": (
            "Risk-Off Market",
            "Market regime confirmed as risk-off - defensive positioning favored.",
            "Reduce cyclical exposure, increase defensive holdings.",
        ),
    },
    DiagnosticCategory.SMART_MONEY: {
        "foreign_strong_sell": (
            "Foreign Strong Sell",
            "Foreign investors are aggressively selling.",
            "Foreign flows lead price action - consider following their lead.",
        ),
        "institution_sell": (
            "Institution Selling",
            "Institutional investors are net sellers.",
            "Smart money distribution - reduce positions.",
        ),
        "low_score": (
            "Low Smart Money Score",
            "Smart money sentiment is bearish.",
            "Wait for smart money confirmation before buying.",
        ),
        "negative_cumulative": (
            "Negative Cumulative Flow",
            "5-day cumulative flow is strongly negative.",
            "Sustained selling pressure - avoid counter-trend trades.",
        ),
    },
    DiagnosticCategory.TECHNICAL: {
        "top_loser": (
            "Top Loser",
            "Stock is in top 10 losers today.",
            "Strong momentum downside - wait for stabilization.",
        ),
        "low_52_week": (
            "Near 52-Week Low",
            "Stock is trading in bottom 20% of 52-week range.",
            "Support levels may be tested - risk of further decline.",
        ),
        "missing_rankings": (
            "Absent from Rankings",
            "Stock not present in any top rankings.",
            "Lack of market interest - consider why stock is ignored.",
        ),
        "double_negative_trend": (
            "Negative Short & Long Trend",
            "Both 5D and 20D trends are negative.",
            "Downtrend confirmed across timeframes.",
        ),
    },
    DiagnosticCategory.VALUATION: {
        "overvalued_vs_sector": (
            "Overvalued vs Sector",
            "P/E is significantly higher than sector average.",
            "Valuation risk - consider switching to sector peers.",
        ),
        "overvalued_vs_history": (
            "Overvalued vs History",
            "P/E is significantly higher than historical average.",
            "Valuation mean reversion risk - upside limited.",
        ),
    },
}


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class ValuationData:
    stock_pe: Optional[float] = None
    sector_pe: Optional[float] = None
    historical_pe: Optional[float] = None


@dataclass(frozen=True)
class StockDiagnosticInput:
    """Everything known about one stock and its market on the day."""

    symbol: str
    technical: TechnicalIndicators
    volume: VolumeAnalysisData
    sector: Optional[SectorPerformance] = None
    regime_context: Optional[RegimeContext] = None
    smart_money: Optional[SmartMoneyAnalysis] = None
    rankings: Optional[TopRankings] = None
    valuation: Optional[ValuationData] = None


@dataclass(frozen=True)
class DiagnosticFlag:
    category: DiagnosticCategory
    severity: FlagSeverity
    signal: str
    description: str
    action: str
    value: Optional[float] = None

    @property
    def is_red(self) -> bool:
        return self.severity == FlagSeverity.RED

    def to_dict(self) -> Dict:
        result = {
            "category": self.category.value,
            "severity": self.severity.value,
            "signal": self.signal,
            "description": self.description,
            "action": self.action,
        }
        if self.value is not None:
            result["value"] = self.value
        return result


@dataclass(frozen=True)
class StockDiagnosticResult:
    symbol: str
    overall_action: DiagnosticAction
    red_flags: List[DiagnosticFlag]
    yellow_flags: List[DiagnosticFlag]
    summary: str
    flag_counts: Dict[str, object]
    risk_level: int
    timestamp: int = field(default_factory=lambda: int(datetime.now().timestamp() * 1000))

    @property
    def flags(self) -> List[DiagnosticFlag]:
        return self.red_flags + self.yellow_flags

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "overall_action": self.overall_action.value,
            "red_flags": [f.to_dict() for f in self.red_flags],
            "yellow_flags": [f.to_dict() for f in self.yellow_flags],
            "summary": self.summary,
            "flag_counts": self.flag_counts,
            "risk_level": self.risk_level,
            "timestamp": self.timestamp,
        }


def _flag(
    category: DiagnosticCategory,
    severity: FlagSeverity,
    key: str,
    value: Optional[float] = None,
) -> DiagnosticFlag:
    signal, description, action = FLAG_DESCRIPTIONS[category][key]
    return DiagnosticFlag(
        category=category,
        severity=severity,
        signal=signal,
        description=description,
        action=action,
        value=value,
    )


# =============================================================================
# Dimension Checks
# =============================================================================


def check_volume_signals(
    volume: VolumeAnalysisData, technical: Optional[TechnicalIndicators] = None
) -> List[DiagnosticFlag]:
    flags = []
    category = DiagnosticCategory.VOLUME

    if volume.health_score < DIAGNOSTIC_THRESHOLDS["volume_health"]:
        flags.append(_flag(category, FlagSeverity.RED, "anemic", volume.health_score))

    if volume.vwad <= DIAGNOSTIC_THRESHOLDS["vwad_bearish"]:
        flags.append(_flag(category, FlagSeverity.RED, "bearish_vwad", volume.vwad))

    if volume.concentration >= DIAGNOSTIC_THRESHOLDS["concentration"]:
        flags.append(_flag(category, FlagSeverity.RED, "illiquid", volume.concentration))

    if (
        technical is not None
        and technical.relative_volume is not None
        and technical.relative_volume < DIAGNOSTIC_THRESHOLDS["relative_volume_low"]
    ):
        flags.append(
            _flag(category, FlagSeverity.YELLOW, "low_relative_volume", technical.relative_volume)
        )

    return flags


def check_sector_signals(
    sector: Optional[SectorPerformance] = None,
    regime_context: Optional[RegimeContext] = None,
) -> List[DiagnosticFlag]:
    flags = []
    category = DiagnosticCategory.SECTOR

    if sector is not None:
        if sector.momentum in (Momentum.UNDERPERFORM, Momentum.SIGNIFICANT_LAG):
            flags.append(_flag(category, FlagSeverity.RED, "laggard", sector.vs_market))

        if (
            sector.signal == RotationSignal.EXIT
            and sector.confidence >= DIAGNOSTIC_THRESHOLDS["sector_exit_confidence"]
        ):
            flags.append(_flag(category, FlagSeverity.RED, "exit_signal", sector.confidence))

    if (
        regime_context is not None
        and regime_context.regime == MarketRegime.RISK_OFF
        and regime_context.confirmed
    ):
        flags.append(_flag(category, FlagSeverity.RED, "risk_off"))

    return flags


def check_smart_money_signals(smart_money: Optional[SmartMoneyAnalysis]) -> List[DiagnosticFlag]:
    if smart_money is None:
        return []

    flags = []
    category = DiagnosticCategory.SMART_MONEY
    foreign = smart_money.foreign
    institution = smart_money.institution

    if foreign.today_net < -DIAGNOSTIC_THRESHOLDS["strong_foreign_sell"]:
        flags.append(_flag(category, FlagSeverity.RED, "foreign_strong_sell", foreign.today_net))

    if institution.today_net < -DIAGNOSTIC_THRESHOLDS["institution_sell"]:
        flags.append(_flag(category, FlagSeverity.RED, "institution_sell", institution.today_net))

    if smart_money.score < DIAGNOSTIC_THRESHOLDS["smart_money_score"]:
        flags.append(_flag(category, FlagSeverity.RED, "low_score", smart_money.score))

    if foreign.trend_5day < DIAGNOSTIC_THRESHOLDS["cumulative_flow"]:
        flags.append(_flag(category, FlagSeverity.RED, "negative_cumulative", foreign.trend_5day))

    return flags


def check_technical_signals(
    symbol: str,
    technical: TechnicalIndicators,
    rankings: Optional[TopRankings] = None,
) -> List[DiagnosticFlag]:
    flags = []
    category = DiagnosticCategory.TECHNICAL

    if technical.is_top_loser:
        flags.append(_flag(category, FlagSeverity.RED, "top_loser"))

    if technical.week52_position < DIAGNOSTIC_THRESHOLDS["week52_position_low"]:
        flags.append(_flag(category, FlagSeverity.RED, "low_52_week", technical.week52_position))

    in_rankings = rankings.contains(symbol) if rankings is not None else False
    if not technical.is_in_any_ranking and not in_rankings:
        flags.append(_flag(category, FlagSeverity.YELLOW, "missing_rankings"))

    if technical.trend_5d < 0 and technical.trend_20d < 0:
        flags.append(_flag(category, FlagSeverity.RED, "double_negative_trend"))

    return flags


def check_valuation_signals(valuation: Optional[ValuationData]) -> List[DiagnosticFlag]:
    """P/E against sector and history; skipped without a stock P/E."""
    if valuation is None or valuation.stock_pe is None:
        return []

    flags = []
    category = DiagnosticCategory.VALUATION
    limit = DIAGNOSTIC_THRESHOLDS["pe_overvaluation"]

    if valuation.sector_pe and valuation.sector_pe > 0 and valuation.stock_pe > valuation.sector_pe * limit:
        flags.append(_flag(category, FlagSeverity.RED, "overvalued_vs_sector", valuation.stock_pe))

    if (
        valuation.historical_pe
        and valuation.historical_pe > 0
        and valuation.stock_pe > valuation.historical_pe * limit
    ):
        flags.append(_flag(category, FlagSeverity.RED, "overvalued_vs_history", valuation.stock_pe))

    return flags


# =============================================================================
# Decision
# =============================================================================


def _count(flags: List[DiagnosticFlag], severity: FlagSeverity) -> int:
    return sum(1 for f in flags if f.severity == severity)


def determine_overall_action(flags: List[DiagnosticFlag]) -> DiagnosticAction:
    """
    Action matrix, first match wins:
        3+ red              -> IMMEDIATE_SELL
        2 red + 2+ yellow   -> STRONG_SELL
        1-2 red             -> TRIM
        otherwise           -> HOLD
    """
    red = _count(flags, FlagSeverity.RED)
    yellow = _count(flags, FlagSeverity.YELLOW)

    if red >= 3:
        return DiagnosticAction.IMMEDIATE_SELL
    if red == 2 and yellow >= 2:
        return DiagnosticAction.STRONG_SELL
    if red >= 1:
        return DiagnosticAction.TRIM
    return DiagnosticAction.HOLD


def calculate_risk_level(flags: List[DiagnosticFlag]) -> int:
    red = _count(flags, FlagSeverity.RED)
    yellow = _count(flags, FlagSeverity.YELLOW)
    return min(100, red * RED_FLAG_RISK + yellow * YELLOW_FLAG_RISK)


def count_flags_by_category(flags: List[DiagnosticFlag]) -> Dict[str, Dict[str, int]]:
    counts = {c.value: {"red": 0, "yellow": 0} for c in DiagnosticCategory}
    for flag in flags:
        counts[flag.category.value][flag.severity.value] += 1
    return counts


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def generate_diagnostic_summary(
    symbol: str, flags: List[DiagnosticFlag], action: DiagnosticAction
) -> str:
    flag_summary = (
        f"{_plural(_count(flags, FlagSeverity.RED), 'red flag')}, "
        f"{_plural(_count(flags, FlagSeverity.YELLOW), 'yellow flag')}"
    )
    prefix = f"{symbol}: {action.value}"

    if action == DiagnosticAction.IMMEDIATE_SELL:
        return (
            f"{prefix} - Critical warning! {flag_summary}. Multiple system failures detected "
            "across volume, smart money, and technical indicators. "
            "Immediate position reduction recommended."
        )
    if action == DiagnosticAction.STRONG_SELL:
        return (
            f"{prefix} - Strong sell signal. {flag_summary}. Confirmed selling pressure across "
            "multiple dimensions. Consider reducing 50% of position."
        )
    if action == DiagnosticAction.TRIM:
        return (
            f"{prefix} - Moderate warning. {flag_summary}. Some concerning signals detected. "
            "Consider trimming 25-30% of position."
        )
    if not flags:
        return (
            f"{prefix} - No significant decline signals detected. "
            "Normal volatility. Continue monitoring."
        )
    return (
        f"{prefix} - Caution advised. {flag_summary}. Minor concerns but no immediate "
        "action required. Maintain current position."
    )


# =============================================================================
# Diagnostic
# =============================================================================


class StockDeclineDiagnostic:
    """
    Run every dimension check for a stock and decide the action.

    Dimensions are independent; a missing sector, smart money or valuation
    input simply raises no flags for that dimension.
    """

    def __init__(self):
        logger.info("StockDeclineDiagnostic initialized")

    def collect_flags(self, data: StockDiagnosticInput, symbol: str) -> List[DiagnosticFlag]:
        return [
            *check_volume_signals(data.volume, data.technical),
            *check_sector_signals(data.sector, data.regime_context),
            *check_smart_money_signals(data.smart_money),
            *check_technical_signals(symbol, data.technical, data.rankings),
            *check_valuation_signals(data.valuation),
        ]

    def diagnose(self, data: StockDiagnosticInput) -> StockDiagnosticResult:
        """
        Diagnose a declining stock.

        Args:
            data: Stock, volume and market context readings

        Returns:
            StockDiagnosticResult with flags, action and risk level

        Raises:
            InvalidArgumentError: If the symbol is malformed
        """
        symbol = validate_symbol(data.symbol)
        flags = self.collect_flags(data, symbol)

        red_flags = [f for f in flags if f.severity == FlagSeverity.RED]
        yellow_flags = [f for f in flags if f.severity == FlagSeverity.YELLOW]
        action = determine_overall_action(flags)
        risk_level = calculate_risk_level(flags)

        logger.debug(
            f"Diagnostic for {symbol}: {len(red_flags)} red, {len(yellow_flags)} yellow "
            f"-> {action.value} (risk {risk_level})"
        )

        return StockDiagnosticResult(
            symbol=symbol,
            overall_action=action,
            red_flags=red_flags,
            yellow_flags=yellow_flags,
            summary=generate_diagnostic_summary(symbol, flags, action),
            flag_counts={
                "red": len(red_flags),
                "yellow": len(yellow_flags),
                "by_category": count_flags_by_category(flags),
            },
            risk_level=risk_level,
        )


def diagnose_stock_decline(data: StockDiagnosticInput) -> StockDiagnosticResult:
    """Diagnose a declining stock with a default diagnostic."""
    return StockDeclineDiagnostic().diagnose(data)
