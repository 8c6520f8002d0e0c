"""
Smart Money Flow Module

Score net trading flows of the four investor categories. Foreign and
institutional investors count as smart money; retail and proprietary desks
add context at a reduced weight. Produces a combined signal, a risk-on/off
read, the primary driver and short observations.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from marketintel.models.snapshots import (
    HistoricalInvestorEntry,
    InvestorCategoryFlow,
    InvestorTypeSnapshot,
)

logger = logging.getLogger(__name__)


class SignalStrength(Enum):
    """Strength of a net flow, also used for the combined signal."""

    STRONG_BUY = "Strong Buy"
    BUY = "Buy"
    NEUTRAL = "Neutral"
    SELL = "Sell"
    STRONG_SELL = "Strong Sell"

    @property
    def is_bullish(self) -> bool:
        return self in (SignalStrength.STRONG_BUY, SignalStrength.BUY)

    @property
    def is_bearish(self) -> bool:
        return self in (SignalStrength.STRONG_SELL, SignalStrength.SELL)

    @property
    def is_strong(self) -> bool:
        return self in (SignalStrength.STRONG_BUY, SignalStrength.STRONG_SELL)


class FlowTrend(Enum):
    ACCELERATING_BUY = "Accelerating Buy"
    STABLE_BUY = "Stable Buy"
    DECREASING_BUY = "Decreasing Buy"
    NEUTRAL = "Neutral"
    DECREASING_SELL = "Decreasing Sell"
    STABLE_SELL = "Stable Sell"
    ACCELERATING_SELL = "Accelerating Sell"

    @property
    def is_accelerating(self) -> bool:
        return self in (FlowTrend.ACCELERATING_BUY, FlowTrend.ACCELERATING_SELL)

    @property
    def is_stable(self) -> bool:
        return self in (FlowTrend.STABLE_BUY, FlowTrend.STABLE_SELL)


class RiskSignal(Enum):
    RISK_ON = "Risk-On"
    RISK_ON_MILD = "Risk-On Mild"
    NEUTRAL = "Neutral"
    RISK_OFF_MILD = "Risk-Off Mild"
    RISK_OFF = "Risk-Off"


class InvestorType(Enum):
    FOREIGN = "foreign"
    INSTITUTION = "institution"
    RETAIL = "retail"
    PROP = "prop"


class PrimaryDriver(Enum):
    FOREIGN = "foreign"
    INSTITUTION = "institution"
    RETAIL = "retail"
    PROP = "prop"
    BOTH = "both"
    NONE = "none"


# Flow thresholds in millions
SCORING_THRESHOLDS = {
    "strong_buy": 500,
    "buy": 100,
    "strong_sell": -500,
    "sell": -100,
    "max_score_per_investor": 50,
    "base_score": 25,
    "context_weight": 0.25,
    "foreign_weight": 1.2,
}

COMBINED_STRONG_FLOW = 600
COMBINED_FLOW = 100
DRIVER_RATIO = 1.5
MAX_OBSERVATIONS = 4
MAX_EVIDENCE = 3


@dataclass(frozen=True)
class MarketContext:
    """Local market traits that adjust the smart money score."""

    foreign_market_cap_percent: float = 38.0
    foreign_impact_factor: float = 1.5


DEFAULT_MARKET_CONTEXT = MarketContext()


# =============================================================================
# Result Records
# =============================================================================


@dataclass(frozen=True)
class InvestorAnalysis:
    """Scored flow for one investor category."""

    investor: InvestorType
    today_net: float
    strength: SignalStrength
    trend: FlowTrend
    confidence: float
    trend_5day: float = 0.0
    avg_5day: float = 0.0
    vs_average: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "investor": self.investor.value,
            "today_net": self.today_net,
            "strength": self.strength.value,
            "trend": self.trend.value,
            "confidence": self.confidence,
            "trend_5day": self.trend_5day,
            "avg_5day": self.avg_5day,
            "vs_average": self.vs_average,
        }


@dataclass(frozen=True)
class SmartMoneyScores:
    foreign_score: float
    institution_score: float
    retail_score: float
    prop_score: float
    total_score: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "foreign_score": self.foreign_score,
            "institution_score": self.institution_score,
            "retail_score": self.retail_score,
            "prop_score": self.prop_score,
            "total_score": self.total_score,
        }


@dataclass(frozen=True)
class SmartMoneyAnalysis:
    """Complete smart money read for one trading day."""

    investors: Dict[InvestorType, InvestorAnalysis]
    combined_signal: SignalStrength
    risk_signal: RiskSignal
    score: float
    confidence: float
    observations: List[str] = field(default_factory=list)
    primary_driver: PrimaryDriver = PrimaryDriver.NONE
    risk_on_confirmed: bool = False
    risk_off_confirmed: bool = False
    scores: Optional[SmartMoneyScores] = None
    context_score: Optional[float] = None
    timestamp: int = 0

    @property
    def foreign(self) -> InvestorAnalysis:
        return self.investors[InvestorType.FOREIGN]

    @property
    def institution(self) -> InvestorAnalysis:
        return self.investors[InvestorType.INSTITUTION]

    def to_dict(self) -> Dict:
        return {
            "investors": {k.value: v.to_dict() for k, v in self.investors.items()},
            "combined_signal": self.combined_signal.value,
            "risk_signal": self.risk_signal.value,
            "score": self.score,
            "confidence": self.confidence,
            "observations": list(self.observations),
            "primary_driver": self.primary_driver.value,
            "risk_on_confirmed": self.risk_on_confirmed,
            "risk_off_confirmed": self.risk_off_confirmed,
            "scores": self.scores.to_dict() if self.scores else None,
            "context_score": self.context_score,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SmartMoneySignal:
    signal: SignalStrength
    risk_signal: RiskSignal
    scores: SmartMoneyScores
    confidence: float
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "signal": self.signal.value,
            "risk_signal": self.risk_signal.value,
            "scores": self.scores.to_dict(),
            "confidence": self.confidence,
            "evidence": list(self.evidence),
        }


@dataclass(frozen=True)
class PropTradingAnalysis:
    net_flow: float
    activity: str
    impact: str
    signal: str
    reducing_sell_volume: bool

    def to_dict(self) -> Dict:
        return {
            "net_flow": self.net_flow,
            "activity": self.activity,
            "impact": self.impact,
            "signal": self.signal,
            "reducing_sell_volume": self.reducing_sell_volume,
        }


# =============================================================================
# Scoring
# =============================================================================


def classify_signal_strength(net_flow: float) -> SignalStrength:
    """Classify a net flow in millions."""
    if net_flow >= SCORING_THRESHOLDS["strong_buy"]:
        return SignalStrength.STRONG_BUY
    if net_flow >= SCORING_THRESHOLDS["buy"]:
        return SignalStrength.BUY
    if net_flow <= SCORING_THRESHOLDS["strong_sell"]:
        return SignalStrength.STRONG_SELL
    if net_flow <= SCORING_THRESHOLDS["sell"]:
        return SignalStrength.SELL
    return SignalStrength.NEUTRAL


def detect_flow_trend(current_net: float, historical_nets: Optional[Sequence[float]] = None) -> FlowTrend:
    """
    Trend of today's flow against the historical average.

    Args:
        current_net: Today's net flow
        historical_nets: Earlier net flows, most recent first
    """
    buy = SCORING_THRESHOLDS["buy"]
    sell = SCORING_THRESHOLDS["sell"]

    if not historical_nets:
        if current_net > buy:
            return FlowTrend.STABLE_BUY
        if current_net < sell:
            return FlowTrend.STABLE_SELL
        return FlowTrend.NEUTRAL

    change = current_net - float(np.mean(historical_nets))

    if current_net > buy:
        if change > 100:
            return FlowTrend.ACCELERATING_BUY
        if change > 20:
            return FlowTrend.STABLE_BUY
        return FlowTrend.DECREASING_BUY

    if current_net < sell:
        if change < -100:
            return FlowTrend.ACCELERATING_SELL
        if change < -20:
            return FlowTrend.STABLE_SELL
        return FlowTrend.DECREASING_SELL

    if change > 50:
        return FlowTrend.DECREASING_SELL
    if change < -50:
        return FlowTrend.DECREASING_BUY
    return FlowTrend.NEUTRAL


def _investor_confidence(strength: SignalStrength, trend: FlowTrend, net_flow: float) -> float:
    confidence = 50.0

    if strength.is_strong:
        confidence += 25
    elif strength != SignalStrength.NEUTRAL:
        confidence += 15

    if trend.is_accelerating:
        confidence += 15
    elif trend.is_stable:
        confidence += 10

    abs_flow = abs(net_flow)
    if abs_flow > 1000:
        confidence += 10
    elif abs_flow > 500:
        confidence += 5

    return min(100.0, confidence)


def score_investor_signal(
    investor: InvestorType,
    flow: InvestorCategoryFlow,
    historical: Optional[Sequence[InvestorCategoryFlow]] = None,
) -> InvestorAnalysis:
    """Score one investor category's flow, optionally against history."""
    today_net = flow.net
    strength = classify_signal_strength(today_net)
    historical_nets = [h.net for h in historical] if historical else None
    trend = detect_flow_trend(today_net, historical_nets)

    recent = historical_nets[:5] if historical_nets else []
    trend_5day = float(sum(recent))
    avg_5day = float(np.mean(recent)) if recent else 0.0
    vs_average = today_net - avg_5day if recent else 0.0

    return InvestorAnalysis(
        investor=investor,
        today_net=today_net,
        strength=strength,
        trend=trend,
        confidence=_investor_confidence(strength, trend, today_net),
        trend_5day=trend_5day,
        avg_5day=avg_5day,
        vs_average=vs_average,
    )


def calculate_individual_score(analysis: InvestorAnalysis) -> float:
    """One investor's contribution, 0-50 around a neutral 25."""
    score = float(SCORING_THRESHOLDS["base_score"])

    adjustments = {
        SignalStrength.STRONG_BUY: 20,
        SignalStrength.BUY: 10,
        SignalStrength.SELL: -10,
        SignalStrength.STRONG_SELL: -20,
    }
    score += adjustments.get(analysis.strength, 0)

    if analysis.trend == FlowTrend.ACCELERATING_BUY:
        score += 5
    elif analysis.trend == FlowTrend.ACCELERATING_SELL:
        score -= 5

    if analysis.trend_5day > 200:
        score += 3
    elif analysis.trend_5day < -200:
        score -= 3

    return max(0.0, min(float(SCORING_THRESHOLDS["max_score_per_investor"]), score))


def calculate_smart_money_score(
    foreign: InvestorAnalysis,
    institution: InvestorAnalysis,
    retail: Optional[InvestorAnalysis] = None,
    prop: Optional[InvestorAnalysis] = None,
) -> SmartMoneyScores:
    """Weighted total, 0-100, dominated by foreign and institutional flows."""
    context_weight = SCORING_THRESHOLDS["context_weight"]

    foreign_score = calculate_individual_score(foreign) * SCORING_THRESHOLDS["foreign_weight"]
    institution_score = calculate_individual_score(institution)
    retail_score = calculate_individual_score(retail) * context_weight if retail else 0.0
    prop_score = calculate_individual_score(prop) * context_weight if prop else 0.0

    smart_total = min(100.0, foreign_score + institution_score)
    context_total = retail_score + prop_score
    total = min(100.0, smart_total * 0.8 + context_total * 0.2)

    return SmartMoneyScores(
        foreign_score=min(50.0, foreign_score),
        institution_score=min(50.0, institution_score),
        retail_score=min(25.0, retail_score),
        prop_score=min(25.0, prop_score),
        total_score=total,
    )


def calculate_overall_confidence(foreign: InvestorAnalysis, institution: InvestorAnalysis) -> float:
    """Average smart money confidence, boosted on agreement and cut on conflict."""
    confidence = (foreign.confidence + institution.confidence) / 2

    both_bullish = foreign.strength.is_bullish and institution.strength.is_bullish
    both_bearish = foreign.strength.is_bearish and institution.strength.is_bearish
    if both_bullish or both_bearish:
        return min(100.0, confidence + 10)

    disagreeing = (foreign.strength.is_bullish and institution.strength.is_bearish) or (
        foreign.strength.is_bearish and institution.strength.is_bullish
    )
    if disagreeing:
        return max(0.0, confidence - 15)

    return confidence


# =============================================================================
# Signals
# =============================================================================


def generate_combined_signal(foreign: InvestorAnalysis, institution: InvestorAnalysis) -> SignalStrength:
    """Combined signal from total smart money flow, then individual agreement."""
    total_net = foreign.today_net + institution.today_net

    if total_net >= COMBINED_STRONG_FLOW:
        return SignalStrength.STRONG_BUY
    if total_net >= COMBINED_FLOW:
        return SignalStrength.BUY
    if total_net <= -COMBINED_STRONG_FLOW:
        return SignalStrength.STRONG_SELL
    if total_net <= -COMBINED_FLOW:
        return SignalStrength.SELL

    if foreign.strength.is_bullish and institution.strength.is_bullish:
        return SignalStrength.BUY
    if foreign.strength.is_bearish and institution.strength.is_bearish:
        return SignalStrength.SELL
    return SignalStrength.NEUTRAL


def generate_risk_signal(combined_signal: SignalStrength, scores: SmartMoneyScores) -> RiskSignal:
    total = scores.total_score

    if total >= 70 and combined_signal == SignalStrength.STRONG_BUY:
        return RiskSignal.RISK_ON
    if total >= 60 and combined_signal == SignalStrength.BUY:
        return RiskSignal.RISK_ON_MILD
    if total <= 30 and combined_signal == SignalStrength.STRONG_SELL:
        return RiskSignal.RISK_OFF
    if total <= 40 and combined_signal == SignalStrength.SELL:
        return RiskSignal.RISK_OFF_MILD
    return RiskSignal.NEUTRAL


def generate_smart_money_signal(scores: SmartMoneyScores, confidence: float) -> SmartMoneySignal:
    """Signal and risk read from the total score alone, with evidence."""
    total = scores.total_score

    if total >= 70:
        signal, risk = SignalStrength.STRONG_BUY, RiskSignal.RISK_ON
    elif total >= 55:
        signal, risk = SignalStrength.BUY, RiskSignal.RISK_ON_MILD
    elif total <= 30:
        signal, risk = SignalStrength.STRONG_SELL, RiskSignal.RISK_OFF
    elif total <= 45:
        signal, risk = SignalStrength.SELL, RiskSignal.RISK_OFF_MILD
    else:
        signal, risk = SignalStrength.NEUTRAL, RiskSignal.NEUTRAL

    return SmartMoneySignal(
        signal=signal,
        risk_signal=risk,
        scores=scores,
        confidence=confidence,
        evidence=_signal_evidence(scores),
    )


def _investor_evidence(label: str, score: float) -> Optional[str]:
    if score >= 35:
        return f"{label} showing strong buying"
    if score >= 25:
        return f"{label} net buying"
    if score <= 15:
        return f"{label} showing strong selling"
    if score <= 20:
        return f"{label} net selling"
    return None


def _signal_evidence(scores: SmartMoneyScores) -> List[str]:
    evidence = [
        _investor_evidence("Foreign investors", scores.foreign_score),
        _investor_evidence("Institutions", scores.institution_score),
    ]

    total = scores.total_score
    if total >= 70:
        evidence.append("Smart money strongly bullish")
    elif total >= 55:
        evidence.append("Smart money moderately bullish")
    elif total <= 30:
        evidence.append("Smart money strongly bearish")
    elif total <= 45:
        evidence.append("Smart money moderately bearish")

    return [e for e in evidence if e][:MAX_EVIDENCE]


def detect_primary_driver(
    foreign: InvestorAnalysis,
    institution: InvestorAnalysis,
    retail: Optional[InvestorAnalysis] = None,
    prop: Optional[InvestorAnalysis] = None,
) -> PrimaryDriver:
    """Which investor category is moving the market."""
    abs_foreign = abs(foreign.today_net)
    abs_institution = abs(institution.today_net)
    abs_retail = abs(retail.today_net) if retail else 0.0
    abs_prop = abs(prop.today_net) if prop else 0.0

    both_strong = foreign.strength.is_strong and institution.strength.is_strong
    if both_strong and np.sign(foreign.today_net) == np.sign(institution.today_net):
        return PrimaryDriver.BOTH

    max_flow = max(abs_foreign, abs_institution, abs_retail, abs_prop)

    if abs_prop == max_flow and abs_prop > abs_institution * DRIVER_RATIO:
        return PrimaryDriver.PROP
    if abs_retail == max_flow and abs_retail > abs_institution * DRIVER_RATIO:
        return PrimaryDriver.RETAIL
    if abs_foreign > abs_institution * DRIVER_RATIO:
        return PrimaryDriver.FOREIGN
    if abs_institution > abs_foreign * DRIVER_RATIO:
        return PrimaryDriver.INSTITUTION
    return PrimaryDriver.NONE


def confirm_risk_on(scores: SmartMoneyScores) -> bool:
    return scores.total_score >= 60


def confirm_risk_off(scores: SmartMoneyScores) -> bool:
    return scores.total_score <= 40


def _signed(value: float) -> str:
    return f"{'+' if value >= 0 else ''}{value:.0f}M"


def generate_smart_money_observations(
    foreign: InvestorAnalysis,
    institution: InvestorAnalysis,
    retail: Optional[InvestorAnalysis] = None,
    prop: Optional[InvestorAnalysis] = None,
) -> List[str]:
    """Up to four short observations on the day's flows."""
    observations = []

    if foreign.strength == SignalStrength.STRONG_BUY:
        observations.append(f"Foreign investors aggressive buying: +{foreign.today_net:.0f}M")
    elif foreign.strength == SignalStrength.STRONG_SELL:
        observations.append(f"Foreign investors aggressive selling: {foreign.today_net:.0f}M")
    elif foreign.today_net != 0:
        observations.append(f"Foreign flow: {_signed(foreign.today_net)}")

    if institution.strength == SignalStrength.STRONG_BUY:
        observations.append(f"Institutions strong buying: +{institution.today_net:.0f}M")
    elif institution.strength == SignalStrength.STRONG_SELL:
        observations.append(f"Institutions strong selling: {institution.today_net:.0f}M")
    elif institution.today_net != 0:
        observations.append(f"Institution flow: {_signed(institution.today_net)}")

    total_net = foreign.today_net + institution.today_net
    if total_net > 500:
        observations.append("Strong combined smart money buying")
    elif total_net < -500:
        observations.append("Strong combined smart money selling")

    if prop is not None and prop.strength == SignalStrength.STRONG_SELL:
        if abs(prop.today_net) < 200:
            observations.append("Prop firms reducing sell volume (bullish)")
        else:
            observations.append("Prop firms heavy selling (caution)")

    if retail is not None:
        if retail.today_net > 500:
            observations.append("Retail investors showing strong interest")
        elif retail.today_net < -500:
            observations.append("Retail investors exiting positions")

    if foreign.trend.is_accelerating or institution.trend.is_accelerating:
        observations.append("Smart money flow accelerating")

    return observations[:MAX_OBSERVATIONS]


# =============================================================================
# Extras
# =============================================================================


def analyze_prop_trading(flow: InvestorCategoryFlow) -> PropTradingAnalysis:
    """Activity level and risk impact of proprietary desk flows."""
    net = flow.net
    abs_flow = abs(net)

    if abs_flow > 1000:
        activity = "High"
    elif abs_flow > 300:
        activity = "Normal"
    else:
        activity = "Low"

    reducing = False
    if net > 0:
        impact, signal = "Neutral", "Prop firms net buying"
    elif net < 0 and abs_flow < 200:
        impact, signal, reducing = "Reducing Risk", "Prop firms reducing sell volume", True
    elif net < 0:
        impact, signal = "Amplifying Risk", "Prop firms heavy selling"
    else:
        impact, signal = "Neutral", "Prop firms flat"

    return PropTradingAnalysis(
        net_flow=net,
        activity=activity,
        impact=impact,
        signal=signal,
        reducing_sell_volume=reducing,
    )


def calculate_trend_strength(historical_flows: Sequence[float]) -> float:
    """
    Strength of the linear trend in a flow series, 0-100.

    The least-squares slope is taken relative to the mean flow; a relative
    slope of 0.5 scores 100. Fewer than two points scores a neutral 50.
    """
    if len(historical_flows) < 2:
        return 50.0

    values = np.asarray(historical_flows, dtype=float)
    x = np.arange(len(values))
    slope, _ = np.polyfit(x, values, 1)

    relative_slope = abs(slope / (abs(values.mean()) + 1))
    return float(min(100.0, relative_slope * 200))


def apply_market_context(
    score: float, foreign_net: float, context: MarketContext = DEFAULT_MARKET_CONTEXT
) -> float:
    """Amplify the score when foreigners are net buyers, clamped 0-100."""
    adjusted = score
    if foreign_net > 0:
        adjusted *= context.foreign_impact_factor
    return max(0.0, min(100.0, adjusted))


# =============================================================================
# Analyzer
# =============================================================================


class SmartMoneyAnalyzer:
    """
    Analyze investor category flows for smart money positioning.

    Foreign flows carry extra weight; retail and proprietary flows are
    context only.
    """

    def __init__(self, context: Optional[MarketContext] = None):
        self.context = context or DEFAULT_MARKET_CONTEXT
        logger.info("SmartMoneyAnalyzer initialized")

    def analyze(
        self,
        current: InvestorTypeSnapshot,
        historical: Optional[Sequence[HistoricalInvestorEntry]] = None,
    ) -> SmartMoneyAnalysis:
        """
        Score every investor category and combine them.

        Args:
            current: Today's investor flows
            historical: Earlier net flows, most recent first
        """
        history = [h.to_snapshot() for h in historical] if historical else []

        investors = {}
        for investor in InvestorType:
            flows = [getattr(h, investor.value) for h in history] or None
            investors[investor] = score_investor_signal(
                investor, getattr(current, investor.value), flows
            )

        foreign = investors[InvestorType.FOREIGN]
        institution = investors[InvestorType.INSTITUTION]
        retail = investors[InvestorType.RETAIL]
        prop = investors[InvestorType.PROP]

        scores = calculate_smart_money_score(foreign, institution, retail, prop)
        combined = generate_combined_signal(foreign, institution)

        logger.debug(
            f"Smart money: foreign={foreign.today_net:.0f}M, "
            f"institution={institution.today_net:.0f}M, score={scores.total_score:.1f}"
        )

        return SmartMoneyAnalysis(
            investors=investors,
            combined_signal=combined,
            risk_signal=generate_risk_signal(combined, scores),
            score=scores.total_score,
            confidence=calculate_overall_confidence(foreign, institution),
            observations=generate_smart_money_observations(foreign, institution, retail, prop),
            primary_driver=detect_primary_driver(foreign, institution, retail, prop),
            risk_on_confirmed=confirm_risk_on(scores),
            risk_off_confirmed=confirm_risk_off(scores),
            scores=scores,
            context_score=apply_market_context(scores.total_score, foreign.today_net, self.context),
            timestamp=current.timestamp or int(datetime.now().timestamp() * 1000),
        )


def analyze_smart_money(
    current: InvestorTypeSnapshot,
    historical: Optional[Sequence[HistoricalInvestorEntry]] = None,
) -> SmartMoneyAnalysis:
    """Module-level shortcut for SmartMoneyAnalyzer.analyze."""
    return SmartMoneyAnalyzer().analyze(current, historical)
