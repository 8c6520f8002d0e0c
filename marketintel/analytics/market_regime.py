"""
Market Regime Analysis Module

Classify the market's risk appetite (Risk-On, Neutral, Risk-Off) from the
index move, smart-money flows, sector behavior and liquidity. Each factor
contributes up to two points to a risk-on and a risk-off score; the gap
between the two decides the regime.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from marketintel.models.snapshots import (
    IndustrySectorSnapshot,
    InvestorTypeSnapshot,
    MarketOverview,
)
from marketintel.reference.reference_data import ReferenceData, get_reference_data

logger = logging.getLogger(__name__)


class MarketRegime(Enum):
    """Market risk appetite."""

    RISK_ON = "Risk-On"
    NEUTRAL = "Neutral"
    RISK_OFF = "Risk-Off"


class RegimeConfidence(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass(frozen=True)
class RegimeThresholds:
    """Scoring thresholds. Flows in millions, liquidity as a volume ratio."""

    set_change_strong: float = 0.5
    set_change_weak: float = -0.5
    strong_flow: float = 100.0
    weak_flow: float = -100.0
    high_liquidity: float = 1.2
    low_liquidity: float = 0.8
    smart_flow_reason: float = 200.0
    high_confidence_score: int = 7
    regime_gap: int = 2


DEFAULT_THRESHOLDS = RegimeThresholds()

FOCUS_GUIDANCE = {
    MarketRegime.RISK_ON: "Focus on cyclical sectors and growth stocks. Market favors risk-taking.",
    MarketRegime.NEUTRAL: "Market lacks clear direction. Stay selective, focus on quality names.",
    MarketRegime.RISK_OFF: "Focus on defensive sectors and cash preservation. Caution advised.",
}

CAUTION_GUIDANCE = {
    MarketRegime.RISK_ON: "Watch for reversal signals. Don't chase overextended names.",
    MarketRegime.NEUTRAL: "Wait for clear market direction before taking large positions.",
    MarketRegime.RISK_OFF: "Avoid catching falling knives. Preserve capital for better opportunities.",
}

MAX_REASONS = 3


@dataclass(frozen=True)
class RegimeInput:
    """Inputs to the regime rules."""

    set_change: float
    foreign_net: float = 0.0
    institution_net: float = 0.0
    defensive_performance: float = 0.0
    overall_performance: float = 0.0
    liquidity: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "set_change": self.set_change,
            "foreign_net": self.foreign_net,
            "institution_net": self.institution_net,
            "defensive_performance": self.defensive_performance,
            "overall_performance": self.overall_performance,
            "liquidity": self.liquidity,
        }


@dataclass(frozen=True)
class RegimeResult:
    """Regime classification with explanation and guidance."""

    regime: MarketRegime
    confidence: RegimeConfidence
    reasons: List[str] = field(default_factory=list)
    focus: str = ""
    caution: str = ""
    scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "regime": self.regime.value,
            "confidence": self.confidence.value,
            "reasons": list(self.reasons),
            "focus": self.focus,
            "caution": self.caution,
            "scores": dict(self.scores),
        }


# =============================================================================
# Scoring Rules
# =============================================================================


def calculate_risk_on_score(
    regime_input: RegimeInput, thresholds: RegimeThresholds = DEFAULT_THRESHOLDS
) -> int:
    """Risk-on score, 0-10."""
    score = 0

    if regime_input.set_change > thresholds.set_change_strong:
        score += 2
    elif regime_input.set_change > 0:
        score += 1

    for net in (regime_input.foreign_net, regime_input.institution_net):
        if net > thresholds.strong_flow:
            score += 2
        elif net > 0:
            score += 1

    cyclicals_leading = regime_input.overall_performance > regime_input.defensive_performance
    if cyclicals_leading and regime_input.set_change > 0:
        score += 2
    elif regime_input.overall_performance > 0:
        score += 1

    if regime_input.liquidity > thresholds.high_liquidity:
        score += 2
    elif regime_input.liquidity > 1:
        score += 1

    return score


def calculate_risk_off_score(
    regime_input: RegimeInput, thresholds: RegimeThresholds = DEFAULT_THRESHOLDS
) -> int:
    """Risk-off score, 0-10."""
    score = 0

    if regime_input.set_change < thresholds.set_change_weak:
        score += 2
    elif regime_input.set_change < 0:
        score += 1

    for net in (regime_input.foreign_net, regime_input.institution_net):
        if net < thresholds.weak_flow:
            score += 2
        elif net < 0:
            score += 1

    defensives_leading = regime_input.defensive_performance > regime_input.overall_performance
    if defensives_leading and regime_input.set_change < 0:
        score += 2
    elif defensives_leading:
        score += 1

    if regime_input.liquidity < thresholds.low_liquidity:
        score += 2
    elif regime_input.liquidity < 1:
        score += 1

    return score


def determine_regime(
    risk_on_score: int,
    risk_off_score: int,
    thresholds: RegimeThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[MarketRegime, RegimeConfidence]:
    """Pick the regime from the two scores."""
    diff = risk_on_score - risk_off_score
    high = thresholds.high_confidence_score

    if diff >= thresholds.regime_gap:
        confidence = RegimeConfidence.HIGH if risk_on_score >= high else RegimeConfidence.MEDIUM
        return MarketRegime.RISK_ON, confidence
    if diff <= -thresholds.regime_gap:
        confidence = RegimeConfidence.HIGH if risk_off_score >= high else RegimeConfidence.MEDIUM
        return MarketRegime.RISK_OFF, confidence

    total = risk_on_score + risk_off_score
    confidence = RegimeConfidence.MEDIUM if total >= 10 else RegimeConfidence.LOW
    return MarketRegime.NEUTRAL, confidence


def generate_regime_reasons(
    regime_input: RegimeInput, thresholds: RegimeThresholds = DEFAULT_THRESHOLDS
) -> List[str]:
    """Up to three reasons: index, smart money, sectors, then liquidity."""
    reasons = []
    set_change = regime_input.set_change

    if set_change > thresholds.set_change_strong:
        reasons.append("SET index showing strong positive momentum")
    elif set_change > 0:
        reasons.append("SET index modestly positive")
    elif set_change < thresholds.set_change_weak:
        reasons.append("SET index under significant pressure")
    elif set_change < 0:
        reasons.append("SET index slightly negative")

    smart_flow = regime_input.foreign_net + regime_input.institution_net
    if smart_flow > thresholds.smart_flow_reason:
        reasons.append("Strong buying from smart money (foreign + institution)")
    elif smart_flow > 0:
        reasons.append("Modest net buying from smart money")
    elif smart_flow < -thresholds.smart_flow_reason:
        reasons.append("Heavy selling from smart money")
    elif smart_flow < 0:
        reasons.append("Modest net selling from smart money")

    defensives_leading = regime_input.defensive_performance > regime_input.overall_performance
    if defensives_leading and set_change < 0:
        reasons.append("Defensive sectors outperforming - classic risk-off pattern")
    elif not defensives_leading and set_change > 0:
        reasons.append("Cyclical sectors leading - risk-on behavior")
    elif regime_input.overall_performance > 0:
        reasons.append("Broad sector participation in positive territory")

    if regime_input.liquidity > thresholds.high_liquidity:
        reasons.append("Above-average trading volume supports market move")
    elif regime_input.liquidity < thresholds.low_liquidity:
        reasons.append("Below-average volume suggests weak conviction")

    return reasons[:MAX_REASONS]


def generate_focus_guidance(regime: MarketRegime) -> str:
    return FOCUS_GUIDANCE[regime]


def generate_caution_guidance(regime: MarketRegime) -> str:
    return CAUTION_GUIDANCE[regime]


# =============================================================================
# Analyzer
# =============================================================================


class MarketRegimeAnalyzer:
    """
    Classify market regime from the daily snapshots.

    Defensive sectors are taken from the injected taxonomy; sectors the
    taxonomy does not know fall back to a name keyword match.
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        thresholds: Optional[RegimeThresholds] = None,
        baseline_volume: Optional[float] = None,
    ):
        """
        Initialize market regime analyzer.

        Args:
            reference: Sector taxonomy (defaults to the packaged data)
            thresholds: Scoring thresholds
            baseline_volume: Average total volume used for the liquidity ratio
        """
        self.reference = reference or get_reference_data()
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.baseline_volume = baseline_volume
        logger.info("MarketRegimeAnalyzer initialized")

    def analyze(self, regime_input: RegimeInput) -> RegimeResult:
        """Score a prepared input and classify it."""
        risk_on = calculate_risk_on_score(regime_input, self.thresholds)
        risk_off = calculate_risk_off_score(regime_input, self.thresholds)
        regime, confidence = determine_regime(risk_on, risk_off, self.thresholds)

        logger.debug(f"Regime scores: risk_on={risk_on}, risk_off={risk_off} -> {regime.value}")

        return RegimeResult(
            regime=regime,
            confidence=confidence,
            reasons=generate_regime_reasons(regime_input, self.thresholds),
            focus=generate_focus_guidance(regime),
            caution=generate_caution_guidance(regime),
            scores={"risk_on": risk_on, "risk_off": risk_off},
        )

    def build_input(
        self,
        overview: Optional[MarketOverview],
        investor: Optional[InvestorTypeSnapshot] = None,
        sectors: Optional[IndustrySectorSnapshot] = None,
    ) -> Optional[RegimeInput]:
        """
        Derive the regime input from raw snapshots.

        Returns None without a market overview. Missing investor or sector
        data contributes zeros.
        """
        if overview is None:
            return None

        foreign_net = investor.foreign.net if investor else 0.0
        institution_net = investor.institution.net if investor else 0.0

        defensive_performance = 0.0
        overall_performance = 0.0
        if sectors is not None and sectors.sectors:
            changes = [s.change_percent for s in sectors.sectors]
            overall_performance = sum(changes) / len(changes)

            defensive = [
                s.change_percent for s in sectors.sectors if self._is_defensive(s.id, s.name)
            ]
            if defensive:
                defensive_performance = sum(defensive) / len(defensive)

        liquidity = 1.0
        if self.baseline_volume and self.baseline_volume > 0:
            liquidity = overview.total_volume / self.baseline_volume

        return RegimeInput(
            set_change=overview.set_change_percent,
            foreign_net=foreign_net,
            institution_net=institution_net,
            defensive_performance=defensive_performance,
            overall_performance=overall_performance,
            liquidity=liquidity,
        )

    def analyze_market_regime(
        self,
        overview: Optional[MarketOverview],
        investor: Optional[InvestorTypeSnapshot] = None,
        sectors: Optional[IndustrySectorSnapshot] = None,
    ) -> Optional[RegimeResult]:
        """Build the input and classify; None when the overview is missing."""
        regime_input = self.build_input(overview, investor, sectors)
        if regime_input is None:
            logger.debug("Market overview missing, skipping regime analysis")
            return None
        return self.analyze(regime_input)

    def _is_defensive(self, sector_id: str, name: str) -> bool:
        if self.reference.get_sector(sector_id) is not None:
            return self.reference.is_defensive(sector_id)
        return self.reference.is_defensive_name(name)


def build_regime_input(
    overview: Optional[MarketOverview],
    investor: Optional[InvestorTypeSnapshot] = None,
    sectors: Optional[IndustrySectorSnapshot] = None,
    reference: Optional[ReferenceData] = None,
    baseline_volume: Optional[float] = None,
) -> Optional[RegimeInput]:
    """Convenience wrapper around MarketRegimeAnalyzer.build_input."""
    analyzer = MarketRegimeAnalyzer(reference=reference, baseline_volume=baseline_volume)
    return analyzer.build_input(overview, investor, sectors)


def analyze_market_regime(
    overview: Optional[MarketOverview],
    investor: Optional[InvestorTypeSnapshot] = None,
    sectors: Optional[IndustrySectorSnapshot] = None,
    reference: Optional[ReferenceData] = None,
    baseline_volume: Optional[float] = None,
    thresholds: Optional[RegimeThresholds] = None,
) -> Optional[RegimeResult]:
    """Classify the market regime, or None when the overview is missing."""
    analyzer = MarketRegimeAnalyzer(
        reference=reference, thresholds=thresholds, baseline_volume=baseline_volume
    )
    return analyzer.analyze_market_regime(overview, investor, sectors)
