"""
Investor Flow Trend Module

Reads a window of daily investor flows, oldest to newest, and reports:
- The combined smart money (foreign + institution) signal for each day
- Per-investor aggregates: totals, regression trend, moving averages
- Multi-day patterns: accumulation, distribution, smart money vs retail
  divergence, retail FOMO and retail panic, each with trading guidance
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from marketintel.analytics.smart_money import InvestorType, RiskSignal, SignalStrength
from marketintel.core.errors import MissingPrerequisiteError
from marketintel.models.snapshots import HistoricalInvestorEntry, InvestorTypeSnapshot

logger = logging.getLogger(__name__)

FlowSession = Union[HistoricalInvestorEntry, InvestorTypeSnapshot]


class TrendDirection(Enum):
    UP = "up"
    SIDEWAYS = "sideways"
    DOWN = "down"


class PatternType(Enum):
    ACCUMULATION = "Accumulation"
    DISTRIBUTION = "Distribution"
    DIVERGENCE = "Divergence"
    FOMO = "FOMO"
    PANIC = "Panic"


class PatternAction(Enum):
    ACCUMULATE = "accumulate"
    BUY = "buy"
    HOLD = "hold"
    WAIT = "wait"
    REDUCE = "reduce"
    SELL = "sell"


class PatternRisk(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ParticipantRole(Enum):
    DRIVING = "driving"
    FOLLOWING = "following"
    ABSENT = "absent"
    OPPOSING = "opposing"


# Net flows in millions
FLOW_TREND_THRESHOLDS = {
    "strong_signal": 600,
    "signal": 100,
    "risk_on": 1000,
    "risk_on_mild": 300,
    "trend_slope": 50,
    "streak_days": 3,
    "divergence_flow": 100,
    "divergence_days": 2,
    "retail_heavy": 500,
    "retail_heavy_days": 2,
    "high_strength": 70,
}

MOVING_AVERAGE_PERIODS = (3, 5, 10)


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class CombinedTrendPoint:
    """Smart money read for one session."""

    timestamp: int
    smart_money_net: float
    retail_net: float
    prop_net: float
    total_net: float
    signal: SignalStrength
    risk_signal: RiskSignal

    def to_dict(self) -> Dict:
        return {
            "timestamp": self.timestamp,
            "smart_money_net": self.smart_money_net,
            "retail_net": self.retail_net,
            "prop_net": self.prop_net,
            "total_net": self.total_net,
            "signal": self.signal.value,
            "risk_signal": self.risk_signal.value,
        }


@dataclass(frozen=True)
class FlowAggregate:
    total_net: float
    avg_daily: float
    trend: TrendDirection
    trend_strength: float  # R-squared of the fit, 0-100
    std_dev: float
    moving_averages: Dict[int, Optional[float]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "total_net": self.total_net,
            "avg_daily": self.avg_daily,
            "trend": self.trend.value,
            "trend_strength": self.trend_strength,
            "std_dev": self.std_dev,
            "moving_averages": {f"ma{p}": v for p, v in self.moving_averages.items()},
        }


@dataclass(frozen=True)
class DetectedPattern:
    pattern_type: PatternType
    description: str
    start_timestamp: int
    strength: float
    investors: List[InvestorType]
    consecutive_days: int
    total_flow: float
    action: PatternAction
    risk_level: PatternRisk
    insight: str
    participants: Dict[InvestorType, ParticipantRole]

    def to_dict(self) -> Dict:
        return {
            "type": self.pattern_type.value,
            "description": self.description,
            "start_timestamp": self.start_timestamp,
            "strength": self.strength,
            "investors": [i.value for i in self.investors],
            "consecutive_days": self.consecutive_days,
            "total_flow": self.total_flow,
            "action": self.action.value,
            "risk_level": self.risk_level.value,
            "insight": self.insight,
            "participants": {k.value: v.value for k, v in self.participants.items()},
        }


@dataclass(frozen=True)
class FlowTrendAnalysis:
    combined: List[CombinedTrendPoint]
    aggregates: Dict[InvestorType, FlowAggregate]
    patterns: List[DetectedPattern]

    @property
    def pattern_types(self) -> List[PatternType]:
        return [p.pattern_type for p in self.patterns]

    def to_dict(self) -> Dict:
        return {
            "combined": [p.to_dict() for p in self.combined],
            "aggregates": {k.value: v.to_dict() for k, v in self.aggregates.items()},
            "patterns": [p.to_dict() for p in self.patterns],
        }


# =============================================================================
# Sessions and Combined Trend
# =============================================================================


def order_sessions(
    historical: Optional[Sequence[HistoricalInvestorEntry]] = None,
    current: Optional[InvestorTypeSnapshot] = None,
) -> List[FlowSession]:
    """Oldest-first window from history (most recent first) plus today."""
    sessions: List[FlowSession] = list(reversed(list(historical or [])))
    if current is not None:
        sessions.append(current)
    return sessions


def _nets(sessions: Sequence[FlowSession], investor: InvestorType) -> List[float]:
    return [getattr(s, investor.value).net for s in sessions]


def _smart_money_nets(sessions: Sequence[FlowSession]) -> List[float]:
    return [s.foreign.net + s.institution.net for s in sessions]


def classify_combined_flow(smart_money_net: float) -> SignalStrength:
    if smart_money_net >= FLOW_TREND_THRESHOLDS["strong_signal"]:
        return SignalStrength.STRONG_BUY
    if smart_money_net >= FLOW_TREND_THRESHOLDS["signal"]:
        return SignalStrength.BUY
    if smart_money_net <= -FLOW_TREND_THRESHOLDS["strong_signal"]:
        return SignalStrength.STRONG_SELL
    if smart_money_net <= -FLOW_TREND_THRESHOLDS["signal"]:
        return SignalStrength.SELL
    return SignalStrength.NEUTRAL


def classify_combined_risk(smart_money_net: float) -> RiskSignal:
    if smart_money_net >= FLOW_TREND_THRESHOLDS["risk_on"]:
        return RiskSignal.RISK_ON
    if smart_money_net >= FLOW_TREND_THRESHOLDS["risk_on_mild"]:
        return RiskSignal.RISK_ON_MILD
    if smart_money_net <= -FLOW_TREND_THRESHOLDS["risk_on"]:
        return RiskSignal.RISK_OFF
    if smart_money_net <= -FLOW_TREND_THRESHOLDS["risk_on_mild"]:
        return RiskSignal.RISK_OFF_MILD
    return RiskSignal.NEUTRAL


def generate_combined_trend(sessions: Sequence[FlowSession]) -> List[CombinedTrendPoint]:
    points = []
    for session in sessions:
        smart = session.foreign.net + session.institution.net
        points.append(
            CombinedTrendPoint(
                timestamp=session.timestamp,
                smart_money_net=smart,
                retail_net=session.retail.net,
                prop_net=session.prop.net,
                total_net=smart + session.retail.net + session.prop.net,
                signal=classify_combined_flow(smart),
                risk_signal=classify_combined_risk(smart),
            )
        )
    return points


# =============================================================================
# Aggregates
# =============================================================================


def aggregate_flows(nets: Sequence[float]) -> FlowAggregate:
    """
    Summarize one investor's daily nets, oldest first.

    The trend is the least-squares slope per day (+/-50M separates up and
    down from sideways). Trend strength is the fit's R-squared on 0-100;
    sideways or short series read a neutral 50.
    """
    if not nets:
        return FlowAggregate(
            total_net=0.0,
            avg_daily=0.0,
            trend=TrendDirection.SIDEWAYS,
            trend_strength=0.0,
            std_dev=0.0,
            moving_averages={p: None for p in MOVING_AVERAGE_PERIODS},
        )

    values = np.asarray(nets, dtype=float)
    x = np.arange(len(values))

    trend = TrendDirection.SIDEWAYS
    slope = intercept = 0.0
    if len(values) >= 2:
        slope, intercept = np.polyfit(x, values, 1)
        if slope > FLOW_TREND_THRESHOLDS["trend_slope"]:
            trend = TrendDirection.UP
        elif slope < -FLOW_TREND_THRESHOLDS["trend_slope"]:
            trend = TrendDirection.DOWN

    strength = 50.0
    total_ss = float(np.sum((values - values.mean()) ** 2))
    if len(values) >= 3 and trend != TrendDirection.SIDEWAYS and total_ss > 0:
        residual_ss = float(np.sum((values - (slope * x + intercept)) ** 2))
        strength = float(round(min(100.0, max(0.0, (1 - residual_ss / total_ss) * 100))))

    moving_averages = {
        p: float(values[-p:].mean()) if len(values) >= p else None for p in MOVING_AVERAGE_PERIODS
    }

    return FlowAggregate(
        total_net=float(values.sum()),
        avg_daily=float(values.mean()),
        trend=trend,
        trend_strength=strength,
        std_dev=float(values.std()),
        moving_averages=moving_averages,
    )


# =============================================================================
# Pattern Detection
# =============================================================================


def participant_role(net: float, reference: float, threshold: float = 100.0) -> ParticipantRole:
    """
    Role of one investor in a pattern whose net flow is ``reference``.

    Flows under ``threshold`` are absent; flows with the pattern are driving
    when they carry more than half of it, otherwise following.
    """
    if abs(net) < threshold:
        return ParticipantRole.ABSENT
    if net * reference > 0:
        return ParticipantRole.DRIVING if abs(net / reference) > 0.5 else ParticipantRole.FOLLOWING
    return ParticipantRole.OPPOSING


def _longest_streak(values: Sequence[float], predicate: Callable[[float], bool]) -> int:
    longest = current = 0
    for value in values:
        current = current + 1 if predicate(value) else 0
        longest = max(longest, current)
    return longest


def _pattern(
    pattern_type: PatternType,
    description: str,
    sessions: Sequence[FlowSession],
    strength: float,
    investors: List[InvestorType],
    days: int,
    total_flow: float,
    participants: Dict[InvestorType, ParticipantRole],
    smart_money_buying: bool,
) -> DetectedPattern:
    action, risk, insight = pattern_guidance(pattern_type, strength, smart_money_buying)
    return DetectedPattern(
        pattern_type=pattern_type,
        description=description,
        start_timestamp=sessions[0].timestamp,
        strength=strength,
        investors=investors,
        consecutive_days=days,
        total_flow=total_flow,
        action=action,
        risk_level=risk,
        insight=insight,
        participants=participants,
    )


def pattern_guidance(pattern_type: PatternType, strength: float, smart_money_buying: bool):
    """(action, risk level, insight) for a detected pattern."""
    high = strength >= FLOW_TREND_THRESHOLDS["high_strength"]

    if pattern_type == PatternType.ACCUMULATION:
        return (
            PatternAction.ACCUMULATE if high else PatternAction.BUY,
            PatternRisk.LOW,
            "Smart money quietly buying. Add on pullbacks for swing trades.",
        )
    if pattern_type == PatternType.DISTRIBUTION:
        return (
            PatternAction.REDUCE,
            PatternRisk.HIGH if high else PatternRisk.MEDIUM,
            "Smart money exiting. Reduce exposure and avoid new entries.",
        )
    if pattern_type == PatternType.DIVERGENCE:
        if smart_money_buying:
            return (
                PatternAction.BUY,
                PatternRisk.MEDIUM,
                "Smart money buying while retail sells. Bullish signal.",
            )
        return (
            PatternAction.SELL,
            PatternRisk.MEDIUM,
            "Smart money selling into retail buying. Be cautious.",
        )
    if pattern_type == PatternType.FOMO:
        return (
            PatternAction.WAIT,
            PatternRisk.HIGH,
            "Retail chasing prices. Smart money typically sells into this.",
        )
    if pattern_type == PatternType.PANIC:
        if smart_money_buying:
            return (
                PatternAction.BUY,
                PatternRisk.MEDIUM,
                "Capitulation selling absorbed by smart money. Opportunity.",
            )
        return (
            PatternAction.WAIT,
            PatternRisk.HIGH,
            "Panic selling in progress. Wait for stabilization.",
        )
    return PatternAction.HOLD, PatternRisk.MEDIUM, "Monitor closely for more signals."


def _smart_money_streak(sessions: Sequence[FlowSession], buying: bool) -> Optional[DetectedPattern]:
    combined = _smart_money_nets(sessions)
    days = _longest_streak(combined, (lambda n: n > 0) if buying else (lambda n: n < 0))
    if days < FLOW_TREND_THRESHOLDS["streak_days"]:
        return None

    total = float(sum(combined))
    strength = min(100.0, days * 15 + abs(total) / 100)
    participants = {
        InvestorType.FOREIGN: participant_role(sum(_nets(sessions, InvestorType.FOREIGN)), total, 200),
        InvestorType.INSTITUTION: participant_role(
            sum(_nets(sessions, InvestorType.INSTITUTION)), total, 200
        ),
        InvestorType.RETAIL: ParticipantRole.ABSENT,
    }

    if buying:
        pattern_type = PatternType.ACCUMULATION
        description = (
            f"Smart money accumulation detected ({days} consecutive buy days, +{total:.0f}M total)"
        )
    else:
        pattern_type = PatternType.DISTRIBUTION
        description = (
            f"Smart money distribution detected ({days} consecutive sell days, {total:.0f}M total)"
        )

    return _pattern(
        pattern_type,
        description,
        sessions,
        strength,
        [InvestorType.FOREIGN, InvestorType.INSTITUTION],
        days,
        total,
        participants,
        smart_money_buying=buying,
    )


def detect_accumulation(sessions: Sequence[FlowSession]) -> Optional[DetectedPattern]:
    """Three or more consecutive days of combined smart money buying."""
    return _smart_money_streak(sessions, buying=True)


def detect_distribution(sessions: Sequence[FlowSession]) -> Optional[DetectedPattern]:
    """Three or more consecutive days of combined smart money selling."""
    return _smart_money_streak(sessions, buying=False)


def detect_divergence(sessions: Sequence[FlowSession]) -> Optional[DetectedPattern]:
    """Two or more days of smart money and retail trading against each other."""
    limit = FLOW_TREND_THRESHOLDS["divergence_flow"]
    days = 0
    smart_total = retail_total = 0.0
    for smart, retail in zip(_smart_money_nets(sessions), _nets(sessions, InvestorType.RETAIL)):
        if (smart > limit and retail < -limit) or (smart < -limit and retail > limit):
            days += 1
            smart_total += smart
            retail_total += retail

    if days < FLOW_TREND_THRESHOLDS["divergence_days"]:
        return None

    buying = smart_total > 0
    strength = min(100.0, days * 20 + abs(smart_total) / 50)
    participants = {
        InvestorType.FOREIGN: participant_role(
            sum(_nets(sessions, InvestorType.FOREIGN)), smart_total, 150
        ),
        InvestorType.INSTITUTION: participant_role(
            sum(_nets(sessions, InvestorType.INSTITUTION)), smart_total, 150
        ),
        InvestorType.RETAIL: participant_role(
            sum(_nets(sessions, InvestorType.RETAIL)), smart_total, 200
        ),
    }

    if buying:
        description = (
            f"Smart money accumulating (+{smart_total:.0f}M) "
            f"while retail distributing ({retail_total:.0f}M)"
        )
    else:
        description = (
            f"Smart money distributing ({smart_total:.0f}M) "
            f"while retail accumulating (+{retail_total:.0f}M)"
        )

    return _pattern(
        PatternType.DIVERGENCE,
        description,
        sessions,
        strength,
        [InvestorType.FOREIGN, InvestorType.INSTITUTION, InvestorType.RETAIL],
        days,
        smart_total,
        participants,
        smart_money_buying=buying,
    )


def _retail_extreme(sessions: Sequence[FlowSession], buying: bool) -> Optional[DetectedPattern]:
    heavy = FLOW_TREND_THRESHOLDS["retail_heavy"]
    retail = _nets(sessions, InvestorType.RETAIL)

    if buying:
        days = len([n for n in retail if n > heavy])
        total = float(sum(n for n in retail if n > 0))
    else:
        days = len([n for n in retail if n < -heavy])
        total = float(sum(-n for n in retail if n < 0))

    if days < FLOW_TREND_THRESHOLDS["retail_heavy_days"]:
        return None

    strength = min(100.0, days * 20 + total / 100)
    participants = {
        InvestorType.FOREIGN: ParticipantRole.ABSENT,
        InvestorType.INSTITUTION: ParticipantRole.ABSENT,
        InvestorType.RETAIL: ParticipantRole.DRIVING,
    }

    if buying:
        return _pattern(
            PatternType.FOMO,
            f"Retail FOMO detected ({days} heavy buy days, +{total:.0f}M total)",
            sessions,
            strength,
            [InvestorType.RETAIL],
            days,
            total,
            participants,
            smart_money_buying=False,
        )

    return _pattern(
        PatternType.PANIC,
        f"Retail panic selling detected ({days} heavy sell days, -{total:.0f}M total)",
        sessions,
        strength,
        [InvestorType.RETAIL],
        days,
        -total,
        participants,
        smart_money_buying=sum(_smart_money_nets(sessions)) > 0,
    )


def detect_fomo(sessions: Sequence[FlowSession]) -> Optional[DetectedPattern]:
    """Two or more days of retail net buying above 500M."""
    return _retail_extreme(sessions, buying=True)


def detect_panic(sessions: Sequence[FlowSession]) -> Optional[DetectedPattern]:
    """Two or more days of retail net selling above 500M."""
    return _retail_extreme(sessions, buying=False)


PATTERN_DETECTORS = (
    detect_accumulation,
    detect_distribution,
    detect_divergence,
    detect_fomo,
    detect_panic,
)


def detect_patterns(sessions: Sequence[FlowSession]) -> List[DetectedPattern]:
    if not sessions:
        return []
    return [p for p in (detector(sessions) for detector in PATTERN_DETECTORS) if p is not None]


# =============================================================================
# Analyzer
# =============================================================================


class FlowTrendAnalyzer:
    """Multi-day investor flow trends and patterns."""

    def __init__(self):
        logger.info("FlowTrendAnalyzer initialized")

    def analyze(
        self,
        historical: Optional[Sequence[HistoricalInvestorEntry]] = None,
        current: Optional[InvestorTypeSnapshot] = None,
    ) -> FlowTrendAnalysis:
        """
        Analyze a window of investor flows.

        Args:
            historical: Earlier net flows, most recent first
            current: Today's flows, appended as the newest session

        Raises:
            MissingPrerequisiteError: If there are no sessions at all
        """
        sessions = order_sessions(historical, current)
        if not sessions:
            raise MissingPrerequisiteError(
                detail="flow trend needs at least one investor session",
                context={"missing": ["historical_investors"]},
            )

        patterns = detect_patterns(sessions)
        logger.debug(
            f"Flow trend over {len(sessions)} sessions: "
            f"patterns={[p.pattern_type.value for p in patterns]}"
        )

        return FlowTrendAnalysis(
            combined=generate_combined_trend(sessions),
            aggregates={i: aggregate_flows(_nets(sessions, i)) for i in InvestorType},
            patterns=patterns,
        )


def analyze_flow_trend(
    historical: Optional[Sequence[HistoricalInvestorEntry]] = None,
    current: Optional[InvestorTypeSnapshot] = None,
) -> FlowTrendAnalysis:
    """Module-level shortcut for FlowTrendAnalyzer.analyze."""
    return FlowTrendAnalyzer().analyze(historical, current)
