"""
Tests for SmartMoneyAnalyzer module.
"""

import pytest

from marketintel.analytics.smart_money import (
    FlowTrend,
    InvestorType,
    MarketContext,
    PrimaryDriver,
    RiskSignal,
    SignalStrength,
    SmartMoneyAnalyzer,
    SmartMoneyScores,
    analyze_prop_trading,
    analyze_smart_money,
    apply_market_context,
    calculate_overall_confidence,
    calculate_smart_money_score,
    calculate_trend_strength,
    classify_signal_strength,
    detect_flow_trend,
    detect_primary_driver,
    generate_combined_signal,
    generate_risk_signal,
    generate_smart_money_signal,
    score_investor_signal,
)
from marketintel.models.snapshots import InvestorCategoryFlow, InvestorTypeSnapshot


def snapshot(foreign=0.0, institution=0.0, retail=0.0, prop=0.0):
    return InvestorTypeSnapshot(
        foreign=InvestorCategoryFlow.from_net(foreign),
        institution=InvestorCategoryFlow.from_net(institution),
        retail=InvestorCategoryFlow.from_net(retail),
        prop=InvestorCategoryFlow.from_net(prop),
        timestamp=1,
    )


def investor(kind, net, history=None):
    flows = [InvestorCategoryFlow.from_net(h) for h in history] if history else None
    return score_investor_signal(kind, InvestorCategoryFlow.from_net(net), flows)


# =============================================================================
# Classification
# =============================================================================


class TestClassification:
    """Tests for net flow strength and trend classification."""

    @pytest.mark.parametrize(
        "net,expected",
        [
            (500, SignalStrength.STRONG_BUY),
            (499, SignalStrength.BUY),
            (100, SignalStrength.BUY),
            (99, SignalStrength.NEUTRAL),
            (-99, SignalStrength.NEUTRAL),
            (-100, SignalStrength.SELL),
            (-500, SignalStrength.STRONG_SELL),
        ],
    )
    def test_signal_strength(self, net, expected):
        assert classify_signal_strength(net) == expected

    @pytest.mark.parametrize(
        "net,expected",
        [
            (150, FlowTrend.STABLE_BUY),
            (-150, FlowTrend.STABLE_SELL),
            (50, FlowTrend.NEUTRAL),
        ],
    )
    def test_trend_without_history(self, net, expected):
        assert detect_flow_trend(net) == expected
        assert detect_flow_trend(net, []) == expected

    @pytest.mark.parametrize(
        "net,history,expected",
        [
            (300, [100], FlowTrend.ACCELERATING_BUY),
            (300, [250], FlowTrend.STABLE_BUY),
            (300, [290], FlowTrend.DECREASING_BUY),
            (-300, [-100], FlowTrend.ACCELERATING_SELL),
            (-300, [-250], FlowTrend.STABLE_SELL),
            (-300, [-290], FlowTrend.DECREASING_SELL),
            (50, [-50], FlowTrend.DECREASING_SELL),
            (0, [100], FlowTrend.DECREASING_BUY),
            (10, [0], FlowTrend.NEUTRAL),
        ],
    )
    def test_trend_against_history(self, net, history, expected):
        assert detect_flow_trend(net, history) == expected

    def test_investor_history_stats(self, historical_investors):
        flows = [h.to_snapshot().foreign for h in historical_investors]
        analysis = score_investor_signal(
            InvestorType.FOREIGN, InvestorCategoryFlow.from_net(600), flows
        )

        assert analysis.trend == FlowTrend.ACCELERATING_BUY
        assert analysis.trend_5day == pytest.approx(800.0)
        assert analysis.avg_5day == pytest.approx(160.0)
        assert analysis.vs_average == pytest.approx(440.0)

    def test_investor_confidence(self):
        # strong +25, stable trend +10, flow over 500 +5
        assert investor(InvestorType.FOREIGN, 600).confidence == 90.0
        assert investor(InvestorType.FOREIGN, 50).confidence == 50.0


# =============================================================================
# Scoring
# =============================================================================


class TestScoring:
    """Tests for the weighted smart money score."""

    def test_fixture_day(self):
        scores = calculate_smart_money_score(
            investor(InvestorType.FOREIGN, 600),
            investor(InvestorType.INSTITUTION, 150),
            investor(InvestorType.RETAIL, -650),
            investor(InvestorType.PROP, -100),
        )

        # foreign 45 * 1.2 capped at 50 for display
        assert scores.foreign_score == 50.0
        assert scores.institution_score == 35.0
        assert scores.retail_score == pytest.approx(1.25)
        assert scores.prop_score == pytest.approx(3.75)
        assert scores.total_score == pytest.approx(72.2)

    @pytest.mark.parametrize("net", [-5000, -600, -150, 0, 150, 600, 5000])
    def test_bounded(self, net):
        history = [net / 4] * 5
        scores = calculate_smart_money_score(
            investor(InvestorType.FOREIGN, net, history),
            investor(InvestorType.INSTITUTION, net, history),
            investor(InvestorType.RETAIL, net, history),
            investor(InvestorType.PROP, net, history),
        )
        assert 0 <= scores.total_score <= 100
        assert 0 <= scores.foreign_score <= 50
        assert 0 <= scores.retail_score <= 25

    def test_smart_money_only(self):
        scores = calculate_smart_money_score(
            investor(InvestorType.FOREIGN, 0), investor(InvestorType.INSTITUTION, 0)
        )
        assert scores.retail_score == 0.0
        # (30 + 25) * 0.8
        assert scores.total_score == pytest.approx(44.0)


class TestSignals:
    """Tests for the combined signal and the primary driver."""

    @pytest.mark.parametrize(
        "foreign,institution,expected",
        [
            (600, 150, SignalStrength.STRONG_BUY),
            (80, 30, SignalStrength.BUY),
            (-400, -250, SignalStrength.STRONG_SELL),
            (-60, -60, SignalStrength.SELL),
            (150, -100, SignalStrength.NEUTRAL),
        ],
    )
    def test_combined_signal(self, foreign, institution, expected):
        signal = generate_combined_signal(
            investor(InvestorType.FOREIGN, foreign),
            investor(InvestorType.INSTITUTION, institution),
        )
        assert signal == expected

    def test_driver_both(self):
        driver = detect_primary_driver(
            investor(InvestorType.FOREIGN, 600), investor(InvestorType.INSTITUTION, 550)
        )
        assert driver == PrimaryDriver.BOTH

    def test_driver_foreign(self):
        driver = detect_primary_driver(
            investor(InvestorType.FOREIGN, 400), investor(InvestorType.INSTITUTION, 100)
        )
        assert driver == PrimaryDriver.FOREIGN

    def test_driver_institution(self):
        driver = detect_primary_driver(
            investor(InvestorType.FOREIGN, 50), investor(InvestorType.INSTITUTION, 300)
        )
        assert driver == PrimaryDriver.INSTITUTION

    def test_driver_retail(self):
        driver = detect_primary_driver(
            investor(InvestorType.FOREIGN, 100),
            investor(InvestorType.INSTITUTION, 100),
            retail=investor(InvestorType.RETAIL, -900),
        )
        assert driver == PrimaryDriver.RETAIL

    def test_driver_none(self):
        driver = detect_primary_driver(
            investor(InvestorType.FOREIGN, 100), investor(InvestorType.INSTITUTION, 90)
        )
        assert driver == PrimaryDriver.NONE

    def test_confidence_cut_on_disagreement(self):
        foreign = investor(InvestorType.FOREIGN, 600)
        institution = investor(InvestorType.INSTITUTION, -150)
        # (90 + 75) / 2 - 15
        assert calculate_overall_confidence(foreign, institution) == pytest.approx(67.5)

    @pytest.mark.parametrize(
        "total,signal,expected",
        [
            (70, SignalStrength.STRONG_BUY, RiskSignal.RISK_ON),
            (65, SignalStrength.STRONG_BUY, RiskSignal.NEUTRAL),
            (60, SignalStrength.BUY, RiskSignal.RISK_ON_MILD),
            (30, SignalStrength.STRONG_SELL, RiskSignal.RISK_OFF),
            (40, SignalStrength.SELL, RiskSignal.RISK_OFF_MILD),
            (50, SignalStrength.NEUTRAL, RiskSignal.NEUTRAL),
        ],
    )
    def test_risk_signal(self, total, signal, expected):
        scores = SmartMoneyScores(
            foreign_score=0, institution_score=0, retail_score=0, prop_score=0, total_score=total
        )
        assert generate_risk_signal(signal, scores) == expected

    def test_score_signal(self):
        scores = SmartMoneyScores(
            foreign_score=40, institution_score=20, retail_score=5, prop_score=5, total_score=72
        )
        signal = generate_smart_money_signal(scores, confidence=80)

        assert signal.signal == SignalStrength.STRONG_BUY
        assert signal.risk_signal == RiskSignal.RISK_ON
        assert signal.evidence == [
            "Foreign investors showing strong buying",
            "Institutions net selling",
            "Smart money strongly bullish",
        ]
        assert signal.to_dict()["signal"] == "Strong Buy"

    def test_score_signal_neutral(self):
        scores = SmartMoneyScores(
            foreign_score=22, institution_score=22, retail_score=5, prop_score=5, total_score=50
        )
        signal = generate_smart_money_signal(scores, confidence=50)
        assert signal.signal == SignalStrength.NEUTRAL
        assert signal.evidence == []


# =============================================================================
# Extras
# =============================================================================


class TestExtras:
    """Tests for prop trading, trend strength and market context."""

    def test_prop_reducing_sells(self):
        analysis = analyze_prop_trading(InvestorCategoryFlow.from_net(-150))
        assert analysis.activity == "Low"
        assert analysis.impact == "Reducing Risk"
        assert analysis.reducing_sell_volume

    def test_prop_heavy_selling(self):
        analysis = analyze_prop_trading(InvestorCategoryFlow.from_net(-1200))
        assert analysis.activity == "High"
        assert analysis.impact == "Amplifying Risk"
        assert not analysis.reducing_sell_volume

    def test_prop_buying(self):
        analysis = analyze_prop_trading(InvestorCategoryFlow.from_net(400))
        assert (analysis.activity, analysis.impact) == ("Normal", "Neutral")

    def test_prop_flat(self):
        assert analyze_prop_trading(InvestorCategoryFlow()).signal == "Prop firms flat"

    def test_trend_strength(self):
        assert calculate_trend_strength([]) == 50.0
        assert calculate_trend_strength([120]) == 50.0
        assert calculate_trend_strength([100, 100, 100]) == pytest.approx(0.0, abs=1e-9)
        assert calculate_trend_strength([0, 100, 200]) == 100.0
        assert calculate_trend_strength([100, 110, 120]) == pytest.approx(2000 / 111)

    def test_market_context(self):
        assert apply_market_context(50, 100) == pytest.approx(75.0)
        assert apply_market_context(80, 100) == 100.0
        assert apply_market_context(50, -10) == 50.0
        assert apply_market_context(50, 100, MarketContext(foreign_impact_factor=1.0)) == 50.0


# =============================================================================
# Analyzer
# =============================================================================


class TestSmartMoneyAnalyzer:
    """Tests for the full smart money analysis."""

    def test_fixture_day(self, investor_snapshot):
        result = SmartMoneyAnalyzer().analyze(investor_snapshot)

        assert result.foreign.strength == SignalStrength.STRONG_BUY
        assert result.institution.strength == SignalStrength.BUY
        assert result.investors[InvestorType.RETAIL].strength == SignalStrength.STRONG_SELL
        assert result.investors[InvestorType.PROP].strength == SignalStrength.SELL
        assert result.combined_signal == SignalStrength.STRONG_BUY
        assert result.risk_signal == RiskSignal.RISK_ON
        assert result.score == pytest.approx(72.2)
        assert result.confidence == pytest.approx(92.5)
        assert result.primary_driver == PrimaryDriver.RETAIL
        assert result.risk_on_confirmed
        assert not result.risk_off_confirmed

    def test_context_score(self, investor_snapshot):
        result = SmartMoneyAnalyzer().analyze(investor_snapshot)
        # 72.2 * 1.5 with foreigners buying, clamped
        assert result.context_score == 100.0
        assert result.to_dict()["context_score"] == 100.0

    def test_context_score_uses_analyzer_context(self, investor_snapshot):
        analyzer = SmartMoneyAnalyzer(MarketContext(foreign_impact_factor=1.1))
        result = analyzer.analyze(investor_snapshot)
        assert result.context_score == pytest.approx(72.2 * 1.1)
        assert result.score == pytest.approx(72.2)

    def test_context_score_foreign_selling(self):
        result = analyze_smart_money(snapshot(foreign=-700, institution=-200))
        assert result.context_score == pytest.approx(19.3)

    def test_observations(self, investor_snapshot):
        result = analyze_smart_money(investor_snapshot)
        assert result.observations == [
            "Foreign investors aggressive buying: +600M",
            "Institution flow: +150M",
            "Strong combined smart money buying",
            "Retail investors exiting positions",
        ]

    def test_with_history(self, investor_snapshot, historical_investors):
        result = analyze_smart_money(investor_snapshot, historical_investors)
        assert result.foreign.trend == FlowTrend.ACCELERATING_BUY
        assert result.institution.trend == FlowTrend.ACCELERATING_BUY
        assert result.foreign.trend_5day == pytest.approx(800.0)
        assert 0 <= result.score <= 100

    def test_risk_off_day(self):
        result = analyze_smart_money(snapshot(foreign=-700, institution=-200))

        assert result.combined_signal == SignalStrength.STRONG_SELL
        assert result.risk_signal == RiskSignal.RISK_OFF
        assert result.score == pytest.approx(19.3)
        assert result.risk_off_confirmed
        assert result.observations[:3] == [
            "Foreign investors aggressive selling: -700M",
            "Institution flow: -200M",
            "Strong combined smart money selling",
        ]

    def test_prop_reduction_observation(self):
        result = analyze_smart_money(snapshot(foreign=50, prop=-550))
        assert "Prop firms heavy selling (caution)" in result.observations

    def test_to_dict(self, investor_snapshot):
        data = analyze_smart_money(investor_snapshot).to_dict()
        assert data["combined_signal"] == "Strong Buy"
        assert data["investors"]["foreign"]["strength"] == "Strong Buy"
        assert data["scores"]["foreign_score"] == 50.0
        assert data["primary_driver"] == "retail"
