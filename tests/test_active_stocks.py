"""
Tests for the active stocks concentration module.
"""

import pytest

from marketintel.analytics.active_stocks import (
    BROADLY_DISTRIBUTED,
    HIGHLY_CONCENTRATED,
    MODERATELY_CONCENTRATED,
    analyze_active_stocks,
    build_stock_concentration,
    calculate_concentration_metrics,
    calculate_strength_score,
    detect_cross_rankings,
)
from marketintel.models.snapshots import RankedStock, TopRankings


def value_list(values):
    return TopRankings(
        top_value=[RankedStock(symbol=f"S{i}", value=v) for i, v in enumerate(values)]
    )


class TestCrossRankings:
    """Tests for stocks appearing in several ranked lists."""

    def test_strength_score(self):
        assert calculate_strength_score({"value": 1, "volume": 2}) == pytest.approx(95.0)
        assert calculate_strength_score({"value": 15}) == 0.0
        assert calculate_strength_score({}) == 0.0

    def test_value_and_volume_leader(self):
        rankings = TopRankings(
            top_value=[RankedStock(symbol="DELTA", value=4200.0)],
            top_volume=[RankedStock(symbol="PTT"), RankedStock(symbol="DELTA")],
        )
        cross = detect_cross_rankings(rankings)

        assert len(cross) == 1
        assert cross[0].symbol == "DELTA"
        assert cross[0].ranking_count == 2
        assert cross[0].rankings == {"value": 1, "volume": 2}
        assert cross[0].strength_score == pytest.approx(95.0)

    def test_fixture_day(self, rankings):
        cross = detect_cross_rankings(rankings)

        assert [s.symbol for s in cross] == ["DELTA", "PTT", "KBANK"]
        assert cross[0].rankings == {"value": 1, "volume": 3, "gainer": 1}
        assert cross[0].strength_score == pytest.approx(280 / 3)
        assert all(s.ranking_count >= 2 for s in cross)

    def test_limits(self, rankings):
        cross = detect_cross_rankings(rankings, max_stocks_per_category=1)
        assert [(s.symbol, s.strength_score) for s in cross] == [("DELTA", 100.0)]
        assert len(detect_cross_rankings(rankings, max_results=1)) == 1

    def test_no_rankings(self):
        assert detect_cross_rankings(None) == []


class TestConcentrationMetrics:
    """Tests for top-N value shares and the HHI."""

    def test_fixture_day(self, rankings):
        metrics = calculate_concentration_metrics(rankings, 11600.0, cross_ranked_count=3)

        assert metrics.top10_value_concentration == 100
        assert metrics.top5_stock_concentration == 100
        assert metrics.hhi == 2730
        assert metrics.interpretation == HIGHLY_CONCENTRATED
        assert metrics.cross_ranked_count == 3

    def test_moderate(self):
        metrics = calculate_concentration_metrics(value_list([100.0] * 10), 1000.0)
        assert metrics.top5_stock_concentration == 50
        assert metrics.hhi == 1000
        assert metrics.interpretation == MODERATELY_CONCENTRATED

    def test_broad(self):
        metrics = calculate_concentration_metrics(value_list([100.0] * 10), 10000.0)
        assert metrics.hhi == 10
        assert metrics.interpretation == BROADLY_DISTRIBUTED

    def test_zero_total(self):
        metrics = calculate_concentration_metrics(value_list([0.0, 0.0]), 0.0)
        assert metrics.hhi == 0
        assert metrics.top10_value_concentration == 0
        assert metrics.total_value == 0.0

    def test_hhi_bounded(self):
        metrics = calculate_concentration_metrics(value_list([500.0]), 500.0)
        assert metrics.hhi == 10000

    def test_share_zero_when_total_zero(self):
        stocks = build_stock_concentration([RankedStock(symbol="PTT", value=10.0)], 0)
        assert stocks[0].value_percent_of_total == 0.0


class TestAnalyzeActiveStocks:
    """Tests for the full active stocks analysis."""

    def test_fixture_day(self, rankings):
        result = analyze_active_stocks(rankings)

        assert [s.symbol for s in result.top_by_value] == ["DELTA", "KBANK", "PTT", "AOT"]
        assert result.top_by_value[0].value_percent_of_total == pytest.approx(4200 / 11600 * 100)
        assert all(s.value_percent_of_total == 0.0 for s in result.top_by_volume)
        assert result.metrics.total_value == 11600.0
        assert result.metrics.cross_ranked_count == 3
        assert result.observations == [
            "Market attention highly concentrated in few stocks",
            "Highest concentration: DELTA (36.2% of value)",
            "3 stocks appearing in multiple rankings",
        ]

    def test_top_stocks_count(self, rankings):
        result = analyze_active_stocks(rankings, top_stocks_count=2)
        assert len(result.top_by_value) == 2
        assert len(result.cross_ranked) == 2

    def test_no_values(self):
        rankings = TopRankings(top_value=[RankedStock(symbol="PTT")], top_volume=[RankedStock(symbol="PTT")])
        result = analyze_active_stocks(rankings)

        assert result.metrics.hhi == 0
        assert result.metrics.interpretation == BROADLY_DISTRIBUTED
        assert result.top_by_value[0].value_percent_of_total == 0.0
        assert result.observations[0] == "Market attention broadly distributed across many stocks"

    def test_empty(self):
        result = analyze_active_stocks(TopRankings())
        assert result.top_by_value == []
        assert result.cross_ranked == []
        assert result.to_dict()["metrics"]["hhi"] == 0
