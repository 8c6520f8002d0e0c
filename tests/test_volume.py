"""
Tests for market volume readings.
"""

import pytest

from marketintel.diagnostic import (
    ConcentrationLevel,
    ConvictionLevel,
    VolumeAnalysisData,
    VolumeHealthStatus,
    VolumeTrend,
    analyze_market_volume,
    average_volume,
    calculate_batch_relative_volume,
    calculate_volume_concentration,
    calculate_volume_health,
    calculate_vwad,
)
from marketintel.diagnostic.stock_decline import check_volume_signals
from marketintel.diagnostic.volume import calculate_volume_trend, classify_conviction
from marketintel.models.snapshots import RankedStock, TopRankings


def stock(symbol, change=None, volume=None):
    return RankedStock(symbol=symbol, change_pct=change, volume=volume)


def volumes(*values):
    return [stock(f"S{i}", volume=v) for i, v in enumerate(values)]


class TestVolumeHealth:
    """Tests for today's volume against its average."""

    @pytest.mark.parametrize(
        "current,average,score,status",
        [
            (45000, 45000, 50, VolumeHealthStatus.NORMAL),
            (70000, 50000, 70, VolumeHealthStatus.STRONG),
            (90000, 45000, 100, VolumeHealthStatus.EXPLOSIVE),
            (10000, 45000, 11, VolumeHealthStatus.ANEMIC),
        ],
    )
    def test_score_and_status(self, current, average, score, status):
        health = calculate_volume_health(current, average)
        assert health.health_score == score
        assert health.status == status

    def test_capped_at_100(self):
        assert calculate_volume_health(500000, 45000).health_score == 100

    @pytest.mark.parametrize("average", [None, 0, -10])
    def test_neutral_without_average(self, average):
        health = calculate_volume_health(45000, average)
        assert health.health_score == 50
        assert health.status == VolumeHealthStatus.NORMAL

    def test_negative_volume_floored(self):
        health = calculate_volume_health(-5, 100)
        assert health.current_volume == 0.0
        assert health.health_score == 0

    @pytest.mark.parametrize(
        "current,previous,expected",
        [
            (111, 100, VolumeTrend.UP),
            (110, 100, VolumeTrend.NEUTRAL),
            (89, 100, VolumeTrend.DOWN),
            (100, None, VolumeTrend.NEUTRAL),
            (100, 0, VolumeTrend.NEUTRAL),
        ],
    )
    def test_trend(self, current, previous, expected):
        assert calculate_volume_trend(current, previous) == expected

    def test_average_from_history(self):
        assert average_volume([40000, 50000]) == pytest.approx(45000.0)
        assert average_volume([]) is None

    def test_to_dict(self):
        data = calculate_volume_health(45000, 45000, 30000).to_dict()
        assert data["status"] == "Normal"
        assert data["trend"] == "Up"


class TestVWAD:
    """Tests for volume-weighted advance/decline."""

    def test_bullish(self):
        result = calculate_vwad([stock("A", 2.0, 300), stock("B", -1.0, 100), stock("C", 0.0, 100)])
        # unchanged C counts toward the total only
        assert result.vwad == pytest.approx(40.0)
        assert result.conviction == ConvictionLevel.BULLISH
        assert (result.up_volume, result.down_volume, result.total_volume) == (300, 100, 500)

    def test_bearish(self):
        result = calculate_vwad([stock("A", 1.0, 100), stock("B", -1.0, 300)])
        assert result.vwad == pytest.approx(-50.0)
        assert result.conviction == ConvictionLevel.BEARISH

    def test_missing_volume_ignored(self):
        result = calculate_vwad([stock("A", 1.0, None), stock("B", -1.0, 100)])
        assert result.vwad == pytest.approx(-100.0)

    def test_empty(self):
        result = calculate_vwad([])
        assert result.vwad == 0.0
        assert result.conviction == ConvictionLevel.NEUTRAL

    def test_conviction_boundaries(self):
        assert classify_conviction(30.0) == ConvictionLevel.BULLISH
        assert classify_conviction(29.99) == ConvictionLevel.NEUTRAL
        assert classify_conviction(-30.0) == ConvictionLevel.BEARISH


class TestVolumeConcentration:
    """Tests for top-5 against top-30 volume."""

    def test_risky(self):
        result = calculate_volume_concentration(volumes(*[10] * 10))
        assert result.concentration == pytest.approx(50.0)
        assert result.level == ConcentrationLevel.RISKY

    def test_only_top_thirty_counted(self):
        result = calculate_volume_concentration(volumes(*[10] * 35))
        assert result.total_volume == 300
        assert result.concentration == pytest.approx(16.67)
        assert result.level == ConcentrationLevel.HEALTHY

    def test_unsorted_input(self):
        result = calculate_volume_concentration(volumes(*([10] * 25 + [20] * 5)))
        assert result.top_volume == 100
        assert result.concentration == pytest.approx(28.57)
        assert result.level == ConcentrationLevel.NORMAL

    def test_empty(self):
        result = calculate_volume_concentration([])
        assert result.concentration == 0.0
        assert result.level == ConcentrationLevel.HEALTHY


class TestRelativeVolume:
    """Tests for per-stock relative volume."""

    def test_batch(self):
        stocks = [stock("A", volume=300), stock("B"), stock("C", volume=50), stock("ptt", volume=50)]
        result = calculate_batch_relative_volume(stocks, {"A": 200, "PTT": 100})
        assert result == {"A": 1.5, "B": 1.0, "C": 1.0, "PTT": 0.5}


class TestMarketVolumeReport:
    """Tests for the combined day's volume readings."""

    @pytest.fixture
    def bearish_rankings(self):
        return TopRankings(
            top_gainers=[stock("A", 1.0, 100)],
            top_losers=[stock("B", -2.0, 300)],
            top_volume=volumes(50, 10, 10, 10, 10, 10),
        )

    def test_report(self, bearish_rankings):
        report = analyze_market_volume(45000, bearish_rankings, average=45000)

        assert report.health.health_score == 50
        assert report.vwad.vwad == pytest.approx(-50.0)
        assert report.concentration.concentration == pytest.approx(90.0)
        assert report.to_dict()["concentration"]["level"] == "Risky"

    def test_feeds_diagnostic_volume_check(self, bearish_rankings):
        data = analyze_market_volume(10000, bearish_rankings, average=45000).to_analysis_data()

        assert data == VolumeAnalysisData(health_score=11.0, vwad=-50.0, concentration=90.0)
        flags = check_volume_signals(data)
        assert [f.value for f in flags] == [11.0, -50.0, 90.0]
        assert all(f.is_red for f in flags)
