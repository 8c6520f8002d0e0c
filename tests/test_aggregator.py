"""
Tests for the market intelligence aggregator.
"""

import logging
import math
from unittest.mock import patch

import pytest

from marketintel.analytics.aggregator import (
    MarketIntelligenceAggregator,
    aggregate,
    calculate_data_freshness,
)
from marketintel.analytics.market_regime import MarketRegime
from marketintel.analytics.sector_rotation import SectorRotationAnalyzer
from marketintel.analytics.smart_money import SignalStrength, SmartMoneyAnalyzer
from marketintel.config.settings import IntelligenceOptions, IntelligenceSettings
from marketintel.core.errors import InvalidArgumentError
from marketintel.models.snapshots import MarketIntelligenceInput


@pytest.fixture
def aggregator(reference):
    return MarketIntelligenceAggregator(reference=reference, settings=IntelligenceSettings())


# =============================================================================
# Freshness
# =============================================================================


class TestDataFreshness:
    """Tests for per-source data age."""

    def test_fresh(self, intelligence_input, now_millis):
        freshness = calculate_data_freshness(intelligence_input, 60, now_millis + 30 * 60000)

        assert freshness.is_fresh
        assert freshness.max_age_minutes == 30.0
        assert set(freshness.sources) == {"market", "investor", "sector", "rankings"}
        assert freshness.sources["sector"] == pytest.approx(30.0)

    def test_stale(self, intelligence_input, now_millis):
        freshness = calculate_data_freshness(intelligence_input, 60, now_millis + 90 * 60000)
        assert not freshness.is_fresh
        assert freshness.max_age_minutes == 90.0

    def test_missing_source_is_infinitely_old(self, market_data, now_millis):
        data = MarketIntelligenceInput.model_validate({"marketOverview": market_data})
        freshness = calculate_data_freshness(data, 60, now_millis)

        assert not freshness.is_fresh
        assert math.isinf(freshness.max_age_minutes)
        assert freshness.sources["market"] == pytest.approx(0.0)
        assert math.isinf(freshness.sources["rankings"])


# =============================================================================
# Input and Options
# =============================================================================


class TestCoercion:
    """Tests for options and input validation."""

    def test_default_options(self, aggregator):
        options = aggregator.coerce_options(None)
        assert options == IntelligenceOptions()

    def test_camel_case_options(self, aggregator):
        options = aggregator.coerce_options({"topSectorsCount": 2, "includeP2": False})
        assert options.top_sectors_count == 2
        assert not options.include_p2
        assert options.bottom_sectors_count == 5

    @pytest.mark.parametrize(
        "options",
        [
            {"topSectorsCount": 0},
            {"percentileCutoff": 0},
            {"percentileCutoff": 150},
            {"maxDataAgeMinutes": -5},
        ],
    )
    def test_invalid_options(self, aggregator, options):
        with pytest.raises(InvalidArgumentError):
            aggregator.coerce_options(options)

    def test_malformed_source_dropped(self, aggregator, raw_input, caplog):
        raw_input["rankings"] = {"topGainers": "not a list"}
        with caplog.at_level(logging.WARNING, logger="marketintel.analytics.aggregator"):
            data = aggregator.coerce_input(raw_input)

        assert data.rankings is None
        assert data.market_overview is not None
        assert "Ignoring malformed rankings snapshot" in caplog.text

    def test_model_input_passthrough(self, aggregator, intelligence_input):
        assert aggregator.coerce_input(intelligence_input) is intelligence_input


# =============================================================================
# Aggregation
# =============================================================================


class TestAggregate:
    """Tests for the combined dashboard record."""

    @pytest.mark.asyncio
    async def test_empty_input(self, aggregator):
        result = await aggregator.aggregate({}, {})

        assert result.regime is None
        assert result.smart_money is None
        assert result.sector_rotation is None
        assert result.active_stocks is None
        assert not result.freshness.is_fresh
        assert math.isinf(result.freshness.max_age_minutes)

    @pytest.mark.asyncio
    async def test_full_input(self, aggregator, raw_input):
        result = await aggregator.aggregate(raw_input)

        assert result.regime.regime == MarketRegime.RISK_ON
        assert result.smart_money.combined_signal == SignalStrength.STRONG_BUY
        assert result.sector_rotation is not None
        assert result.active_stocks.metrics.cross_ranked_count == 3
        assert result.freshness.is_fresh
        assert result.timestamp > 0

    @pytest.mark.asyncio
    async def test_history_reaches_analyses(self, aggregator, raw_input):
        result = await aggregator.aggregate(raw_input)

        assert result.smart_money.foreign.trend_5day == pytest.approx(800.0)
        entry_ids = {p.sector.id for p in result.sector_rotation.entry_signals}
        assert entry_ids == {"TECH", "FIN"}

    @pytest.mark.asyncio
    async def test_feature_groups(self, aggregator, raw_input):
        result = await aggregator.aggregate(raw_input, {"includeP1": False})
        assert result.sector_rotation is None
        assert result.regime is not None
        assert result.active_stocks is not None

        result = await aggregator.aggregate(raw_input, {"includeP0": False, "includeP2": False})
        assert result.regime is None
        assert result.smart_money is None
        assert result.active_stocks is None
        assert result.sector_rotation is not None

    @pytest.mark.asyncio
    async def test_signal_caps(self, aggregator, raw_input):
        full = await aggregator.aggregate(raw_input)
        capped = await aggregator.aggregate(
            raw_input, {"topSectorsCount": 1, "bottomSectorsCount": 1}
        )

        assert len(capped.sector_rotation.entry_signals) == 1
        assert len(capped.sector_rotation.exit_signals) == 1
        best_exit = max(p.confidence for p in full.sector_rotation.exit_signals)
        assert capped.sector_rotation.exit_signals[0].confidence == best_exit

        confidences = [p.confidence for p in full.sector_rotation.exit_signals]
        assert confidences == sorted(confidences, reverse=True)

    @pytest.mark.asyncio
    async def test_top_stocks_count(self, aggregator, raw_input):
        result = await aggregator.aggregate(raw_input, {"topStocksCount": 2})
        assert len(result.active_stocks.top_by_value) == 2

    @pytest.mark.asyncio
    async def test_invalid_options_raise(self, aggregator, raw_input):
        with pytest.raises(InvalidArgumentError):
            await aggregator.aggregate(raw_input, {"bottomSectorsCount": 0})

    @pytest.mark.asyncio
    async def test_missing_sources(self, aggregator, raw_input):
        del raw_input["marketOverview"]
        del raw_input["rankings"]
        result = await aggregator.aggregate(raw_input)

        assert result.regime is None
        assert result.active_stocks is None
        assert result.smart_money is not None
        assert result.sector_rotation is not None

    @pytest.mark.asyncio
    async def test_malformed_source_only_nulls_its_analysis(self, aggregator, raw_input):
        raw_input["rankings"] = {"topValue": [{"symbol": ""}]}
        result = await aggregator.aggregate(raw_input)

        assert result.active_stocks is None
        assert result.regime is not None
        assert result.sector_rotation is not None

    @pytest.mark.asyncio
    async def test_fault_isolated(self, aggregator, raw_input, caplog):
        with patch.object(SmartMoneyAnalyzer, "analyze", side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.ERROR, logger="marketintel.core.errors"):
                result = await aggregator.aggregate(raw_input)

        assert result.smart_money is None
        assert result.regime is not None
        assert result.sector_rotation is not None
        assert result.active_stocks is not None
        assert "Error analyzing smart_money" in caplog.text

    @pytest.mark.asyncio
    async def test_rotation_fault_isolated(self, aggregator, raw_input):
        with patch.object(
            SectorRotationAnalyzer, "analyze_sector_rotation", side_effect=ZeroDivisionError()
        ):
            result = await aggregator.aggregate(raw_input)

        assert result.sector_rotation is None
        assert result.smart_money is not None

    @pytest.mark.asyncio
    async def test_to_dict(self, aggregator, raw_input):
        data = (await aggregator.aggregate(raw_input)).to_dict()

        assert set(data) == {
            "regime",
            "smart_money",
            "sector_rotation",
            "active_stocks",
            "timestamp",
            "freshness",
        }
        assert data["regime"]["regime"] == "Risk-On"
        assert data["freshness"]["is_fresh"] is True

    @pytest.mark.asyncio
    async def test_module_function(self, reference, raw_input):
        result = await aggregate(raw_input, reference=reference)
        assert result.smart_money is not None
