"""
Market Intelligence Aggregator

Run every analysis the available snapshots allow and combine the results
into one dashboard record. Each analysis is independent: a missing source
or an internal fault nulls only the affected field, never the whole call.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from marketintel.analytics.active_stocks import ActiveStocksAnalysis, analyze_active_stocks
from marketintel.analytics.market_regime import MarketRegimeAnalyzer, RegimeResult
from marketintel.analytics.sector_rotation import SectorRotationAnalysis, SectorRotationAnalyzer
from marketintel.analytics.smart_money import SmartMoneyAnalysis, SmartMoneyAnalyzer
from marketintel.config.logging import (
    analysis_logger,
    clear_analysis_context,
    log_performance,
    set_analysis_context,
)
from marketintel.config.settings import IntelligenceOptions, IntelligenceSettings, get_settings
from marketintel.core.errors import (
    ErrorCodes,
    GracefulDegradation,
    InvalidArgumentError,
    MissingPrerequisiteError,
)
from marketintel.models.snapshots import MarketIntelligenceInput
from marketintel.reference.reference_data import (
    ReferenceData,
    get_reference_data,
    load_reference_data,
)

logger = logging.getLogger(__name__)

MILLIS_PER_MINUTE = 60000

# Freshness source name -> input attribute
FRESHNESS_SOURCES = {
    "market": "market_overview",
    "investor": "investor_type",
    "sector": "industry_sector",
    "rankings": "rankings",
}


@dataclass(frozen=True)
class DataFreshness:
    """Age of each source in minutes; missing sources are infinitely old."""

    is_fresh: bool
    max_age_minutes: float
    sources: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_fresh": self.is_fresh,
            "max_age_minutes": self.max_age_minutes,
            "sources": dict(self.sources),
        }


@dataclass(frozen=True)
class MarketIntelligenceData:
    """Dashboard record; any analysis that could not run is None."""

    regime: Optional[RegimeResult]
    smart_money: Optional[SmartMoneyAnalysis]
    sector_rotation: Optional[SectorRotationAnalysis]
    active_stocks: Optional[ActiveStocksAnalysis]
    timestamp: int
    freshness: DataFreshness

    def to_dict(self) -> Dict[str, Any]:
        return {
            "regime": self.regime.to_dict() if self.regime else None,
            "smart_money": self.smart_money.to_dict() if self.smart_money else None,
            "sector_rotation": self.sector_rotation.to_dict() if self.sector_rotation else None,
            "active_stocks": self.active_stocks.to_dict() if self.active_stocks else None,
            "timestamp": self.timestamp,
            "freshness": self.freshness.to_dict(),
        }


def _now_millis() -> int:
    return int(datetime.now().timestamp() * 1000)


def calculate_data_freshness(
    data: MarketIntelligenceInput,
    max_age_minutes: int,
    now_millis: Optional[int] = None,
) -> DataFreshness:
    """
    Per-source age in minutes and whether the oldest source is within
    ``max_age_minutes``.
    """
    now = now_millis if now_millis is not None else _now_millis()

    sources: Dict[str, float] = {}
    for name, attr in FRESHNESS_SOURCES.items():
        snapshot = getattr(data, attr)
        sources[name] = (now - snapshot.timestamp) / MILLIS_PER_MINUTE if snapshot else math.inf

    max_age = max(sources.values())
    rounded = max_age if math.isinf(max_age) else float(round(max_age))
    return DataFreshness(
        is_fresh=max_age <= max_age_minutes,
        max_age_minutes=rounded,
        sources=sources,
    )


class MarketIntelligenceAggregator:
    """
    Combine regime, smart money, sector rotation and active stock analyses.

    Feature groups: P0 runs regime and smart money, P1 sector rotation and
    P2 active stocks. Analyses run concurrently; each one degrades to None
    on its own.
    """

    def __init__(
        self,
        reference: Optional[ReferenceData] = None,
        settings: Optional[IntelligenceSettings] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            reference: Sector taxonomy and symbol mapping
            settings: Engine settings (defaults to the environment)
        """
        self.settings = settings or get_settings()
        if reference is None:
            if self.settings.REFERENCE_DATA_PATH:
                reference = load_reference_data(self.settings.REFERENCE_DATA_PATH)
            else:
                reference = get_reference_data()
        self.reference = reference

        self.regime_analyzer = MarketRegimeAnalyzer(
            reference=self.reference,
            baseline_volume=self.settings.BASELINE_VOLUME,
        )
        self.smart_money_analyzer = SmartMoneyAnalyzer()
        logger.info("MarketIntelligenceAggregator initialized")

    # -------------------------------------------------------------------------
    # Input Coercion
    # -------------------------------------------------------------------------

    def coerce_options(
        self, options: Optional[Union[IntelligenceOptions, Mapping[str, Any]]]
    ) -> IntelligenceOptions:
        """
        Merge caller options over the configured defaults.

        Raises:
            InvalidArgumentError: If an option value is out of range
        """
        if isinstance(options, IntelligenceOptions):
            return options

        defaults = self.settings.to_options()
        if not options:
            return defaults

        try:
            return IntelligenceOptions.model_validate({**defaults.model_dump(), **dict(options)})
        except ValidationError as e:
            raise InvalidArgumentError(
                ErrorCodes.VALIDATION_INVALID_ARGUMENT,
                detail=f"Invalid aggregation options: {e.error_count()} error(s)",
                original_error=e,
                context={"errors": e.errors(include_url=False)},
            )

    @staticmethod
    def coerce_input(
        input_data: Optional[Union[MarketIntelligenceInput, Mapping[str, Any]]]
    ) -> MarketIntelligenceInput:
        """
        Validate raw input source by source.

        A malformed source is logged and treated as missing so the other
        sources still produce their analyses.
        """
        if isinstance(input_data, MarketIntelligenceInput):
            return input_data
        if not input_data:
            return MarketIntelligenceInput()

        raw = dict(input_data)
        valid: Dict[str, Any] = {}
        for name, info in MarketIntelligenceInput.model_fields.items():
            key = name if name in raw else info.alias
            if key not in raw or raw[key] is None:
                continue
            try:
                MarketIntelligenceInput.model_validate({name: raw[key]})
            except ValidationError as e:
                logger.warning(
                    f"Ignoring malformed {name} snapshot: {e.error_count()} validation error(s)"
                )
                continue
            valid[name] = raw[key]

        return MarketIntelligenceInput.model_validate(valid)

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @staticmethod
    def _require(component: str, **sources: Any) -> None:
        missing = [name for name, value in sources.items() if value is None]
        if missing:
            raise MissingPrerequisiteError(
                detail=f"{component} requires {', '.join(missing)}",
                context={"component": component, "missing": missing},
            )

    async def _analyze_regime(self, data: MarketIntelligenceInput) -> Optional[RegimeResult]:
        self._require(
            "regime",
            market_overview=data.market_overview,
            investor_type=data.investor_type,
            industry_sector=data.industry_sector,
        )
        return self.regime_analyzer.analyze_market_regime(
            data.market_overview, data.investor_type, data.industry_sector
        )

    async def _analyze_smart_money(self, data: MarketIntelligenceInput) -> SmartMoneyAnalysis:
        self._require("smart_money", investor_type=data.investor_type)
        historical = data.historical.investor_types if data.historical else None
        return self.smart_money_analyzer.analyze(data.investor_type, historical)

    async def _analyze_sector_rotation(
        self, data: MarketIntelligenceInput, options: IntelligenceOptions
    ) -> SectorRotationAnalysis:
        self._require("sector_rotation", industry_sector=data.industry_sector)
        analyzer = SectorRotationAnalyzer(
            reference=self.reference, percentile=options.percentile_cutoff
        )
        historical = data.historical.sectors if data.historical else None
        analysis = analyzer.analyze_sector_rotation(
            data.industry_sector, rankings=data.rankings, historical=historical
        )

        entry = sorted(analysis.entry_signals, key=lambda p: p.confidence, reverse=True)
        exit_ = sorted(analysis.exit_signals, key=lambda p: p.confidence, reverse=True)
        return replace(
            analysis,
            entry_signals=entry[: options.top_sectors_count],
            exit_signals=exit_[: options.bottom_sectors_count],
        )

    async def _analyze_active_stocks(
        self, data: MarketIntelligenceInput, options: IntelligenceOptions
    ) -> ActiveStocksAnalysis:
        self._require("active_stocks", rankings=data.rankings)
        return analyze_active_stocks(
            data.rankings,
            top_stocks_count=options.top_stocks_count,
            max_stocks_per_category=options.max_stocks_per_category,
        )

    async def _run(self, component: str, func: Callable, *args) -> Optional[Any]:
        degradation = GracefulDegradation(component)
        start = time.perf_counter()
        result = await degradation.run(func, *args)

        if result is not None:
            analysis_logger.log_analysis_complete(component, (time.perf_counter() - start) * 1000)
        elif isinstance(degradation.last_error, MissingPrerequisiteError):
            missing = degradation.last_error.context.get("missing", [])
            analysis_logger.log_analysis_skipped(component, ", ".join(missing))
        return result

    @staticmethod
    async def _disabled() -> None:
        return None

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------

    @log_performance(threshold_ms=500)
    async def aggregate(
        self,
        input_data: Optional[Union[MarketIntelligenceInput, Mapping[str, Any]]] = None,
        options: Optional[Union[IntelligenceOptions, Mapping[str, Any]]] = None,
    ) -> MarketIntelligenceData:
        """
        Run every enabled analysis and combine the results.

        Args:
            input_data: Snapshots as a model, a plain dict, or None
            options: Options as a model, a plain dict, or None

        Returns:
            MarketIntelligenceData with None for analyses that could not run

        Raises:
            InvalidArgumentError: If the options are invalid
        """
        opts = self.coerce_options(options)
        data = self.coerce_input(input_data)
        analysis_id = set_analysis_context()

        try:
            logger.debug(f"Aggregating market intelligence ({analysis_id})")

            tasks: List = [
                self._run("regime", self._analyze_regime, data)
                if opts.include_p0
                else self._disabled(),
                self._run("smart_money", self._analyze_smart_money, data)
                if opts.include_p0
                else self._disabled(),
                self._run("sector_rotation", self._analyze_sector_rotation, data, opts)
                if opts.include_p1
                else self._disabled(),
                self._run("active_stocks", self._analyze_active_stocks, data, opts)
                if opts.include_p2
                else self._disabled(),
            ]
            regime, smart_money, sector_rotation, active_stocks = await asyncio.gather(*tasks)

            freshness = calculate_data_freshness(data, opts.max_data_age_minutes)
            if not freshness.is_fresh and not math.isinf(freshness.max_age_minutes):
                analysis_logger.log_stale_data(
                    freshness.max_age_minutes, opts.max_data_age_minutes
                )

            return MarketIntelligenceData(
                regime=regime,
                smart_money=smart_money,
                sector_rotation=sector_rotation,
                active_stocks=active_stocks,
                timestamp=_now_millis(),
                freshness=freshness,
            )
        finally:
            clear_analysis_context()


async def aggregate(
    input_data: Optional[Union[MarketIntelligenceInput, Mapping[str, Any]]] = None,
    options: Optional[Union[IntelligenceOptions, Mapping[str, Any]]] = None,
    reference: Optional[ReferenceData] = None,
) -> MarketIntelligenceData:
    """Aggregate market intelligence with a default-configured aggregator."""
    return await MarketIntelligenceAggregator(reference=reference).aggregate(input_data, options)
