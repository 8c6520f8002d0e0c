# Market Intelligence Analytics Module

from marketintel.analytics.market_regime import (
    MarketRegime,
    MarketRegimeAnalyzer,
    RegimeConfidence,
    RegimeInput,
    RegimeResult,
    RegimeThresholds,
    analyze_market_regime,
    build_regime_input,
)
from marketintel.analytics.rankings_mapper import (
    RankingsBySector,
    RankingsSectorMap,
    calculate_sector_momentum,
    map_rankings_to_sectors,
)
from marketintel.analytics.sector_rotation import (
    Momentum,
    RegimeContext,
    RotationPattern,
    RotationSignal,
    SectorLeadership,
    SectorPerformance,
    SectorRotationAnalysis,
    SectorRotationAnalyzer,
    analyze_sector_rotation,
    classify_momentum,
    detect_rotation_signal,
    detect_sector_rotation,
    select_sectors_by_percentile,
)
from marketintel.analytics.smart_money import (
    FlowTrend,
    InvestorAnalysis,
    PrimaryDriver,
    RiskSignal,
    SignalStrength,
    SmartMoneyAnalysis,
    SmartMoneyAnalyzer,
    analyze_smart_money,
)
from marketintel.analytics.flow_trend import (
    DetectedPattern,
    FlowTrendAnalysis,
    FlowTrendAnalyzer,
    ParticipantRole,
    PatternType,
    TrendDirection,
    analyze_flow_trend,
    detect_patterns,
    generate_combined_trend,
)
from marketintel.analytics.correlations import (
    AnomalyType,
    CorrelationAnalyzer,
    CorrelationStrength,
    CrossReferenceData,
    RankingsImpactAnalysis,
    RankingsVsSectorAnalysis,
    analyze_rankings_impact,
    analyze_rankings_vs_sector,
    generate_correlation_summary,
    generate_cross_reference_data,
)
from marketintel.analytics.active_stocks import (
    ActiveStocksAnalysis,
    ConcentrationMetrics,
    CrossRankedStock,
    StockConcentration,
    analyze_active_stocks,
    calculate_concentration_metrics,
    detect_cross_rankings,
)
from marketintel.analytics.aggregator import (
    DataFreshness,
    MarketIntelligenceAggregator,
    MarketIntelligenceData,
    aggregate,
)

__all__ = [
    # Regime
    "MarketRegime",
    "MarketRegimeAnalyzer",
    "RegimeConfidence",
    "RegimeInput",
    "RegimeResult",
    "RegimeThresholds",
    "analyze_market_regime",
    "build_regime_input",
    # Rankings mapping
    "RankingsBySector",
    "RankingsSectorMap",
    "calculate_sector_momentum",
    "map_rankings_to_sectors",
    # Sector rotation
    "Momentum",
    "RegimeContext",
    "RotationPattern",
    "RotationSignal",
    "SectorLeadership",
    "SectorPerformance",
    "SectorRotationAnalysis",
    "SectorRotationAnalyzer",
    "analyze_sector_rotation",
    "classify_momentum",
    "detect_rotation_signal",
    "detect_sector_rotation",
    "select_sectors_by_percentile",
    # Smart money
    "FlowTrend",
    "InvestorAnalysis",
    "PrimaryDriver",
    "RiskSignal",
    "SignalStrength",
    "SmartMoneyAnalysis",
    "SmartMoneyAnalyzer",
    "analyze_smart_money",
    # Flow trend
    "DetectedPattern",
    "FlowTrendAnalysis",
    "FlowTrendAnalyzer",
    "ParticipantRole",
    "PatternType",
    "TrendDirection",
    "analyze_flow_trend",
    "detect_patterns",
    "generate_combined_trend",
    # Correlations
    "AnomalyType",
    "CorrelationAnalyzer",
    "CorrelationStrength",
    "CrossReferenceData",
    "RankingsImpactAnalysis",
    "RankingsVsSectorAnalysis",
    "analyze_rankings_impact",
    "analyze_rankings_vs_sector",
    "generate_correlation_summary",
    "generate_cross_reference_data",
    # Active stocks
    "ActiveStocksAnalysis",
    "ConcentrationMetrics",
    "CrossRankedStock",
    "StockConcentration",
    "analyze_active_stocks",
    "calculate_concentration_metrics",
    "detect_cross_rankings",
    # Aggregator
    "DataFreshness",
    "MarketIntelligenceAggregator",
    "MarketIntelligenceData",
    "aggregate",
]
