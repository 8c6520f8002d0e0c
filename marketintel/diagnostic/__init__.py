# Stock Decline Diagnostic Module

from marketintel.diagnostic.stock_decline import (
    DiagnosticAction,
    DiagnosticCategory,
    DiagnosticFlag,
    FlagSeverity,
    StockDeclineDiagnostic,
    StockDiagnosticInput,
    StockDiagnosticResult,
    ValuationData,
    determine_overall_action,
    diagnose_stock_decline,
)
from marketintel.diagnostic.technical import (
    TechnicalIndicators,
    build_technical_indicators,
    calculate_relative_volume,
    calculate_trend,
    calculate_week52_position,
)
from marketintel.diagnostic.volume import (
    ConcentrationLevel,
    ConvictionLevel,
    MarketVolumeReport,
    VolumeAnalysisData,
    VolumeConcentration,
    VolumeHealth,
    VolumeHealthStatus,
    VolumeTrend,
    VWADResult,
    analyze_market_volume,
    average_volume,
    calculate_batch_relative_volume,
    calculate_volume_concentration,
    calculate_volume_health,
    calculate_vwad,
)

__all__ = [
    "DiagnosticAction",
    "DiagnosticCategory",
    "DiagnosticFlag",
    "FlagSeverity",
    "StockDeclineDiagnostic",
    "StockDiagnosticInput",
    "StockDiagnosticResult",
    "ValuationData",
    "determine_overall_action",
    "diagnose_stock_decline",
    # Technical
    "TechnicalIndicators",
    "build_technical_indicators",
    "calculate_relative_volume",
    "calculate_trend",
    "calculate_week52_position",
    # Volume
    "ConcentrationLevel",
    "ConvictionLevel",
    "MarketVolumeReport",
    "VolumeAnalysisData",
    "VolumeConcentration",
    "VolumeHealth",
    "VolumeHealthStatus",
    "VolumeTrend",
    "VWADResult",
    "analyze_market_volume",
    "average_volume",
    "calculate_batch_relative_volume",
    "calculate_volume_concentration",
    "calculate_volume_health",
    "calculate_vwad",
]
