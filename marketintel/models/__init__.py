# Snapshot Models

from marketintel.models.snapshots import (
    HistoricalData,
    HistoricalInvestorEntry,
    HistoricalSectorChange,
    HistoricalSectorSnapshot,
    IndustrySectorSnapshot,
    InvestorCategoryFlow,
    InvestorTypeSnapshot,
    MarketIntelligenceInput,
    MarketOverview,
    NetFlow,
    RankedStock,
    SectorSnapshot,
    TopRankings,
)

__all__ = [
    "HistoricalData",
    "HistoricalInvestorEntry",
    "HistoricalSectorChange",
    "HistoricalSectorSnapshot",
    "IndustrySectorSnapshot",
    "InvestorCategoryFlow",
    "InvestorTypeSnapshot",
    "MarketIntelligenceInput",
    "MarketOverview",
    "NetFlow",
    "RankedStock",
    "SectorSnapshot",
    "TopRankings",
]
