"""
Market Snapshot Models

Pydantic models for the daily snapshots handed to the engine by the data
collaborator. Snapshots are immutable and accept either snake_case field
names or the collaborator's camelCase keys.
"""

from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Custom Field Types with Annotated
# =============================================================================

# Non-negative float for market cap, volume, traded value
NonNegativeFloat = Annotated[
    float,
    Field(ge=0, description="Non-negative floating-point number"),
]

# Epoch milliseconds
EpochMillis = Annotated[
    int,
    Field(ge=0, description="Unix epoch timestamp in milliseconds"),
]


class SnapshotModel(BaseModel):
    """Base for immutable snapshot models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


# =============================================================================
# Sector Snapshots
# =============================================================================


class SectorSnapshot(SnapshotModel):
    """One sector's performance on a reporting date."""

    id: str = Field(..., min_length=1)
    name: str
    index: float = 0.0
    change: float = 0.0
    change_percent: float
    market_cap: NonNegativeFloat = 0.0
    volume: NonNegativeFloat = 0.0


class IndustrySectorSnapshot(SnapshotModel):
    """All sectors for one reporting date."""

    sectors: List[SectorSnapshot] = Field(default_factory=list)
    timestamp: EpochMillis = 0

    def by_id(self) -> Dict[str, SectorSnapshot]:
        return {s.id: s for s in self.sectors}


class HistoricalSectorChange(SnapshotModel):
    id: str
    change_percent: float
    volume: Optional[NonNegativeFloat] = None


class HistoricalSectorSnapshot(SnapshotModel):
    """Sector changes from an earlier reporting date."""

    sectors: List[HistoricalSectorChange] = Field(default_factory=list)
    timestamp: EpochMillis = 0

    def get(self, sector_id: str) -> Optional[HistoricalSectorChange]:
        for sector in self.sectors:
            if sector.id == sector_id:
                return sector
        return None

    def change_for(self, sector_id: str) -> Optional[float]:
        sector = self.get(sector_id)
        return sector.change_percent if sector else None


# =============================================================================
# Investor Flow Snapshots
# =============================================================================


class InvestorCategoryFlow(SnapshotModel):
    """Buy, sell and net value (millions) for one investor category."""

    buy: float = 0.0
    sell: float = 0.0
    net: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def derive_net(cls, data):
        if isinstance(data, dict) and "net" not in data and ("buy" in data or "sell" in data):
            data = dict(data)
            data["net"] = float(data.get("buy", 0.0)) - float(data.get("sell", 0.0))
        return data

    @classmethod
    def from_net(cls, net: float) -> "InvestorCategoryFlow":
        """Estimate gross flows when only the net value is known."""
        return cls(buy=max(0.0, net), sell=max(0.0, -net), net=net)


class InvestorTypeSnapshot(SnapshotModel):
    """Flows for the four investor categories on one date."""

    foreign: InvestorCategoryFlow = Field(default_factory=InvestorCategoryFlow)
    institution: InvestorCategoryFlow = Field(default_factory=InvestorCategoryFlow)
    retail: InvestorCategoryFlow = Field(default_factory=InvestorCategoryFlow)
    prop: InvestorCategoryFlow = Field(default_factory=InvestorCategoryFlow)
    timestamp: EpochMillis = 0


class NetFlow(SnapshotModel):
    net: float = 0.0


class HistoricalInvestorEntry(SnapshotModel):
    """Net-only flows from an earlier date."""

    foreign: NetFlow = Field(default_factory=NetFlow)
    institution: NetFlow = Field(default_factory=NetFlow)
    retail: NetFlow = Field(default_factory=NetFlow)
    prop: NetFlow = Field(default_factory=NetFlow)
    timestamp: EpochMillis = 0

    def to_snapshot(self) -> InvestorTypeSnapshot:
        return InvestorTypeSnapshot(
            foreign=InvestorCategoryFlow.from_net(self.foreign.net),
            institution=InvestorCategoryFlow.from_net(self.institution.net),
            retail=InvestorCategoryFlow.from_net(self.retail.net),
            prop=InvestorCategoryFlow.from_net(self.prop.net),
            timestamp=self.timestamp,
        )


# =============================================================================
# Market Overview and Rankings
# =============================================================================


class MarketOverview(SnapshotModel):
    """Index level and totals for the whole market."""

    set_index: float = Field(..., alias="setIndex")
    set_change: float = Field(default=0.0, alias="setChange")
    set_change_percent: float = Field(..., alias="setChangePercent")
    total_value: NonNegativeFloat = 0.0
    total_volume: NonNegativeFloat = 0.0
    timestamp: EpochMillis = 0


class RankedStock(SnapshotModel):
    """A stock as it appears in one of the ranked lists."""

    symbol: str = Field(..., min_length=1)
    name: Optional[str] = None
    value: Optional[float] = None
    volume: Optional[float] = None
    change_pct: Optional[float] = None
    sector_code: Optional[str] = None
    market_cap_group: Optional[Literal["L", "M", "S"]] = None


class TopRankings(SnapshotModel):
    """The four ranked lists; list position is rank - 1."""

    top_gainers: List[RankedStock] = Field(default_factory=list)
    top_losers: List[RankedStock] = Field(default_factory=list)
    top_volume: List[RankedStock] = Field(default_factory=list)
    top_value: List[RankedStock] = Field(default_factory=list)
    timestamp: EpochMillis = 0

    def categories(self) -> Dict[str, List[RankedStock]]:
        """Lists keyed by category name, in processing order."""
        return {
            "value": self.top_value,
            "volume": self.top_volume,
            "gainer": self.top_gainers,
            "loser": self.top_losers,
        }

    def contains(self, symbol: str) -> bool:
        symbol = symbol.upper()
        return any(
            stock.symbol.upper() == symbol
            for stocks in self.categories().values()
            for stock in stocks
        )


# =============================================================================
# Engine Input
# =============================================================================


class HistoricalData(SnapshotModel):
    """Earlier snapshots, most recent first."""

    investor_types: List[HistoricalInvestorEntry] = Field(default_factory=list)
    sectors: List[HistoricalSectorSnapshot] = Field(default_factory=list)


class MarketIntelligenceInput(SnapshotModel):
    """Everything the aggregator may receive; every source is optional."""

    market_overview: Optional[MarketOverview] = None
    investor_type: Optional[InvestorTypeSnapshot] = None
    industry_sector: Optional[IndustrySectorSnapshot] = None
    rankings: Optional[TopRankings] = None
    historical: Optional[HistoricalData] = None
