"""
Shared test fixtures for the market intelligence test suite.
"""

from datetime import datetime

import pytest

from marketintel.models.snapshots import (
    HistoricalInvestorEntry,
    HistoricalSectorSnapshot,
    IndustrySectorSnapshot,
    InvestorTypeSnapshot,
    MarketIntelligenceInput,
    MarketOverview,
    TopRankings,
)
from marketintel.reference.reference_data import ReferenceData, load_reference_data


@pytest.fixture
def now_millis():
    return int(datetime.now().timestamp() * 1000)


@pytest.fixture
def reference():
    """Packaged sector taxonomy and symbol mapping."""
    return load_reference_data()


@pytest.fixture
def small_reference():
    """Minimal taxonomy with one sector per group."""
    return ReferenceData.from_dict(
        {
            "sectors": {
                "FIN": {"name": "Financial", "group": "Cyclical"},
                "TECH": {"name": "Technology", "group": "Growth"},
                "FOOD": {"name": "Food", "group": "Defensive"},
                "ENERGY": {"name": "Energy", "group": "Resource"},
            },
            "symbols": {
                "FIN": ["KBANK", "SCB"],
                "TECH": ["DELTA", "KCE"],
                "FOOD": ["CBG"],
                "ENERGY": ["PTT"],
            },
            "defensive_keywords": ["food", "health"],
        }
    )


@pytest.fixture
def sector_data(now_millis):
    """Seven sectors whose changes average to zero."""
    return {
        "sectors": [
            {"id": "TECH", "name": "Technology", "changePercent": 2.0, "volume": 9000.0},
            {"id": "FIN", "name": "Financial", "changePercent": 1.8, "volume": 12000.0},
            {"id": "ENERGY", "name": "Energy", "changePercent": 0.4, "volume": 8000.0},
            {"id": "AGRI", "name": "Agribusiness", "changePercent": -0.2, "volume": 2000.0},
            {"id": "FOOD", "name": "Food", "changePercent": -0.6, "volume": 3000.0},
            {"id": "HEALTH", "name": "Healthcare", "changePercent": -1.0, "volume": 2500.0},
            {"id": "PROP", "name": "Property", "changePercent": -2.4, "volume": 4000.0},
        ],
        "timestamp": now_millis,
    }


@pytest.fixture
def sector_snapshot(sector_data):
    return IndustrySectorSnapshot.model_validate(sector_data)


@pytest.fixture
def investor_data(now_millis):
    """Foreign and institutions buying, retail selling."""
    return {
        "foreign": {"buy": 2400.0, "sell": 1800.0},
        "institution": {"buy": 900.0, "sell": 750.0},
        "retail": {"buy": 3000.0, "sell": 3650.0},
        "prop": {"buy": 400.0, "sell": 500.0},
        "timestamp": now_millis,
    }


@pytest.fixture
def investor_snapshot(investor_data):
    return InvestorTypeSnapshot.model_validate(investor_data)


@pytest.fixture
def market_data(now_millis):
    return {
        "setIndex": 1420.5,
        "setChange": 11.2,
        "setChangePercent": 0.8,
        "totalValue": 52000.0,
        "totalVolume": 18000.0,
        "timestamp": now_millis,
    }


@pytest.fixture
def market_overview(market_data):
    return MarketOverview.model_validate(market_data)


@pytest.fixture
def rankings_data(now_millis):
    return {
        "topGainers": [
            {"symbol": "DELTA", "name": "Delta Electronics", "value": 4200.0, "changePct": 6.2},
            {"symbol": "KCE", "name": "KCE Electronics", "value": 900.0, "changePct": 5.1},
            {"symbol": "KBANK", "name": "Kasikornbank", "value": 3100.0, "changePct": 3.0},
        ],
        "topLosers": [
            {"symbol": "AP", "name": "AP Thailand", "value": 300.0, "changePct": -4.5},
            {"symbol": "LH", "name": "Land and Houses", "value": 450.0, "changePct": -3.9},
            {"symbol": "BDMS", "name": "Bangkok Dusit", "value": 1200.0, "changePct": -2.2},
        ],
        "topVolume": [
            {"symbol": "PTT", "name": "PTT", "volume": 95000.0, "changePct": 0.5},
            {"symbol": "KBANK", "name": "Kasikornbank", "volume": 42000.0, "changePct": 3.0},
            {"symbol": "DELTA", "name": "Delta Electronics", "volume": 30000.0, "changePct": 6.2},
        ],
        "topValue": [
            {"symbol": "DELTA", "name": "Delta Electronics", "value": 4200.0, "changePct": 6.2},
            {"symbol": "KBANK", "name": "Kasikornbank", "value": 3100.0, "changePct": 3.0},
            {"symbol": "PTT", "name": "PTT", "value": 2500.0, "changePct": 0.5},
            {"symbol": "AOT", "name": "Airports of Thailand", "value": 1800.0, "changePct": 0.1},
        ],
        "timestamp": now_millis,
    }


@pytest.fixture
def rankings(rankings_data):
    return TopRankings.model_validate(rankings_data)


@pytest.fixture
def historical_investor_data(now_millis):
    """Five earlier days, most recent first."""
    day = 24 * 60 * 60 * 1000
    nets = [(300, 80), (250, 60), (-100, 40), (150, -20), (200, 10)]
    return [
        {
            "foreign": {"net": foreign},
            "institution": {"net": institution},
            "retail": {"net": -(foreign + institution)},
            "prop": {"net": 0.0},
            "timestamp": now_millis - (i + 1) * day,
        }
        for i, (foreign, institution) in enumerate(nets)
    ]


@pytest.fixture
def historical_investors(historical_investor_data):
    return [HistoricalInvestorEntry.model_validate(h) for h in historical_investor_data]


@pytest.fixture
def historical_sector_data(now_millis):
    return [
        {
            "sectors": [
                {"id": "TECH", "changePercent": 0.5, "volume": 6000.0},
                {"id": "FIN", "changePercent": 1.6, "volume": 12000.0},
                {"id": "ENERGY", "changePercent": 0.2},
                {"id": "AGRI", "changePercent": 0.0},
                {"id": "FOOD", "changePercent": -0.5},
                {"id": "HEALTH", "changePercent": -0.1},
                {"id": "PROP", "changePercent": -0.6},
            ],
            "timestamp": now_millis - 24 * 60 * 60 * 1000,
        }
    ]


@pytest.fixture
def historical_sectors(historical_sector_data):
    return [HistoricalSectorSnapshot.model_validate(h) for h in historical_sector_data]


@pytest.fixture
def raw_input(
    market_data,
    investor_data,
    sector_data,
    rankings_data,
    historical_investor_data,
    historical_sector_data,
):
    """Complete aggregator input as the data collaborator sends it."""
    return {
        "marketOverview": market_data,
        "investorType": investor_data,
        "industrySector": sector_data,
        "rankings": rankings_data,
        "historical": {
            "investorTypes": historical_investor_data,
            "sectors": historical_sector_data,
        },
    }


@pytest.fixture
def intelligence_input(raw_input):
    return MarketIntelligenceInput.model_validate(raw_input)
