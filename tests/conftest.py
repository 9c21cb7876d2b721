"""
Shared pytest fixtures for GridScout.

No test touches the network: the EIA layer is replaced either by
``FakeRepository`` (analysis, ranking, API tests) or by a ``MagicMock``
requests session (client tests).
"""
from __future__ import annotations

from typing import Optional

import pytest

from eia.records import CapacityRecord, GenerationRecord, HourlySeriesRecord, RetailPriceRecord

# ---------------------------------------------------------------------------
# Autouse fixture: a dummy EIA key for every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def eia_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set a dummy EIA key so clients can be constructed without a .env file."""
    monkeypatch.setenv("EIA_API_KEY", "test-eia-key")


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------

class FakeRepository:
    """Quacks like ``ElectricityRepository``; regions in ``failing`` raise."""

    def __init__(
        self,
        capacity: Optional[dict[str, list[CapacityRecord]]] = None,
        generation: Optional[dict[str, list[GenerationRecord]]] = None,
        prices: Optional[dict[str, list[RetailPriceRecord]]] = None,
        hourly: Optional[dict[str, list[HourlySeriesRecord]]] = None,
        failing: tuple[str, ...] = (),
    ) -> None:
        self.capacity = capacity or {}
        self.generation = generation or {}
        self.prices = prices or {}
        self.hourly = hourly or {}
        self.failing = failing
        self.calls: list[tuple[str, str]] = []

    def _lookup(self, name: str, table: dict, region: str) -> list:
        self.calls.append((name, region))
        if region in self.failing:
            raise RuntimeError(f"EIA request for {region} failed")
        return table.get(region, [])

    def get_capacity_by_fuel_type(self, region: str) -> list[CapacityRecord]:
        return self._lookup("capacity", self.capacity, region)

    def get_operating_capacity(self, region: str) -> list[CapacityRecord]:
        return self._lookup("operating_capacity", self.capacity, region)

    def get_generation_by_fuel_type(self, region: str) -> list[GenerationRecord]:
        return self._lookup("generation", self.generation, region)

    def get_retail_prices(self, region: str) -> list[RetailPriceRecord]:
        return self._lookup("prices", self.prices, region)

    def get_rto_demand(self, region: str, respondent=None, series_type: str = "D") -> list[HourlySeriesRecord]:
        return self._lookup("hourly", self.hourly, region)


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

def make_capacity(region: str, mw_by_fuel: dict[str, float], period: str = "2024") -> list[CapacityRecord]:
    return [
        CapacityRecord(period=period, region_code=region, fuel_code=fuel, summer_capacity_mw=mw)
        for fuel, mw in mw_by_fuel.items()
    ]


def make_prices(region: str, prices: list[Optional[float]]) -> list[RetailPriceRecord]:
    """Monthly prices, newest first, periods 2024-12, 2024-11, ..."""
    return [
        RetailPriceRecord(
            period=f"2024-{12 - i:02d}", region_code=region, sector_code="ALL", price_cents_per_kwh=p,
        )
        for i, p in enumerate(prices)
    ]


def make_hourly(values: list[Optional[float]], respondent: str = "ERCO") -> list[HourlySeriesRecord]:
    """Hourly series, oldest first, periods 2024-06-01T00 onward."""
    return [
        HourlySeriesRecord(
            period=f"2024-06-{1 + i // 24:02d}T{i % 24:02d}",
            respondent_code=respondent,
            series_type="D",
            value=v,
        )
        for i, v in enumerate(values)
    ]


@pytest.fixture()
def sample_repo() -> FakeRepository:
    """AA has full data, BB always fails, CC has no capacity rows."""
    return FakeRepository(
        capacity={
            "AA": make_capacity("AA", {"SUN": 8000, "NG": 12000}),
            "DD": make_capacity("DD", {"WND": 3000, "COL": 9000}),
        },
        generation={
            "AA": [
                GenerationRecord(period="2024-06", fuel_code="SUN", generation_value=1500,
                                 generation_units="thousand megawatthours"),
                GenerationRecord(period="2024-06", fuel_code="NG", generation_value=4500,
                                 generation_units="thousand megawatthours"),
            ],
        },
        prices={
            "AA": make_prices("AA", [14.0, 12.0, 13.0]),
            "DD": make_prices("DD", [9.0, 9.0]),
        },
        failing=("BB",),
    )
