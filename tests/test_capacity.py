"""Unit tests for eia.capacity: regional totals, fuel grouping and utilization."""
from __future__ import annotations

import pytest

from eia.capacity import (
    RegionalCapacityMetrics,
    capacity_by_fuel_type,
    estimate_utilization,
    regional_capacity_metrics,
)
from eia.records import CapacityRecord, GenerationRecord

HOURS_PER_MONTH = 30.4375 * 24


def plant(period: str, fuel: str, summer, winter=None, region: str = "TX") -> CapacityRecord:
    return CapacityRecord(
        period=period, region_code=region, fuel_code=fuel,
        summer_capacity_mw=summer, winter_capacity_mw=winter,
    )


class TestRegionalCapacityMetrics:

    def test_sums_latest_period_only(self):
        records = [
            plant("2024-05", "NG", 999.0, 999.0),
            plant("2024-06", "NG", 100.0, 110.0),
            plant("2024-06", "SUN", 50.0, None),
        ]
        metrics = regional_capacity_metrics("TX", records)
        assert metrics.latest_period == "2024-06"
        assert metrics.total_summer_capacity_mw == 150.0
        assert metrics.total_winter_capacity_mw == 110.0

    def test_empty(self):
        metrics = regional_capacity_metrics("TX", [])
        assert metrics.latest_period == "N/A"
        assert metrics.total_summer_capacity_mw == 0.0
        assert metrics.total_winter_capacity_mw == 0.0


class TestCapacityByFuelType:

    def test_groups_all_periods_by_fuel(self):
        records = [
            plant("2024-06", "NG", 100.0, 110.0),
            plant("2024-06", "SUN", 50.0),
            plant("2023-12", "NG", 20.0, 25.0),
        ]
        grouped = capacity_by_fuel_type(records)
        assert [r.fuel_code for r in grouped] == ["NG", "SUN"]
        ng = grouped[0]
        assert ng.period == "2024"
        assert ng.region_code == "TX"
        assert ng.summer_capacity_mw == 120.0
        assert ng.winter_capacity_mw == 135.0

    def test_skips_empty_fuel_code(self):
        grouped = capacity_by_fuel_type([plant("2024-06", "", 10.0), plant("2024-06", "WND", 5.0)])
        assert [r.fuel_code for r in grouped] == ["WND"]

    def test_empty(self):
        assert capacity_by_fuel_type([]) == []


class TestEstimateUtilization:

    def test_zero_capacity_gives_no_ratio(self):
        capacity = RegionalCapacityMetrics("TX", "2024-06", 0.0, 0.0)
        generation = [GenerationRecord(period="2024-06", fuel_code="NG", generation_value=1000.0)]
        result = estimate_utilization(capacity, generation)
        assert result.ratio is None
        assert result.total_generation_gwh == 0.0
        assert result.total_consumption_gwh == 0.0

    def test_no_generation_gives_no_ratio(self):
        capacity = RegionalCapacityMetrics("TX", "2024-06", 100.0, 100.0)
        assert estimate_utilization(capacity, []).ratio is None

    def test_ratio_uses_latest_period(self):
        capacity = RegionalCapacityMetrics("TX", "2024-06", 1000.0, 1000.0)
        generation = [
            GenerationRecord(period="2024-05", fuel_code="NG", generation_value=9_999_999.0),
            GenerationRecord(period="2024-06", fuel_code="NG", generation_value=300_000.0,
                             total_consumption=50_000.0),
            GenerationRecord(period="2024-06", fuel_code="SUN", generation_value=65_250.0),
        ]
        result = estimate_utilization(capacity, generation)
        assert result.ratio == round(365_250.0 / (1000.0 * HOURS_PER_MONTH), 4)
        assert result.ratio == 0.5
        assert result.total_generation_gwh == 365.25
        assert result.total_consumption_gwh == 50.0

    def test_zero_generation_keeps_zero_ratio(self):
        capacity = RegionalCapacityMetrics("TX", "2024-06", 1000.0, 1000.0)
        generation = [GenerationRecord(period="2024-06", fuel_code="NG", generation_value=None)]
        assert estimate_utilization(capacity, generation).ratio == 0.0

    def test_hours_per_month_constant(self):
        assert HOURS_PER_MONTH == pytest.approx(730.5)
