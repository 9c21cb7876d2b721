"""Validation of raw EIA rows into record models."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from eia.records import (
    CapacityRecord,
    GenerationRecord,
    HourlySeriesRecord,
    RetailPriceRecord,
    StateProfileRecord,
    latest_period,
    parse_records,
)


class TestCapacityRecord:

    def test_parses_eia_field_names_and_string_numbers(self):
        row = {
            "period": "2024-06",
            "stateid": "TX",
            "energy_source_code": "SUN",
            "net-summer-capacity-mw": "125.5",
            "net-winter-capacity-mw": "",
            "plantid": 12345,
            "plantName": "Sunny Acres",
            "unexpected-column": "ignored",
        }
        rec = CapacityRecord.model_validate(row)
        assert rec.region_code == "TX"
        assert rec.fuel_code == "SUN"
        assert rec.summer_capacity_mw == 125.5
        assert rec.winter_capacity_mw is None
        assert rec.plant_name == "Sunny Acres"

    def test_missing_required_field_raises(self):
        with pytest.raises(ValidationError):
            CapacityRecord.model_validate({"period": "2024-06", "stateid": "TX"})

    def test_non_numeric_capacity_raises(self):
        with pytest.raises(ValidationError):
            CapacityRecord.model_validate(
                {"period": "2024", "stateid": "TX", "energy_source_code": "NG",
                 "net-summer-capacity-mw": "lots"}
            )

    def test_records_are_frozen(self):
        rec = CapacityRecord(period="2024", region_code="TX", fuel_code="NG", summer_capacity_mw=1.0)
        with pytest.raises(ValidationError):
            rec.summer_capacity_mw = 2.0


class TestGenerationRecord:

    def test_fuel_code_prefers_fueltypeid(self):
        rec = GenerationRecord.model_validate(
            {"period": "2024-06", "fueltypeid": "NG", "fuel-type": "X", "fueltype": "Y"}
        )
        assert rec.fuel_code == "NG"

    def test_fuel_code_falls_back_through_keys(self):
        assert GenerationRecord.model_validate({"period": "p", "fuel-type": "COL"}).fuel_code == "COL"
        assert GenerationRecord.model_validate({"period": "p", "fueltype": "WND"}).fuel_code == "WND"

    def test_unknown_fuel(self):
        assert GenerationRecord.model_validate({"period": "p"}).fuel_code == "UNKNOWN"

    def test_location_maps_to_region(self):
        rec = GenerationRecord.model_validate(
            {"period": "2024-06", "location": "CA", "generation": "12.5", "generation-units": "thousand megawatthours"}
        )
        assert rec.region_code == "CA"
        assert rec.generation_value == 12.5
        assert rec.generation_units == "thousand megawatthours"


class TestOtherRecords:

    def test_retail_price(self):
        rec = RetailPriceRecord.model_validate(
            {"period": "2024-05", "stateid": "NY", "sectorid": "ALL", "price": "21.4", "sales": None}
        )
        assert rec.price_cents_per_kwh == 21.4
        assert rec.sales_mwh is None

    def test_hourly_value_non_numeric_becomes_none(self):
        rec = HourlySeriesRecord.model_validate(
            {"period": "2024-06-01T05", "respondent": "ERCO", "type": "D", "value": "n/a"}
        )
        assert rec.value is None

    def test_hourly_value_infinite_becomes_none(self):
        rec = HourlySeriesRecord(period="t", respondent_code="ERCO", series_type="D", value=float("inf"))
        assert rec.value is None

    def test_state_profile_accepts_stateID(self):
        rec = StateProfileRecord.model_validate(
            {"period": "2023", "stateID": "TX", "net-generation": "500000", "average-retail-price": 9.1}
        )
        assert rec.region_code == "TX"
        assert rec.net_generation == 500000.0
        assert rec.total_retail_sales is None


class TestHelpers:

    def test_parse_records(self):
        rows = [
            {"period": "2024-06", "stateid": "TX", "energy_source_code": "NG", "net-summer-capacity-mw": 10},
            {"period": "2024-05", "stateid": "TX", "energy_source_code": "SUN", "net-summer-capacity-mw": 5},
        ]
        records = parse_records(CapacityRecord, rows)
        assert [r.fuel_code for r in records] == ["NG", "SUN"]

    def test_parse_records_rejects_bad_row(self):
        with pytest.raises(ValidationError):
            parse_records(CapacityRecord, [{"period": "2024-06"}])

    def test_latest_period_ignores_order(self):
        records = [
            RetailPriceRecord(period=p, region_code="TX", sector_code="ALL")
            for p in ("2024-03", "2024-11", "2023-12")
        ]
        assert latest_period(records) == "2024-11"

    def test_latest_period_empty(self):
        assert latest_period([]) is None
