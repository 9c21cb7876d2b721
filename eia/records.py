"""
GridScout: EIA record models
Typed, immutable views of the rows returned by the EIA v2 electricity routes.

EIA returns most numeric columns as strings ("1234.5") and uses hyphenated
column names ("net-summer-capacity-mw").  Each model accepts the raw EIA
field names as aliases *and* the Python field names, so analyzers and tests
can build records directly:

    CapacityRecord(period="2024-06", region_code="TX", fuel_code="SUN",
                   summer_capacity_mw=8000)

Records are frozen after validation; the analysis layer never mutates them.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, model_validator

# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _lenient_float(value: Any) -> Optional[float]:
    """EIA numeric column → float; null or empty string → None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return float(value)


def _finite_or_none(value: Any) -> Optional[float]:
    """Hourly values: anything unparseable or non-finite becomes None."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


LenientFloat = Annotated[Optional[float], BeforeValidator(_lenient_float)]
FiniteOrNone = Annotated[Optional[float], BeforeValidator(_finite_or_none)]


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# operating-generator-capacity
# ---------------------------------------------------------------------------


class CapacityRecord(_Record):
    """One generator (plant/unit) row, or one per-fuel aggregate row."""
    period:             str
    region_code:        str = Field(alias="stateid")
    fuel_code:          str = Field(alias="energy_source_code")
    summer_capacity_mw: LenientFloat = Field(default=None, alias="net-summer-capacity-mw")
    winter_capacity_mw: LenientFloat = Field(default=None, alias="net-winter-capacity-mw")
    plant_id:           Optional[int] = Field(default=None, alias="plantid")
    plant_name:         Optional[str] = Field(default=None, alias="plantName")
    sector_name:        Optional[str] = Field(default=None, alias="sectorName")


# ---------------------------------------------------------------------------
# electric-power-operational-data
# ---------------------------------------------------------------------------

# Preferred first: fueltypeid is the canonical key for this dataset
_FUEL_KEYS = ("fueltypeid", "fuel-type", "fueltype")


class GenerationRecord(_Record):
    period:            str
    fuel_code:         str = "UNKNOWN"
    description:       Optional[str] = Field(default=None, alias="fuelTypeDescription")
    generation_value:  LenientFloat = Field(default=None, alias="generation")
    generation_units:  Optional[str] = Field(default=None, alias="generation-units")
    total_consumption: LenientFloat = Field(default=None, alias="total-consumption")
    region_code:       Optional[str] = Field(
        default=None, validation_alias=AliasChoices("region_code", "location", "stateid"),
    )

    @model_validator(mode="before")
    @classmethod
    def _resolve_fuel_code(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("fuel_code") is None:
            fuel = next((data[k] for k in _FUEL_KEYS if data.get(k) is not None), None)
            data = {**data, "fuel_code": fuel if fuel is not None else "UNKNOWN"}
        return data


# ---------------------------------------------------------------------------
# retail-sales
# ---------------------------------------------------------------------------


class RetailPriceRecord(_Record):
    period:              str
    region_code:         str = Field(alias="stateid")
    sector_code:         str = Field(alias="sectorid")
    price_cents_per_kwh: LenientFloat = Field(default=None, alias="price")
    sales_mwh:           LenientFloat = Field(default=None, alias="sales")
    sector_name:         Optional[str] = Field(default=None, alias="sectorName")
    revenue:             LenientFloat = None   # million dollars


# ---------------------------------------------------------------------------
# rto/region-data  (hourly)
# ---------------------------------------------------------------------------


class HourlySeriesRecord(_Record):
    period:          str          # e.g. "2024-06-01T17"
    respondent_code: str = Field(alias="respondent")
    series_type:     str = Field(alias="type")   # D | NG | DF
    value:           FiniteOrNone = None
    value_units:     Optional[str] = Field(default=None, alias="value-units")


# ---------------------------------------------------------------------------
# state-electricity-profiles/summary  (annual)
# ---------------------------------------------------------------------------


class StateProfileRecord(_Record):
    period:               str
    region_code:          Optional[str] = Field(
        default=None, validation_alias=AliasChoices("region_code", "stateID", "stateid"),
    )
    net_generation:       LenientFloat = Field(default=None, alias="net-generation")
    total_retail_sales:   LenientFloat = Field(default=None, alias="total-retail-sales")
    average_retail_price: LenientFloat = Field(default=None, alias="average-retail-price")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_R = TypeVar("_R", bound=_Record)


def parse_records(model: type[_R], rows: Any) -> list[_R]:
    """
    Validate a raw ``response.data`` list against *model*.

    Raises ``pydantic.ValidationError`` when a row does not match the shape.
    """
    return TypeAdapter(list[model]).validate_python(rows)


def latest_period(records: list) -> Optional[str]:
    """
    Most recent period among *records* (``None`` when empty).

    EIA periods (``YYYY``, ``YYYY-MM``, ``YYYY-MM-DDTHH``) sort
    lexicographically, so the maximum string is the latest period regardless
    of the order the rows arrived in.
    """
    return max((r.period for r in records), default=None)
