"""
GridScout: Capacity Aggregator & Utilization Estimator
Sums EIA operating-generator-capacity rows and compares them with generation.

Two aggregation modes over the same plant-level stream
------------------------------------------------------
regional_capacity_metrics
    Latest period only; total summer and winter MW across every plant.

capacity_by_fuel_type
    *All* fetched periods grouped by energy source code.  Each bucket's
    period is the year of the plant row that opened it, an approximation
    that is fine for its only consumer (renewable penetration), which needs
    relative totals rather than an as-of date.

Utilization
-----------
    potential_mwh = summer_capacity_mw × 30.4375 d × 24 h      (average month)
    ratio         = latest-period generation_mwh / potential_mwh

Summer capacity is used year-round: this understates utilization in regions
whose binding constraint is winter capacity and overstates it the other way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd
from loguru import logger

from eia.assumptions import DEFAULT_ASSUMPTIONS, ScoringAssumptions
from eia.records import CapacityRecord, GenerationRecord, latest_period
from eia.stats import coerce_or_default

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegionalCapacityMetrics:
    region: str
    latest_period: str
    total_summer_capacity_mw: float
    total_winter_capacity_mw: float

    def to_dict(self) -> dict:
        return {
            "region":                   self.region,
            "latest_period":            self.latest_period,
            "total_summer_capacity_mw": self.total_summer_capacity_mw,
            "total_winter_capacity_mw": self.total_winter_capacity_mw,
        }


@dataclass(frozen=True)
class CapacityUtilization:
    ratio: Optional[float]           # None when it cannot be estimated
    total_generation_gwh: float
    total_consumption_gwh: float

    def to_dict(self) -> dict:
        return {
            "ratio":                 self.ratio,
            "total_generation_gwh":  self.total_generation_gwh,
            "total_consumption_gwh": self.total_consumption_gwh,
        }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _capacity_frame(records: list[CapacityRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "period":      r.period,
                "region_code": r.region_code,
                "fuel_code":   r.fuel_code,
                "summer_mw":   coerce_or_default(r.summer_capacity_mw),
                "winter_mw":   coerce_or_default(r.winter_capacity_mw),
            }
            for r in records
        ],
        columns=["period", "region_code", "fuel_code", "summer_mw", "winter_mw"],
    )


def regional_capacity_metrics(region: str, records: list[CapacityRecord]) -> RegionalCapacityMetrics:
    """Total summer/winter MW for the latest period ("N/A" and zeros if empty)."""
    period = latest_period(records)
    if period is None:
        return RegionalCapacityMetrics(
            region=region, latest_period="N/A",
            total_summer_capacity_mw=0.0, total_winter_capacity_mw=0.0,
        )

    frame = _capacity_frame(records)
    latest = frame[frame["period"] == period]
    metrics = RegionalCapacityMetrics(
        region=region,
        latest_period=period,
        total_summer_capacity_mw=float(latest["summer_mw"].sum()),
        total_winter_capacity_mw=float(latest["winter_mw"].sum()),
    )
    logger.debug(
        "Capacity | {} | period={} | {} plants | summer={:.1f} MW winter={:.1f} MW",
        region, period, len(latest),
        metrics.total_summer_capacity_mw, metrics.total_winter_capacity_mw,
    )
    return metrics


def capacity_by_fuel_type(records: list[CapacityRecord]) -> list[CapacityRecord]:
    """
    Collapse plant rows into one CapacityRecord per fuel code.

    Rows without a fuel code are skipped.  Output order follows the first
    appearance of each fuel code.
    """
    frame = _capacity_frame(records)
    frame = frame[frame["fuel_code"] != ""]
    if frame.empty:
        return []

    grouped = frame.groupby("fuel_code", sort=False).agg(
        period=("period", "first"),
        region_code=("region_code", "first"),
        summer_mw=("summer_mw", "sum"),
        winter_mw=("winter_mw", "sum"),
    )
    return [
        CapacityRecord(
            period=str(row["period"])[:4],
            region_code=row["region_code"],
            fuel_code=str(fuel),
            summer_capacity_mw=float(row["summer_mw"]),
            winter_capacity_mw=float(row["winter_mw"]),
        )
        for fuel, row in grouped.iterrows()
    ]


# ---------------------------------------------------------------------------
# Utilization
# ---------------------------------------------------------------------------


def estimate_utilization(
    capacity: RegionalCapacityMetrics,
    generation: list[GenerationRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> CapacityUtilization:
    """Latest-period generation against a month of full summer-capacity output."""
    if not generation or capacity.total_summer_capacity_mw <= 0:
        return CapacityUtilization(ratio=None, total_generation_gwh=0.0, total_consumption_gwh=0.0)

    period = latest_period(generation)
    latest = [r for r in generation if r.period == period]
    generation_mwh = sum(coerce_or_default(r.generation_value) for r in latest)
    consumption_mwh = sum(coerce_or_default(r.total_consumption) for r in latest)

    potential_mwh = capacity.total_summer_capacity_mw * assumptions.capacity.hours_per_month
    ratio = round(generation_mwh / potential_mwh, 4) if potential_mwh > 0 else None

    return CapacityUtilization(
        ratio=ratio,
        total_generation_gwh=round(generation_mwh / 1000, 3),
        total_consumption_gwh=round(consumption_mwh / 1000, 3),
    )
