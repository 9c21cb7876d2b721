"""
GridScout: Generation Mix Summarizer
Aggregates EIA electric-power-operational-data rows into a per-fuel mix.

Method
------
1. Keep only the latest reporting period (the maximum ``period``; input
   order does not matter).
2. Convert each row's generation to GWh from its ``generation-units``:

       thousand megawatthours  →  as-is      (1 thousand MWh == 1 GWh)
       megawatthours           →  ÷ 1000
       gigawatthours / gwh     →  as-is
       anything else           →  ÷ 1000     (assume MWh)

3. Rows that convert to 0 GWh are treated as non-reporting and skipped.
   Zero and negative readings both convert to 0.
4. Sum GWh and count reporting rows per fuel code; round to 3 decimals.

Shares are ``fuel GWh / total GWh × 100`` rounded to 1 decimal.  The dominant
fuel is the highest share; ties go to the alphabetically first fuel code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
from loguru import logger

from eia.records import GenerationRecord, latest_period

MWH_PER_GWH = 1000.0


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FuelGeneration:
    net_generation_gwh: float
    reporting_units: int
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "net_generation_gwh": self.net_generation_gwh,
            "reporting_units":    self.reporting_units,
            "description":        self.description,
        }


@dataclass(frozen=True)
class FuelShare:
    net_generation_gwh: float
    share_pct: float
    reporting_units: int
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "net_generation_gwh": self.net_generation_gwh,
            "share_pct":          self.share_pct,
            "reporting_units":    self.reporting_units,
            "description":        self.description,
        }


@dataclass(frozen=True)
class GenerationMix:
    """Latest-period generation mix for one state."""

    region: str
    period: str                      # latest period, or "N/A"
    total_net_generation_gwh: float
    by_fuel: dict[str, FuelShare] = field(default_factory=dict)
    dominant_fuel: str = "N/A"
    dominant_share_pct: float = 0.0

    def to_dict(self) -> dict:
        return {
            "region":                   self.region,
            "period":                   self.period,
            "total_net_generation_gwh": self.total_net_generation_gwh,
            "by_fuel":                  {k: v.to_dict() for k, v in self.by_fuel.items()},
            "dominant_fuel": {
                "fuel_type": self.dominant_fuel,
                "share_pct": self.dominant_share_pct,
            },
        }


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------


def to_gwh(value: Optional[float], units: Optional[str]) -> float:
    """Convert a reported generation value to GWh (non-positive → 0)."""
    if value is None or value <= 0:
        return 0.0

    units = (units or "").lower()
    if "thousand megawatthours" in units:
        return value
    if "megawatthours" in units:
        return value / MWH_PER_GWH
    if "gigawatthours" in units or "gwh" in units:
        return value
    return value / MWH_PER_GWH


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def summarize_generation(records: list[GenerationRecord]) -> dict[str, FuelGeneration]:
    """
    Per-fuel GWh totals for the latest period.

    Returns an empty mapping for empty input.  Fuels appear in the order
    they are first seen in *records*.
    """
    period = latest_period(records)
    if period is None:
        return {}

    frame = pd.DataFrame(
        [
            {
                "fuel_code":   r.fuel_code,
                "gwh":         to_gwh(r.generation_value, r.generation_units),
                "description": r.description,
            }
            for r in records
            if r.period == period
        ]
    )
    frame = frame[frame["gwh"] != 0]
    if frame.empty:
        logger.debug("summarize_generation: no reporting rows for period {}", period)
        return {}

    grouped = frame.groupby("fuel_code", sort=False).agg(
        gwh=("gwh", "sum"),
        reporting_units=("gwh", "size"),
        description=("description", "first"),
    )

    summary: dict[str, FuelGeneration] = {}
    for fuel, row in grouped.iterrows():
        raw = float(row["gwh"])
        rounded = round(raw, 3)
        if rounded == 0 and raw == 0:
            continue
        description = row["description"]
        summary[str(fuel)] = FuelGeneration(
            # keep genuinely tiny contributions instead of rounding them away
            net_generation_gwh=rounded if rounded != 0 else raw,
            reporting_units=int(row["reporting_units"]),
            description=description if isinstance(description, str) else None,
        )
    return summary


def generation_mix(region: str, records: list[GenerationRecord]) -> GenerationMix:
    """Summarize the latest period and attach share-of-total percentages."""
    summary = summarize_generation(records)
    period = latest_period(records) or "N/A"
    total = sum(f.net_generation_gwh for f in summary.values())

    by_fuel = {
        fuel: FuelShare(
            net_generation_gwh=f.net_generation_gwh,
            share_pct=round(f.net_generation_gwh / total * 100, 1) if total > 0 else 0.0,
            reporting_units=f.reporting_units,
            description=f.description,
        )
        for fuel, f in summary.items()
    }

    if by_fuel:
        dominant, share = min(by_fuel.items(), key=lambda kv: (-kv[1].share_pct, kv[0]))
        dominant_share = share.share_pct
    else:
        dominant, dominant_share = "N/A", 0.0

    logger.info(
        "Generation mix | {} | period={} | {} fuels | {:.3f} GWh | dominant={}",
        region, period, len(by_fuel), total, dominant,
    )
    return GenerationMix(
        region=region,
        period=period,
        total_net_generation_gwh=round(total, 3),
        by_fuel=by_fuel,
        dominant_fuel=dominant,
        dominant_share_pct=dominant_share,
    )
