"""
GridScout: state profile and RTO demand summaries.

summarize_state_profile
    Five-year EIA state electricity profile → latest value, year-over-year
    delta and up/down/flat trend for net generation, retail sales and
    average retail price.

demand_snapshot
    Window statistics over the most recent N days of hourly RTO demand:
    average, peak, minimum, load factor, max hourly ramp and significant
    ramps per day (same ramp rules as the grid-stability estimator).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from eia.assumptions import DEFAULT_ASSUMPTIONS, ScoringAssumptions
from eia.records import HourlySeriesRecord, StateProfileRecord
from eia.stats import Trend, basic_stats, classify_trend, coerce_or_default, round_metric
from eia.storage import hourly_ramps, numeric_series

PROFILE_METRICS = ("net_generation", "total_retail_sales", "average_retail_price")


@dataclass(frozen=True)
class MetricTrend:
    latest: Optional[float]
    yoy_delta: float
    trend: Trend

    def to_dict(self) -> dict:
        return {"latest": self.latest, "yoy_delta": self.yoy_delta, "trend": self.trend}


@dataclass(frozen=True)
class StateProfileSummary:
    region: str
    years: list[str]
    metrics: dict[str, MetricTrend] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "region":  self.region,
            "years":   self.years,
            "metrics": {k: v.to_dict() for k, v in self.metrics.items()},
        }


def summarize_state_profile(
    region: str,
    records: list[StateProfileRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> StateProfileSummary:
    """Latest vs previous year for each profile metric (missing years count as 0)."""
    ordered = sorted(records, key=lambda r: r.period, reverse=True)
    latest = ordered[0] if ordered else None
    previous = ordered[1] if len(ordered) > 1 else None

    metrics: dict[str, MetricTrend] = {}
    for name in PROFILE_METRICS:
        latest_value = getattr(latest, name) if latest else None
        previous_value = getattr(previous, name) if previous else None
        metrics[name] = MetricTrend(
            latest=latest_value,
            yoy_delta=coerce_or_default(latest_value) - coerce_or_default(previous_value),
            trend=classify_trend(latest_value, previous_value, assumptions.trend),
        )

    return StateProfileSummary(
        region=region,
        years=[r.period for r in ordered],
        metrics=metrics,
    )


# ---------------------------------------------------------------------------
# RTO demand snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DemandWindowMetrics:
    avg_demand_mw: int
    peak_demand_mw: int
    min_demand_mw: int
    load_factor: float
    max_hourly_ramp_mw: int
    ramping_frequency_per_day: float

    def to_dict(self) -> dict:
        return {
            "avg_demand_mw":             self.avg_demand_mw,
            "peak_demand_mw":            self.peak_demand_mw,
            "min_demand_mw":             self.min_demand_mw,
            "load_factor":               self.load_factor,
            "max_hourly_ramp_mw":        self.max_hourly_ramp_mw,
            "ramping_frequency_per_day": self.ramping_frequency_per_day,
        }


@dataclass(frozen=True)
class DemandSnapshot:
    region: str
    respondent: Optional[str]
    window_days: int
    metrics: Optional[DemandWindowMetrics] = None
    note: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "region":      self.region,
            "respondent":  self.respondent,
            "window_days": self.window_days,
            "metrics":     self.metrics.to_dict() if self.metrics else None,
            "note":        self.note,
        }


def demand_snapshot(
    region: str,
    series: list[HourlySeriesRecord],
    days: int = 7,
    respondent: Optional[str] = None,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> DemandSnapshot:
    """Statistics over the latest ``days × 24`` hourly observations."""
    if not series:
        return DemandSnapshot(
            region=region, respondent=respondent, window_days=days,
            note=(
                "No RTO mapping for this region or no demand data for this selection. "
                "List valid respondents via the rto/region-data route metadata."
            ),
        )

    ordered = sorted(series, key=lambda r: r.period, reverse=True)
    rto = ordered[0].respondent_code or respondent
    gs = assumptions.grid_stability
    window = ordered[: days * gs.samples_per_day]
    values = numeric_series(window)

    if len(values) < 2:
        logger.warning("Demand snapshot: {} numeric values for {} / {}", len(values), region, rto)
        return DemandSnapshot(
            region=region, respondent=rto, window_days=days,
            note=(
                "No numeric hourly demand values in the selected window. "
                "Try a different respondent or a larger window."
            ),
        )

    avg = basic_stats(values).avg
    peak = max(values)
    ramps = hourly_ramps(values)
    threshold = avg * gs.significant_ramp_fraction
    significant = sum(1 for r in ramps if r > threshold)

    return DemandSnapshot(
        region=region,
        respondent=rto,
        window_days=days,
        metrics=DemandWindowMetrics(
            avg_demand_mw=round_metric(avg),
            peak_demand_mw=round_metric(peak),
            min_demand_mw=round_metric(min(values)),
            load_factor=round_metric(avg / peak, 3) if peak > 0 else 0.0,
            max_hourly_ramp_mw=round_metric(max(ramps)),
            ramping_frequency_per_day=round_metric(significant / len(values) * gs.samples_per_day, 2),
        ),
    )
