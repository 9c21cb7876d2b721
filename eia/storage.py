"""
GridScout: Storage Opportunity Scorer
Combines capacity, demand, renewable, stability and price data into 0–100
energy-storage opportunity scores for one state.

Sub-estimators
--------------
grid_capacity_metrics
    Summer MW by fuel bucket.  Renewable = SUN WND HYD GEO BIO WAS,
    fossil = NG COL PET OTH.  Other codes (nuclear, storage, ...) count in
    the total only, so renewable % + fossil % can be < 100 %.

estimate_demand_supply
    avg / peak / min of the hourly demand series, load factor = avg / peak,
    variability = coefficient of variation.  Without hourly data the mean
    monthly generation stands in (peak ×1.2, min ×0.6, LF 0.7, CoV 0.15).

estimate_renewable_integration
    curtailment_mwh   = (solar + wind) MW × 8760 h × 0.35 CF × 3 %
    solar_share       = solar / (solar + wind + 1)
    duck_curve        = min(solar_share × 2, 1)

estimate_stability
    ramps             = |x[i] − x[i−1]| over the hourly series
    ramps_per_day     = (#ramps > 5 % of mean) / samples × 24
    regulation_need   = 1 % of mean demand
    spinning_reserve  = 50 % of the largest ramp
    The last two are proportional ancillary-service sizing heuristics, not a
    reliability study.  With < 2 numeric samples a fixed typical set is used.

estimate_economics
    spread            = avg price ¢/kWh × 0.5 × 10                 $/MWh
    arbitrage_revenue = spread × 4 h × 300 cycles × 0.85 η          $/yr
    The monthly retail series has no time-of-day granularity, so the spread
    is a scaled proxy, not a measured peak/off-peak difference.

Scores
------
    peak_shaving  = (1 − LF) × 50 + CoV × 200
    renewable     = penetration % × 0.5 + duck × 30 + min(curtail / 10 000, 1) × 20
    grid_services = min(ramp / 1000, 1) × 40 + min(freq / 10, 1) × 30
                    + min(regulation / 500, 1) × 30
    economic      = min(price / 20, 1) × 30 + volatility × 100
                    + min(revenue / 100 000, 1) × 40
    overall       = 0.25 peak + 0.35 renewable + 0.20 grid + 0.20 economic

Every score is clamped to [0, 100].  All coefficients live in
``eia.assumptions.ScoringAssumptions``.

The scorer does not check for empty capacity data; callers (the ranker)
reject such regions before scoring.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from eia.assumptions import DEFAULT_ASSUMPTIONS, ScoringAssumptions
from eia.records import CapacityRecord, GenerationRecord, HourlySeriesRecord, RetailPriceRecord
from eia.stats import basic_stats, coerce_or_default, magnitude_scale, round_metric

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GridCapacityMetrics:
    total_capacity_mw: int
    renewable_capacity_mw: int
    fossil_capacity_mw: int
    renewable_penetration_pct: int

    def to_dict(self) -> dict:
        return {
            "total_capacity_mw":         self.total_capacity_mw,
            "renewable_capacity_mw":     self.renewable_capacity_mw,
            "fossil_capacity_mw":        self.fossil_capacity_mw,
            "renewable_penetration_pct": self.renewable_penetration_pct,
        }


@dataclass(frozen=True)
class DemandSupplyMetrics:
    average_demand_mw: int
    peak_demand_mw: int
    minimum_demand_mw: int
    load_factor: float               # avg / peak
    demand_variability_index: float  # coefficient of variation
    is_estimated: bool = False       # True when derived from generation, not hourly demand

    def to_dict(self) -> dict:
        return {
            "average_demand_mw":        self.average_demand_mw,
            "peak_demand_mw":           self.peak_demand_mw,
            "minimum_demand_mw":        self.minimum_demand_mw,
            "load_factor":              self.load_factor,
            "demand_variability_index": self.demand_variability_index,
            "is_estimated":             self.is_estimated,
        }


@dataclass(frozen=True)
class RenewableIntegrationMetrics:
    solar_capacity_mw: int
    wind_capacity_mw: int
    estimated_curtailment_mwh: int
    renewable_variability_index: float
    duck_curve_severity: float       # 0–1

    def to_dict(self) -> dict:
        return {
            "solar_capacity_mw":           self.solar_capacity_mw,
            "wind_capacity_mw":            self.wind_capacity_mw,
            "estimated_curtailment_mwh":   self.estimated_curtailment_mwh,
            "renewable_variability_index": self.renewable_variability_index,
            "duck_curve_severity":         self.duck_curve_severity,
        }


@dataclass(frozen=True)
class GridStabilityMetrics:
    max_hourly_ramp_mw: int
    ramping_frequency_per_day: float
    frequency_regulation_need_mw: int
    spinning_reserve_requirement_mw: int
    is_fallback: bool = False        # True when typical values replaced missing data

    def to_dict(self) -> dict:
        return {
            "max_hourly_ramp_mw":              self.max_hourly_ramp_mw,
            "ramping_frequency_per_day":       self.ramping_frequency_per_day,
            "frequency_regulation_need_mw":    self.frequency_regulation_need_mw,
            "spinning_reserve_requirement_mw": self.spinning_reserve_requirement_mw,
            "is_fallback":                     self.is_fallback,
        }


@dataclass(frozen=True)
class EconomicMetrics:
    average_price_cents_per_kwh: float
    price_volatility_index: float
    peak_off_peak_spread_per_mwh: int
    estimated_arbitrage_revenue_per_year: int
    is_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "average_price_cents_per_kwh":          self.average_price_cents_per_kwh,
            "price_volatility_index":               self.price_volatility_index,
            "peak_off_peak_spread_per_mwh":         self.peak_off_peak_spread_per_mwh,
            "estimated_arbitrage_revenue_per_year": self.estimated_arbitrage_revenue_per_year,
            "is_fallback":                          self.is_fallback,
        }


@dataclass(frozen=True)
class StorageOpportunityScore:
    overall: int
    peak_shaving: int
    renewable_integration: int
    grid_services: int
    economic: int

    def to_dict(self) -> dict:
        return {
            "overall":               self.overall,
            "peak_shaving":          self.peak_shaving,
            "renewable_integration": self.renewable_integration,
            "grid_services":         self.grid_services,
            "economic":              self.economic,
        }


@dataclass(frozen=True)
class StorageOpportunityMetrics:
    """Full storage-opportunity analysis for one region."""

    region: str
    analysis_date: str
    grid_capacity: GridCapacityMetrics
    demand_supply: DemandSupplyMetrics
    renewable_integration: RenewableIntegrationMetrics
    grid_stability: GridStabilityMetrics
    economic_opportunity: EconomicMetrics
    storage_opportunity_score: StorageOpportunityScore

    def to_dict(self) -> dict:
        return {
            "region":                    self.region,
            "analysis_date":             self.analysis_date,
            "grid_capacity":             self.grid_capacity.to_dict(),
            "demand_supply":             self.demand_supply.to_dict(),
            "renewable_integration":     self.renewable_integration.to_dict(),
            "grid_stability":            self.grid_stability.to_dict(),
            "economic_opportunity":      self.economic_opportunity.to_dict(),
            "storage_opportunity_score": self.storage_opportunity_score.to_dict(),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def numeric_series(series: list[HourlySeriesRecord]) -> list[float]:
    """Hourly values, latest first, with null / non-finite entries dropped."""
    ordered = sorted(series, key=lambda r: r.period, reverse=True)
    return [r.value for r in ordered if r.value is not None and math.isfinite(r.value)]


def hourly_ramps(values: list[float]) -> list[float]:
    return [abs(values[i] - values[i - 1]) for i in range(1, len(values))]


def clamp_score(value: float) -> int:
    """Clamp to [0, 100] and round half up; NaN counts as 0."""
    if math.isnan(value):
        return 0
    return round_metric(max(0.0, min(100.0, value)))


def _summer_mw(records: list[CapacityRecord], fuels=None, scale: float = 1.0) -> float:
    """Summer MW over *fuels* (all fuels when None), divided by *scale*."""
    return sum(
        coerce_or_default(r.summer_capacity_mw) / scale
        for r in records
        if fuels is None or r.fuel_code in fuels
    )


def _capacity_scale(records: list[CapacityRecord]) -> float:
    return magnitude_scale(coerce_or_default(r.summer_capacity_mw) for r in records)


# ---------------------------------------------------------------------------
# Sub-estimators
# ---------------------------------------------------------------------------


def grid_capacity_metrics(
    capacity_by_fuel: list[CapacityRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> GridCapacityMetrics:
    renewable_fuels = assumptions.renewable.renewable_fuels
    fossil_fuels = assumptions.renewable.fossil_fuels

    # sums are kept in scaled units so the share survives very large inputs
    scale = _capacity_scale(capacity_by_fuel)
    total = _summer_mw(capacity_by_fuel, scale=scale)
    renewable = _summer_mw(capacity_by_fuel, renewable_fuels, scale)
    fossil = _summer_mw(capacity_by_fuel, fossil_fuels, scale)

    return GridCapacityMetrics(
        total_capacity_mw=round_metric(total * scale),
        renewable_capacity_mw=round_metric(renewable * scale),
        fossil_capacity_mw=round_metric(fossil * scale),
        renewable_penetration_pct=round_metric(renewable / total * 100) if total > 0 else 0,
    )


def estimate_demand_supply(
    series: list[HourlySeriesRecord],
    generation: list[GenerationRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> DemandSupplyMetrics:
    values = numeric_series(series)

    if not values:
        demand = assumptions.demand
        avg_generation = basic_stats(coerce_or_default(g.generation_value) for g in generation).avg
        logger.debug("Demand/supply: no hourly demand, estimating from {} generation rows", len(generation))
        return DemandSupplyMetrics(
            average_demand_mw=round_metric(avg_generation),
            peak_demand_mw=round_metric(avg_generation * demand.fallback_peak_multiplier),
            minimum_demand_mw=round_metric(avg_generation * demand.fallback_minimum_multiplier),
            load_factor=demand.fallback_load_factor,
            demand_variability_index=demand.fallback_variability_index,
            is_estimated=True,
        )

    stats = basic_stats(values)
    peak = max(values)
    return DemandSupplyMetrics(
        average_demand_mw=round_metric(stats.avg),
        peak_demand_mw=round_metric(peak),
        minimum_demand_mw=round_metric(min(values)),
        load_factor=round_metric(stats.avg / peak, 3) if peak != 0 else 0.0,
        demand_variability_index=round_metric(stats.coefficient_of_variation, 3),
    )


def estimate_renewable_integration(
    capacity_by_fuel: list[CapacityRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> RenewableIntegrationMetrics:
    ren = assumptions.renewable
    scale = _capacity_scale(capacity_by_fuel)
    solar = _summer_mw(capacity_by_fuel, (ren.solar_fuel,), scale)
    wind = _summer_mw(capacity_by_fuel, (ren.wind_fuel,), scale)

    curtailment = (solar + wind) * scale * ren.hours_per_year * ren.capacity_factor * ren.curtailment_rate
    # +1 MW keeps the ratio defined (and damped) when both are ~0
    solar_share = solar / (solar + wind + 1 / scale)
    duck_curve = min(solar_share * ren.duck_curve_scale, 1.0)

    return RenewableIntegrationMetrics(
        solar_capacity_mw=round_metric(solar * scale),
        wind_capacity_mw=round_metric(wind * scale),
        estimated_curtailment_mwh=round_metric(curtailment),
        renewable_variability_index=round_metric(
            ren.base_variability_index + solar_share * ren.solar_variability_scale, 3
        ),
        duck_curve_severity=round_metric(duck_curve, 3),
    )


def estimate_stability(
    series: list[HourlySeriesRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> GridStabilityMetrics:
    gs = assumptions.grid_stability
    values = numeric_series(series)

    if len(values) < 2:
        logger.debug("Grid stability: {} numeric samples, using typical values", len(values))
        return GridStabilityMetrics(
            max_hourly_ramp_mw=round_metric(gs.fallback_max_ramp_mw),
            ramping_frequency_per_day=gs.fallback_ramps_per_day,
            frequency_regulation_need_mw=round_metric(gs.fallback_regulation_need_mw),
            spinning_reserve_requirement_mw=round_metric(gs.fallback_spinning_reserve_mw),
            is_fallback=True,
        )

    ramps = hourly_ramps(values)
    max_ramp = max(ramps)
    avg = basic_stats(values).avg

    threshold = avg * gs.significant_ramp_fraction
    significant = sum(1 for r in ramps if r > threshold)
    ramps_per_day = significant / len(values) * gs.samples_per_day

    return GridStabilityMetrics(
        max_hourly_ramp_mw=round_metric(max_ramp),
        ramping_frequency_per_day=round_metric(ramps_per_day, 1),
        frequency_regulation_need_mw=round_metric(avg * gs.regulation_fraction),
        spinning_reserve_requirement_mw=round_metric(max_ramp * gs.spinning_reserve_fraction),
    )


def estimate_economics(
    prices: list[RetailPriceRecord],
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> EconomicMetrics:
    eco = assumptions.economic

    if not prices:
        return EconomicMetrics(
            average_price_cents_per_kwh=eco.fallback_price_cents_per_kwh,
            price_volatility_index=eco.fallback_volatility_index,
            peak_off_peak_spread_per_mwh=round_metric(eco.fallback_spread_per_mwh),
            estimated_arbitrage_revenue_per_year=round_metric(eco.fallback_arbitrage_revenue),
            is_fallback=True,
        )

    stats = basic_stats(coerce_or_default(p.price_cents_per_kwh) for p in prices)
    spread = stats.avg * eco.spread_fraction * eco.cents_kwh_to_usd_mwh
    revenue = spread * eco.storage_hours * eco.cycles_per_year * eco.round_trip_efficiency

    return EconomicMetrics(
        average_price_cents_per_kwh=round_metric(stats.avg, 2),
        price_volatility_index=round_metric(stats.coefficient_of_variation, 3),
        peak_off_peak_spread_per_mwh=round_metric(spread),
        estimated_arbitrage_revenue_per_year=round_metric(revenue),
    )


# ---------------------------------------------------------------------------
# Composite scoring
# ---------------------------------------------------------------------------


def opportunity_scores(
    grid: GridCapacityMetrics,
    demand: DemandSupplyMetrics,
    renewable: RenewableIntegrationMetrics,
    stability: GridStabilityMetrics,
    economic: EconomicMetrics,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> StorageOpportunityScore:
    w = assumptions.weights

    # lower load factor and higher variability → more peak to shave
    peak_shaving = (
        (1 - demand.load_factor) * w.load_factor_weight
        + demand.demand_variability_index * w.variability_weight
    )
    renewable_score = (
        grid.renewable_penetration_pct * w.penetration_weight
        + renewable.duck_curve_severity * w.duck_curve_weight
        + min(renewable.estimated_curtailment_mwh / w.curtailment_norm_mwh, 1) * w.curtailment_weight
    )
    grid_services = (
        min(stability.max_hourly_ramp_mw / w.ramp_norm_mw, 1) * w.ramp_weight
        + min(stability.ramping_frequency_per_day / w.ramp_frequency_norm, 1) * w.ramp_frequency_weight
        + min(stability.frequency_regulation_need_mw / w.regulation_norm_mw, 1) * w.regulation_weight
    )
    economic_score = (
        min(economic.average_price_cents_per_kwh / w.price_norm_cents, 1) * w.price_weight
        + economic.price_volatility_index * w.volatility_weight
        + min(economic.estimated_arbitrage_revenue_per_year / w.revenue_norm, 1) * w.revenue_weight
    )
    overall = (
        peak_shaving * w.peak_shaving
        + renewable_score * w.renewable_integration
        + grid_services * w.grid_services
        + economic_score * w.economic
    )

    return StorageOpportunityScore(
        overall=clamp_score(overall),
        peak_shaving=clamp_score(peak_shaving),
        renewable_integration=clamp_score(renewable_score),
        grid_services=clamp_score(grid_services),
        economic=clamp_score(economic_score),
    )


def score_opportunity(
    region: str,
    capacity_by_fuel: list[CapacityRecord],
    hourly_series: list[HourlySeriesRecord],
    generation: list[GenerationRecord],
    prices: list[RetailPriceRecord],
    *,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
    analysis_date: Optional[str] = None,
) -> StorageOpportunityMetrics:
    """
    Run every sub-estimator and combine them into storage-opportunity scores.

    Parameters
    ----------
    region:
        Two-letter state code, echoed into the result.
    capacity_by_fuel:
        Output of ``eia.capacity.capacity_by_fuel_type``.
    hourly_series:
        RTO hourly demand; may be empty (fallback values are used).
    generation, prices:
        Monthly generation and retail-price rows; either may be empty.
    analysis_date:
        ISO timestamp to stamp on the result; defaults to now (UTC).
    """
    grid = grid_capacity_metrics(capacity_by_fuel, assumptions)
    demand = estimate_demand_supply(hourly_series, generation, assumptions)
    renewable = estimate_renewable_integration(capacity_by_fuel, assumptions)
    stability = estimate_stability(hourly_series, assumptions)
    economic = estimate_economics(prices, assumptions)
    scores = opportunity_scores(grid, demand, renewable, stability, economic, assumptions)

    logger.info(
        "Storage opportunity | {} | overall={} | peak={} renewable={} grid={} economic={}",
        region, scores.overall, scores.peak_shaving, scores.renewable_integration,
        scores.grid_services, scores.economic,
    )
    return StorageOpportunityMetrics(
        region=region,
        analysis_date=analysis_date or datetime.now(tz=timezone.utc).isoformat(),
        grid_capacity=grid,
        demand_supply=demand,
        renewable_integration=renewable,
        grid_stability=stability,
        economic_opportunity=economic,
        storage_opportunity_score=scores,
    )
