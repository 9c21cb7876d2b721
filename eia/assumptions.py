"""
GridScout: Scoring Assumptions
Every heuristic constant used by the storage-opportunity engine, in one place.

None of these values are fitted to data.  They are heuristic policy knobs
(typical U.S. curtailment rates, renewable capacity factors, a 100 MW / 4-hour
reference battery, ...).  Grouping them in a frozen
model lets callers swap a single knob without touching the estimators:

    custom = DEFAULT_ASSUMPTIONS.model_copy(
        update={"renewable": RenewableAssumptions(curtailment_rate=0.05)}
    )
    score_opportunity(..., assumptions=custom)

The FastAPI ``/assumptions`` endpoint publishes ``DEFAULT_ASSUMPTIONS``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TrendAssumptions(_Frozen):
    """Deadbands for the up/down/flat and rising/falling/flat classifiers."""
    relative_band:        float = 0.01   # 1 % of |previous|
    minimum_band:         float = 1.0    # absolute floor, same unit as the metric
    price_deadband_cents: float = 0.1    # cents/kWh, fixed (price deltas are small)


class CapacityAssumptions(_Frozen):
    hours_per_month: float = 30.4375 * 24   # 365.25 / 12 days


class DemandAssumptions(_Frozen):
    """Estimates used when no hourly demand series is available."""
    fallback_peak_multiplier:    float = 1.2
    fallback_minimum_multiplier: float = 0.6
    fallback_load_factor:        float = 0.7
    fallback_variability_index:  float = 0.15


class GridStabilityAssumptions(_Frozen):
    # Placeholder industry-typical values for < 2 numeric samples
    fallback_max_ramp_mw:            float = 500.0
    fallback_ramps_per_day:          float = 4.0
    fallback_regulation_need_mw:     float = 100.0
    fallback_spinning_reserve_mw:    float = 300.0

    significant_ramp_fraction: float = 0.05   # ramp > 5 % of mean demand
    regulation_fraction:       float = 0.01   # regulation = 1 % of mean demand
    spinning_reserve_fraction: float = 0.5    # reserve = 50 % of max ramp
    samples_per_day:           int   = 24


class EconomicAssumptions(_Frozen):
    # Fallbacks for an empty price series (U.S. averages)
    fallback_price_cents_per_kwh: float = 10.0
    fallback_volatility_index:    float = 0.15
    fallback_spread_per_mwh:      float = 50.0
    fallback_arbitrage_revenue:   float = 50_000.0

    # Reference asset: 100 MW / 4 h battery
    spread_fraction:       float = 0.5
    cents_kwh_to_usd_mwh:  float = 10.0
    storage_hours:         float = 4.0
    cycles_per_year:       float = 300.0   # one cycle/day less maintenance days
    round_trip_efficiency: float = 0.85


class RenewableAssumptions(_Frozen):
    renewable_fuels: tuple[str, ...] = ("SUN", "WND", "HYD", "GEO", "BIO", "WAS")
    fossil_fuels:    tuple[str, ...] = ("NG", "COL", "PET", "OTH")
    solar_fuel:      str = "SUN"
    wind_fuel:       str = "WND"

    hours_per_year:   float = 8760.0
    capacity_factor:  float = 0.35
    curtailment_rate: float = 0.03
    duck_curve_scale: float = 2.0

    base_variability_index:  float = 0.4
    solar_variability_scale: float = 0.3


class ScoreWeights(_Frozen):
    """Sub-score formula coefficients and the overall weighting (sums to 1.0)."""
    # peak shaving
    load_factor_weight: float = 50.0
    variability_weight: float = 200.0

    # renewable integration
    penetration_weight:      float = 0.5
    duck_curve_weight:       float = 30.0
    curtailment_norm_mwh:    float = 10_000.0
    curtailment_weight:      float = 20.0

    # grid services
    ramp_norm_mw:             float = 1_000.0
    ramp_weight:              float = 40.0
    ramp_frequency_norm:      float = 10.0
    ramp_frequency_weight:    float = 30.0
    regulation_norm_mw:       float = 500.0
    regulation_weight:        float = 30.0

    # economic
    price_norm_cents:   float = 20.0
    price_weight:       float = 30.0
    volatility_weight:  float = 100.0
    revenue_norm:       float = 100_000.0
    revenue_weight:     float = 40.0

    # overall
    peak_shaving:          float = 0.25
    renewable_integration: float = 0.35
    grid_services:         float = 0.20
    economic:              float = 0.20


class ScoringAssumptions(_Frozen):
    trend:          TrendAssumptions = TrendAssumptions()
    capacity:       CapacityAssumptions = CapacityAssumptions()
    demand:         DemandAssumptions = DemandAssumptions()
    grid_stability: GridStabilityAssumptions = GridStabilityAssumptions()
    economic:       EconomicAssumptions = EconomicAssumptions()
    renewable:      RenewableAssumptions = RenewableAssumptions()
    weights:        ScoreWeights = ScoreWeights()


DEFAULT_ASSUMPTIONS = ScoringAssumptions()
