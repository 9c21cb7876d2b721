"""
GridScout: descriptive statistics and trend classification helpers.

Small pure functions shared by the price, demand and profile analyzers.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Iterable, Literal, Optional

from eia.assumptions import DEFAULT_ASSUMPTIONS, TrendAssumptions

Trend = Literal["up", "down", "flat"]
PriceTrend = Literal["rising", "falling", "flat"]


def coerce_or_default(value: Optional[float], default: float = 0.0) -> float:
    """
    Return *value*, or *default* when it is missing.

    This is the single place where "not reported" becomes a number.  Every
    aggregation that treats null as zero (price averages, generation and
    capacity sums, YoY deltas) goes through here, so a stricter policy such
    as mean-of-present-values only has to change this function.
    """
    return default if value is None else value


def magnitude_scale(values: Iterable[float]) -> float:
    """
    Power of two at or below the largest finite |value|, never below 1.0.

    Dividing by it is exact, so sums and squares over the scaled values match
    the unscaled arithmetic but can no longer overflow.
    """
    peak = max((abs(v) for v in values if math.isfinite(v)), default=0.0)
    if peak < 1.0:
        return 1.0
    _, exponent = math.frexp(peak)
    return math.ldexp(1.0, exponent - 1)


def round_metric(value: float, ndigits: int = 0) -> float:
    """
    Round a reported metric, never raising on non-finite input.

    NaN becomes 0 and ±inf saturates to the largest finite float.  Whole
    numbers round half up (``2.5 → 3``) and come back as ``int``; with
    *ndigits* the built-in ``round`` is used and a float is returned.
    """
    if math.isnan(value):
        value = 0.0
    elif math.isinf(value):
        value = math.copysign(sys.float_info.max, value)
    if ndigits:
        return round(value, ndigits)
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class BasicStats:
    avg: float
    stddev: float
    coefficient_of_variation: float

    def to_dict(self) -> dict:
        return {
            "avg":                      self.avg,
            "stddev":                   self.stddev,
            "coefficient_of_variation": self.coefficient_of_variation,
        }


def basic_stats(values: Iterable[float]) -> BasicStats:
    """
    Mean, population standard deviation and coefficient of variation.

    Empty input returns all zeros.  CoV is 0 when the mean is 0; callers
    treat a zero mean as "no signal".  Values are scaled by
    ``magnitude_scale`` first, so series near the float limit still give a
    finite mean.
    """
    values = list(values)
    if not values:
        return BasicStats(avg=0.0, stddev=0.0, coefficient_of_variation=0.0)

    scale = magnitude_scale(values)
    scaled = [v / scale for v in values]
    mean = sum(scaled) / len(scaled)
    variance = sum((v - mean) ** 2 for v in scaled) / len(scaled)
    avg = mean * scale
    stddev = math.sqrt(variance) * scale
    cov = stddev / avg if avg != 0 else 0.0
    return BasicStats(avg=avg, stddev=stddev, coefficient_of_variation=cov)


def classify_trend(
    latest: Optional[float],
    previous: Optional[float],
    trend: TrendAssumptions = DEFAULT_ASSUMPTIONS.trend,
) -> Trend:
    """
    Classify a (latest, previous) pair as up / down / flat.

    The deadband is ~1 % of |previous| with an absolute floor of 1 unit so
    a previous value near zero does not make every change look significant.
    Missing values count as 0, which can misread "not reported" as a drop.
    """
    l = coerce_or_default(latest)
    p = coerce_or_default(previous)
    threshold = max(abs(p) * trend.relative_band, trend.minimum_band)
    delta = l - p
    if delta > threshold:
        return "up"
    if delta < -threshold:
        return "down"
    return "flat"


def classify_price_trend(
    latest: Optional[float],
    previous: Optional[float],
    trend: TrendAssumptions = DEFAULT_ASSUMPTIONS.trend,
) -> PriceTrend:
    """Rising / falling / flat with a fixed cents/kWh deadband."""
    delta = coerce_or_default(latest) - coerce_or_default(previous)
    if delta > trend.price_deadband_cents:
        return "rising"
    if delta < -trend.price_deadband_cents:
        return "falling"
    return "flat"
