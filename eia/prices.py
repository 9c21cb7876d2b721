"""
GridScout: Retail Price Comparison
Compares the most recent N monthly average retail prices (sector ALL) across
states: mean price, volatility (coefficient of variation) and trend.

The trend compares the newest observation in the window with the oldest one
using a fixed 0.1 ¢/kWh deadband (rising / falling / flat).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

from loguru import logger

from eia.assumptions import DEFAULT_ASSUMPTIONS, ScoringAssumptions
from eia.ranking import RegionFailure
from eia.records import RetailPriceRecord
from eia.stats import PriceTrend, basic_stats, classify_price_trend, coerce_or_default

DEFAULT_MONTHS = 12
TOP_N = 5


class PriceFetcher(Protocol):
    def get_retail_prices(self, region: str) -> list[RetailPriceRecord]: ...


@dataclass(frozen=True)
class RegionPriceSummary:
    region: str
    avg_price_cents_per_kwh: float
    volatility_index: float
    trend: PriceTrend
    months: int

    def to_dict(self) -> dict:
        return {
            "region":                  self.region,
            "avg_price_cents_per_kwh": self.avg_price_cents_per_kwh,
            "volatility_index":        self.volatility_index,
            "trend":                   self.trend,
            "months":                  self.months,
        }


@dataclass(frozen=True)
class PriceComparison:
    analysis_date: str
    months_analyzed: int
    rankings: list[RegionPriceSummary]          # most expensive first
    failed_regions: list[RegionFailure] = field(default_factory=list)

    @property
    def top(self) -> list[RegionPriceSummary]:
        return self.rankings[:TOP_N]

    def to_dict(self) -> dict:
        return {
            "analysis_date":   self.analysis_date,
            "months_analyzed": self.months_analyzed,
            "rankings":        [r.to_dict() for r in self.rankings],
            "top5":            [r.to_dict() for r in self.top],
            "failed_regions":  [f.to_dict() for f in self.failed_regions],
            "notes": "Sector = ALL. Using the most recent N monthly observations returned by EIA.",
        }


def summarize_prices(
    region: str,
    records: list[RetailPriceRecord],
    months: int = DEFAULT_MONTHS,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> Optional[RegionPriceSummary]:
    """Window summary for one region, or None when there are no observations."""
    window = sorted(records, key=lambda r: r.period, reverse=True)[:months]
    if not window:
        return None

    prices = [coerce_or_default(r.price_cents_per_kwh) for r in window]
    stats = basic_stats(prices)
    return RegionPriceSummary(
        region=region,
        avg_price_cents_per_kwh=round(stats.avg, 2),
        volatility_index=round(stats.coefficient_of_variation, 3),
        trend=classify_price_trend(prices[0], prices[-1], assumptions.trend),
        months=len(window),
    )


def compare_retail_prices(
    prices_by_region: dict[str, list[RetailPriceRecord]],
    months: int = DEFAULT_MONTHS,
    *,
    failures: Optional[list[RegionFailure]] = None,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
    analysis_date: Optional[str] = None,
) -> PriceComparison:
    """Rank regions by average retail price (regions without data fail)."""
    failed = list(failures or [])
    summaries: list[RegionPriceSummary] = []
    for region, records in prices_by_region.items():
        summary = summarize_prices(region, records, months, assumptions)
        if summary is None:
            failed.append(RegionFailure(region=region, error="No price data"))
        else:
            summaries.append(summary)

    summaries.sort(key=lambda s: s.avg_price_cents_per_kwh, reverse=True)
    return PriceComparison(
        analysis_date=analysis_date or datetime.now(tz=timezone.utc).isoformat(),
        months_analyzed=months,
        rankings=summaries,
        failed_regions=failed,
    )


async def compare_regions(
    regions: list[str],
    fetcher: PriceFetcher,
    months: int = DEFAULT_MONTHS,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
) -> PriceComparison:
    """Fetch every distinct region's prices concurrently, then compare."""

    async def _fetch(region: str) -> tuple[str, list[RetailPriceRecord] | RegionFailure]:
        try:
            return region, await asyncio.to_thread(fetcher.get_retail_prices, region)
        except Exception as exc:
            logger.warning("Price comparison for {} failed: {}", region, exc)
            return region, RegionFailure(region=region, error=str(exc) or type(exc).__name__)

    regions = list(dict.fromkeys(regions))
    logger.info("Price comparison | regions={} | months={}", ", ".join(regions), months)
    fetched = await asyncio.gather(*(_fetch(r) for r in regions))

    prices_by_region = {r: v for r, v in fetched if not isinstance(v, RegionFailure)}
    failures = [v for _, v in fetched if isinstance(v, RegionFailure)]
    return compare_retail_prices(prices_by_region, months, failures=failures, assumptions=assumptions)
