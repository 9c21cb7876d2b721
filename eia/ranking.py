"""
GridScout: Region Ranker
Scores a batch of states for energy-storage potential and ranks them.

Each region is an independent asyncio task.  Inside a task the capacity,
generation, retail-price and (optionally) hourly RTO demand fetches run
concurrently in worker threads, then the pure scorer runs.  A failure in one
region is captured as a ``RegionFailure`` and never aborts the batch; results
are collected only after every task settles.

No timeouts or retries here: those belong to the EIA client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from loguru import logger

from eia.assumptions import DEFAULT_ASSUMPTIONS, ScoringAssumptions
from eia.client import EIAClient
from eia.records import CapacityRecord, GenerationRecord, HourlySeriesRecord, RetailPriceRecord
from eia.repository import ElectricityRepository
from eia.storage import StorageOpportunityMetrics, StorageOpportunityScore, score_opportunity

TOP_N = 3


class RegionDataFetcher(Protocol):
    """What the ranker needs from a data source (``ElectricityRepository`` fits)."""

    def get_capacity_by_fuel_type(self, region: str) -> list[CapacityRecord]: ...

    def get_generation_by_fuel_type(self, region: str) -> list[GenerationRecord]: ...

    def get_retail_prices(self, region: str) -> list[RetailPriceRecord]: ...

    def get_rto_demand(self, region: str) -> list[HourlySeriesRecord]: ...


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegionFailure:
    region: str
    error: str

    def to_dict(self) -> dict:
        return {"region": self.region, "error": self.error}


@dataclass(frozen=True)
class TopOpportunity:
    region: str
    overall_score: int
    primary_driver: str

    def to_dict(self) -> dict:
        return {
            "region":         self.region,
            "overall_score":  self.overall_score,
            "primary_driver": self.primary_driver,
        }


@dataclass(frozen=True)
class RankingSummary:
    analysis_date: str
    regions_analyzed: int
    successful_analyses: int
    top_opportunities: list[TopOpportunity]

    def to_dict(self) -> dict:
        return {
            "analysis_date":       self.analysis_date,
            "regions_analyzed":    self.regions_analyzed,
            "successful_analyses": self.successful_analyses,
            "top_opportunities":   [t.to_dict() for t in self.top_opportunities],
        }


@dataclass(frozen=True)
class RankingResult:
    summary: RankingSummary
    detailed_results: list[StorageOpportunityMetrics]   # best first
    failed_regions: list[RegionFailure]

    def to_dict(self) -> dict:
        return {
            "summary":          self.summary.to_dict(),
            "detailed_results": [m.to_dict() for m in self.detailed_results],
            "failed_regions":   [f.to_dict() for f in self.failed_regions],
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def identify_primary_driver(score: StorageOpportunityScore) -> str:
    """Name of the highest sub-score; the earlier driver wins a tie."""
    drivers = [
        ("Peak Shaving",          score.peak_shaving),
        ("Renewable Integration", score.renewable_integration),
        ("Grid Services",         score.grid_services),
        ("Economic Arbitrage",    score.economic),
    ]
    best_name, best_score = drivers[0]
    for name, value in drivers[1:]:
        if value > best_score:
            best_name, best_score = name, value
    return best_name


async def _no_rows() -> list:
    return []


async def _analyze_region(
    region: str,
    fetcher: RegionDataFetcher,
    include_hourly: bool,
    assumptions: ScoringAssumptions,
    analysis_date: str,
) -> StorageOpportunityMetrics | RegionFailure:
    try:
        logger.info("Analyzing energy storage opportunities for {}", region)
        capacity, generation, prices, demand = await asyncio.gather(
            asyncio.to_thread(fetcher.get_capacity_by_fuel_type, region),
            asyncio.to_thread(fetcher.get_generation_by_fuel_type, region),
            asyncio.to_thread(fetcher.get_retail_prices, region),
            asyncio.to_thread(fetcher.get_rto_demand, region) if include_hourly else _no_rows(),
        )

        if not capacity:
            logger.warning("Ranker: no capacity data for {}", region)
            return RegionFailure(region=region, error="No capacity data found")

        return score_opportunity(
            region, capacity, demand, generation, prices,
            assumptions=assumptions, analysis_date=analysis_date,
        )
    except Exception as exc:
        logger.warning("Analysis for region {} failed: {}", region, exc)
        return RegionFailure(region=region, error=str(exc) or type(exc).__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def rank_regions(
    regions: list[str],
    fetcher: RegionDataFetcher,
    *,
    include_hourly: bool = False,
    assumptions: ScoringAssumptions = DEFAULT_ASSUMPTIONS,
    analysis_date: Optional[str] = None,
) -> RankingResult:
    """
    Score every region concurrently and rank by overall opportunity.

    Parameters
    ----------
    regions:
        Two-letter state codes; duplicates are scored once.
    fetcher:
        Data source, usually an ``ElectricityRepository``.
    include_hourly:
        Also fetch RTO hourly demand (better stability metrics, slower).

    Returns
    -------
    RankingResult
        ``detailed_results`` sorted by overall score descending, plus the
        regions that failed with their error message.
    """
    analysis_date = analysis_date or datetime.now(tz=timezone.utc).isoformat()
    regions = list(dict.fromkeys(regions))
    logger.info("Ranker | regions={} | hourly={}", ", ".join(regions), include_hourly)

    outcomes = await asyncio.gather(
        *(
            _analyze_region(region, fetcher, include_hourly, assumptions, analysis_date)
            for region in regions
        )
    )

    succeeded = [o for o in outcomes if isinstance(o, StorageOpportunityMetrics)]
    failed = [o for o in outcomes if isinstance(o, RegionFailure)]
    succeeded.sort(key=lambda m: m.storage_opportunity_score.overall, reverse=True)

    summary = RankingSummary(
        analysis_date=analysis_date,
        regions_analyzed=len(regions),
        successful_analyses=len(succeeded),
        top_opportunities=[
            TopOpportunity(
                region=m.region,
                overall_score=m.storage_opportunity_score.overall,
                primary_driver=identify_primary_driver(m.storage_opportunity_score),
            )
            for m in succeeded[:TOP_N]
        ],
    )
    logger.info(
        "Ranker: {}/{} regions scored | best={}",
        len(succeeded), len(regions), succeeded[0].region if succeeded else "N/A",
    )
    return RankingResult(summary=summary, detailed_results=succeeded, failed_regions=failed)


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------


def fetch_storage_rankings(
    regions: list[str],
    api_key: Optional[str] = None,
    include_hourly: bool = False,
) -> RankingResult:
    """Rank *regions* against the live EIA API (blocking)."""
    repo = ElectricityRepository(EIAClient(api_key=api_key))
    return asyncio.run(rank_regions(regions, repo, include_hourly=include_hourly))


# ---------------------------------------------------------------------------
# Smoke test  (python -m eia.ranking TX CA NY)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import os
    import sys

    logger.remove()
    logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))

    states = [s.upper() for s in sys.argv[1:]] or ["TX", "CA", "NY"]
    result = fetch_storage_rankings(states, include_hourly=True)

    print(f"\n{'Region':<8} {'Overall':>8} {'Peak':>6} {'Renew':>6} {'Grid':>6} {'Econ':>6}")
    print("-" * 46)
    for m in result.detailed_results:
        s = m.storage_opportunity_score
        print(
            f"{m.region:<8} {s.overall:>8} {s.peak_shaving:>6} "
            f"{s.renewable_integration:>6} {s.grid_services:>6} {s.economic:>6}"
        )
    for f in result.failed_regions:
        print(f"{f.region:<8} FAILED: {f.error}")
