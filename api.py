"""
GridScout: FastAPI Server
Exposes the EIA electricity analyses (generation mix, capacity utilization,
state profile, RTO demand, retail prices, storage-opportunity ranking) as a
JSON API.

Run:  uvicorn api:app --reload --port 8000
Docs: http://localhost:8000/docs

The EIA key comes from the ``X-EIA-Api-Key`` request header, falling back to
the ``EIA_API_KEY`` environment variable.
"""

from __future__ import annotations

import asyncio
import os
import sys
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, Callable, Generic, Optional, TypeVar

import requests
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Path, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, ValidationError

from eia.assumptions import DEFAULT_ASSUMPTIONS
from eia.capacity import capacity_by_fuel_type, estimate_utilization, regional_capacity_metrics
from eia.client import EIAClient
from eia.generation import generation_mix
from eia.prices import compare_regions
from eia.profile import demand_snapshot, summarize_state_profile
from eia.ranking import rank_regions
from eia.repository import ROUTES, ElectricityRepository, ResponseShapeError

load_dotenv()

logger.remove()
logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))

API_VERSION = "1.0"
DATA_SOURCE = "EIA Open Data API v2"
DEFAULT_REGIONS = "TX,CA,NY"
MAX_REGIONS = 20

_REGION_PATTERN = r"^[A-Za-z]{2}$"

# ---------------------------------------------------------------------------
# Application state: one EIAClient per API key
# ---------------------------------------------------------------------------

_clients: dict[str, EIAClient] = {}
_clients_lock = threading.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("GridScout API starting (EIA key in env: {}).", bool(os.getenv("EIA_API_KEY")))
    yield
    with _clients_lock:
        for client in _clients.values():
            client.close()
        logger.info("Closed {} cached EIA client(s).", len(_clients))
        _clients.clear()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GridScout API",
    description=(
        "U.S. electricity analytics over the EIA Open Data API: generation mix, "
        "capacity utilization, price trends and energy-storage opportunity scores."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Envelope: standard top-level wrapper for all data endpoints
# ---------------------------------------------------------------------------

_T_data    = TypeVar("_T_data")
_T_summary = TypeVar("_T_summary")


class EnvelopeMeta(BaseModel):
    """Metadata block present on every GridScout data response."""
    api_version:      str = API_VERSION
    region:           str   # state code, or comma-joined list for multi-region responses
    units:            str
    source:           str = DATA_SOURCE
    last_updated_utc: str


class ApiResponse(BaseModel, Generic[_T_data, _T_summary]):
    meta:    EnvelopeMeta
    data:    list[_T_data]
    summary: _T_summary


# ---------------------------------------------------------------------------
# Record models  (per-row shape inside data[])
# ---------------------------------------------------------------------------

class FuelShareRecord(BaseModel):
    fuel_type:          str
    description:        Optional[str]
    net_generation_gwh: float
    share_pct:          float
    reporting_units:    int


class FuelCapacityRecord(BaseModel):
    fuel_type:          str
    period:             str
    summer_capacity_mw: Optional[float]
    winter_capacity_mw: Optional[float]


class ProfileYearRecord(BaseModel):
    period:               str
    net_generation:       Optional[float]
    total_retail_sales:   Optional[float]
    average_retail_price: Optional[float]


class HourlyValueRecord(BaseModel):
    period:     str
    respondent: str
    type:       str
    value:      Optional[float]


class RegionPriceRecord(BaseModel):
    region:                  str
    avg_price_cents_per_kwh: float
    volatility_index:        float
    trend:                   str
    months:                  int


class GridCapacityModel(BaseModel):
    total_capacity_mw:         int
    renewable_capacity_mw:     int
    fossil_capacity_mw:        int
    renewable_penetration_pct: int


class DemandSupplyModel(BaseModel):
    average_demand_mw:        int
    peak_demand_mw:           int
    minimum_demand_mw:        int
    load_factor:              float
    demand_variability_index: float
    is_estimated:             bool


class RenewableIntegrationModel(BaseModel):
    solar_capacity_mw:           int
    wind_capacity_mw:            int
    estimated_curtailment_mwh:   int
    renewable_variability_index: float
    duck_curve_severity:         float


class GridStabilityModel(BaseModel):
    max_hourly_ramp_mw:              int
    ramping_frequency_per_day:       float
    frequency_regulation_need_mw:    int
    spinning_reserve_requirement_mw: int
    is_fallback:                     bool


class EconomicModel(BaseModel):
    average_price_cents_per_kwh:          float
    price_volatility_index:               float
    peak_off_peak_spread_per_mwh:         int
    estimated_arbitrage_revenue_per_year: int
    is_fallback:                          bool


class OpportunityScoreModel(BaseModel):
    overall:               int
    peak_shaving:          int
    renewable_integration: int
    grid_services:         int
    economic:              int


class StorageOpportunityRecord(BaseModel):
    region:                    str
    analysis_date:             str
    grid_capacity:             GridCapacityModel
    demand_supply:             DemandSupplyModel
    renewable_integration:     RenewableIntegrationModel
    grid_stability:            GridStabilityModel
    economic_opportunity:      EconomicModel
    storage_opportunity_score: OpportunityScoreModel


# ---------------------------------------------------------------------------
# Summary models  (aggregate block inside summary{})
# ---------------------------------------------------------------------------

class GenerationMixSummary(BaseModel):
    period:                   str
    total_net_generation_gwh: float
    fuel_count:               int
    dominant_fuel:            str
    dominant_share_pct:       float


class CapacitySummary(BaseModel):
    latest_period:            str
    total_summer_capacity_mw: float
    total_winter_capacity_mw: float
    utilization_ratio:        Optional[float]
    total_generation_gwh:     float
    total_consumption_gwh:    float


class MetricTrendModel(BaseModel):
    latest:    Optional[float]
    yoy_delta: float
    trend:     str


class ProfileSummary(BaseModel):
    years:   list[str]
    metrics: dict[str, MetricTrendModel]


class DemandWindowModel(BaseModel):
    avg_demand_mw:             int
    peak_demand_mw:            int
    min_demand_mw:             int
    load_factor:               float
    max_hourly_ramp_mw:        int
    ramping_frequency_per_day: float


class DemandSummary(BaseModel):
    respondent:  Optional[str]
    series_type: str
    window_days: int
    metrics:     Optional[DemandWindowModel]
    note:        Optional[str]


class RegionFailureModel(BaseModel):
    region: str
    error:  str


class PriceComparisonSummary(BaseModel):
    analysis_date:   str
    months_analyzed: int
    top5:            list[RegionPriceRecord]
    failed_regions:  list[RegionFailureModel]
    notes:           str


class TopOpportunityModel(BaseModel):
    region:         str
    overall_score:  int
    primary_driver: str


class RankingSummaryModel(BaseModel):
    analysis_date:       str
    regions_analyzed:    int
    successful_analyses: int
    top_opportunities:   list[TopOpportunityModel]
    failed_regions:      list[RegionFailureModel]


# ---------------------------------------------------------------------------
# Typed envelope aliases: one per data endpoint
# ---------------------------------------------------------------------------

GenerationMixApiResponse   = ApiResponse[FuelShareRecord,          GenerationMixSummary]
CapacityApiResponse        = ApiResponse[FuelCapacityRecord,       CapacitySummary]
ProfileApiResponse         = ApiResponse[ProfileYearRecord,        ProfileSummary]
DemandApiResponse          = ApiResponse[HourlyValueRecord,        DemandSummary]
PriceComparisonApiResponse = ApiResponse[RegionPriceRecord,        PriceComparisonSummary]
StorageRankingApiResponse  = ApiResponse[StorageOpportunityRecord, RankingSummaryModel]


# ---------------------------------------------------------------------------
# Meta-only models (not wrapped in envelope)
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status:             str
    timestamp:          str
    api_key_configured: bool
    cached_clients:     int


class RouteMetadataResponse(BaseModel):
    route:    str
    facet_id: Optional[str] = None
    response: Any


# ---------------------------------------------------------------------------
# Dependencies & helpers
# ---------------------------------------------------------------------------


def get_repository(
    x_eia_api_key: Optional[str] = Header(default=None, description="EIA API key (overrides EIA_API_KEY)."),
) -> ElectricityRepository:
    """Resolve the caller's EIA key and return a repository over a cached client."""
    api_key = x_eia_api_key or os.getenv("EIA_API_KEY")
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="EIA API key missing. Send the X-EIA-Api-Key header or set EIA_API_KEY.",
        )
    # dependency runs in the threadpool; build at most one client per key
    with _clients_lock:
        client = _clients.get(api_key)
        if client is None:
            client = _clients[api_key] = EIAClient(api_key=api_key)
            logger.debug("Created EIA client #{}", len(_clients))
    return ElectricityRepository(client)


async def _upstream(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking repository call in a thread; upstream failures → 502."""
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except requests.exceptions.RequestException as exc:
        logger.error("EIA request failed: {}", exc)
        raise HTTPException(status_code=502, detail=f"EIA API request failed: {exc}") from exc
    except (ResponseShapeError, ValidationError) as exc:
        logger.error("Unexpected EIA response: {}", exc)
        raise HTTPException(status_code=502, detail=f"Unexpected EIA response shape: {exc}") from exc


def _parse_regions(regions: str) -> list[str]:
    # repeated codes collapse to their first occurrence
    codes = list(dict.fromkeys(r.strip().upper() for r in regions.split(",") if r.strip()))
    if not codes:
        raise HTTPException(status_code=422, detail="At least one region is required.")
    if len(codes) > MAX_REGIONS:
        raise HTTPException(status_code=422, detail=f"At most {MAX_REGIONS} regions per request.")
    bad = [c for c in codes if len(c) != 2 or not c.isalpha()]
    if bad:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid region code(s): {', '.join(bad)}. Use two-letter state codes.",
        )
    return codes


def _make_meta(*, region: str, units: str) -> EnvelopeMeta:
    return EnvelopeMeta(
        region=region,
        units=units,
        last_updated_utc=datetime.now(tz=timezone.utc).isoformat(),
    )


RegionPath = Annotated[str, Path(pattern=_REGION_PATTERN, description="Two-letter state code, e.g. 'TX'.")]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Meta"])
async def health():
    """Service health, whether a server-side EIA key is configured, and client cache size."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        api_key_configured=bool(os.getenv("EIA_API_KEY")),
        cached_clients=len(_clients),
    )


@app.get("/assumptions", tags=["Meta"])
async def get_assumptions():
    """The policy constants (thresholds, fallbacks, weights) used by every score."""
    return DEFAULT_ASSUMPTIONS.model_dump()


@app.get("/generation-mix/{region}", response_model=GenerationMixApiResponse, tags=["Generation"])
async def get_generation_mix(
    region: RegionPath,
    repo: ElectricityRepository = Depends(get_repository),
):
    """
    Latest-month generation by fuel type with share of total.

    Values are normalized to GWh; the dominant fuel is the one with the
    largest share.
    """
    region = region.upper()
    logger.info("GET /generation-mix/{}", region)

    records = await _upstream(repo.get_generation_by_fuel_type, region)
    mix = generation_mix(region, records)

    return GenerationMixApiResponse(
        meta=_make_meta(region=region, units="GWh"),
        data=[
            FuelShareRecord(
                fuel_type=fuel,
                description=share.description,
                net_generation_gwh=share.net_generation_gwh,
                share_pct=share.share_pct,
                reporting_units=share.reporting_units,
            )
            for fuel, share in mix.by_fuel.items()
        ],
        summary=GenerationMixSummary(
            period=mix.period,
            total_net_generation_gwh=mix.total_net_generation_gwh,
            fuel_count=len(mix.by_fuel),
            dominant_fuel=mix.dominant_fuel,
            dominant_share_pct=mix.dominant_share_pct,
        ),
    )


@app.get("/capacity/{region}", response_model=CapacityApiResponse, tags=["Capacity"])
async def get_capacity(
    region: RegionPath,
    repo: ElectricityRepository = Depends(get_repository),
):
    """
    Installed capacity by fuel plus a utilization estimate.

    **Formula**:

        potential_mwh = summer_capacity_mw × 30.4375 d × 24 h
        utilization   = latest-month generation_mwh / potential_mwh
    """
    region = region.upper()
    logger.info("GET /capacity/{}", region)

    plants, generation = await asyncio.gather(
        _upstream(repo.get_operating_capacity, region),
        _upstream(repo.get_generation_by_fuel_type, region),
    )
    totals = regional_capacity_metrics(region, plants)
    utilization = estimate_utilization(totals, generation)

    return CapacityApiResponse(
        meta=_make_meta(region=region, units="MW"),
        data=[
            FuelCapacityRecord(
                fuel_type=r.fuel_code,
                period=r.period,
                summer_capacity_mw=r.summer_capacity_mw,
                winter_capacity_mw=r.winter_capacity_mw,
            )
            for r in capacity_by_fuel_type(plants)
        ],
        summary=CapacitySummary(
            latest_period=totals.latest_period,
            total_summer_capacity_mw=totals.total_summer_capacity_mw,
            total_winter_capacity_mw=totals.total_winter_capacity_mw,
            utilization_ratio=utilization.ratio,
            total_generation_gwh=utilization.total_generation_gwh,
            total_consumption_gwh=utilization.total_consumption_gwh,
        ),
    )


@app.get("/profile/{region}", response_model=ProfileApiResponse, tags=["Profile"])
async def get_profile(
    region: RegionPath,
    repo: ElectricityRepository = Depends(get_repository),
):
    """Five-year state profile with year-over-year deltas and up/down/flat trends."""
    region = region.upper()
    logger.info("GET /profile/{}", region)

    records = await _upstream(repo.get_state_profile, region)
    profile = summarize_state_profile(region, records)

    return ProfileApiResponse(
        meta=_make_meta(region=region, units="MWh | ¢/kWh"),
        data=[
            ProfileYearRecord(
                period=r.period,
                net_generation=r.net_generation,
                total_retail_sales=r.total_retail_sales,
                average_retail_price=r.average_retail_price,
            )
            for r in sorted(records, key=lambda r: r.period, reverse=True)
        ],
        summary=ProfileSummary(
            years=profile.years,
            metrics={k: MetricTrendModel(**v.to_dict()) for k, v in profile.metrics.items()},
        ),
    )


@app.get("/rto-demand/{region}", response_model=DemandApiResponse, tags=["Demand"])
async def get_rto_demand(
    region: RegionPath,
    respondent: Optional[str] = Query(
        default=None,
        description="RTO respondent code (e.g. 'ERCO', 'CISO', 'PJM'). Mapped from the state when omitted.",
    ),
    series_type: str = Query(
        default="D",
        pattern="^(D|NG|DF)$",
        description="'D' demand, 'NG' net generation, 'DF' day-ahead demand forecast.",
    ),
    days: int = Query(default=7, ge=1, le=30, description="Window length in days (1–30)."),
    repo: ElectricityRepository = Depends(get_repository),
):
    """
    Hourly RTO series statistics over the last *days* days: average, peak,
    minimum, load factor, max hourly ramp and significant ramps per day.
    """
    region = region.upper()
    respondent = respondent.upper() if respondent else None
    logger.info("GET /rto-demand/{} | respondent={} | type={} | days={}", region, respondent, series_type, days)

    series = await _upstream(repo.get_rto_demand, region, respondent, series_type)
    snapshot = demand_snapshot(region, series, days=days, respondent=respondent)

    window = sorted(series, key=lambda r: r.period, reverse=True)[: days * 24]
    return DemandApiResponse(
        meta=_make_meta(region=region, units="MW"),
        data=[
            HourlyValueRecord(
                period=r.period, respondent=r.respondent_code, type=r.series_type, value=r.value,
            )
            for r in window
        ],
        summary=DemandSummary(
            respondent=snapshot.respondent,
            series_type=series_type,
            window_days=snapshot.window_days,
            metrics=DemandWindowModel(**snapshot.metrics.to_dict()) if snapshot.metrics else None,
            note=snapshot.note,
        ),
    )


@app.get("/retail-prices/compare", response_model=PriceComparisonApiResponse, tags=["Prices"])
async def get_retail_price_comparison(
    regions: str = Query(default=DEFAULT_REGIONS, description="Comma-separated state codes, e.g. 'TX,CA,NY'."),
    months: int = Query(default=12, ge=1, le=12, description="Most recent months to compare (1–12)."),
    repo: ElectricityRepository = Depends(get_repository),
):
    """
    Average all-sector retail price per state over the last *months* months,
    with volatility (coefficient of variation) and rising/falling/flat trend.
    Sorted most expensive first.
    """
    codes = _parse_regions(regions)
    logger.info("GET /retail-prices/compare | regions={} | months={}", codes, months)

    comparison = await compare_regions(codes, repo, months)

    return PriceComparisonApiResponse(
        meta=_make_meta(region=",".join(codes), units="¢/kWh"),
        data=[RegionPriceRecord(**r.to_dict()) for r in comparison.rankings],
        summary=PriceComparisonSummary(
            analysis_date=comparison.analysis_date,
            months_analyzed=comparison.months_analyzed,
            top5=[RegionPriceRecord(**r.to_dict()) for r in comparison.top],
            failed_regions=[RegionFailureModel(**f.to_dict()) for f in comparison.failed_regions],
            notes=comparison.to_dict()["notes"],
        ),
    )


@app.get("/storage-opportunities", response_model=StorageRankingApiResponse, tags=["Storage"])
async def get_storage_opportunities(
    regions: str = Query(default=DEFAULT_REGIONS, description="Comma-separated state codes, e.g. 'TX,CA,NY'."),
    include_hourly: bool = Query(
        default=False,
        description="Also fetch 30 days of hourly RTO demand (better stability metrics, slower).",
    ),
    repo: ElectricityRepository = Depends(get_repository),
):
    """
    Score and rank states for energy-storage opportunity.

    **Overall score** (0–100):

        overall = 0.25 × peak_shaving + 0.35 × renewable_integration
                + 0.20 × grid_services + 0.20 × economic

    Regions whose data cannot be fetched are listed under
    ``summary.failed_regions``; they never fail the whole request.
    """
    codes = _parse_regions(regions)
    logger.info("GET /storage-opportunities | regions={} | hourly={}", codes, include_hourly)

    result = await rank_regions(codes, repo, include_hourly=include_hourly)
    summary = result.summary

    return StorageRankingApiResponse(
        meta=_make_meta(region=",".join(codes), units="score 0–100"),
        data=[StorageOpportunityRecord(**m.to_dict()) for m in result.detailed_results],
        summary=RankingSummaryModel(
            analysis_date=summary.analysis_date,
            regions_analyzed=summary.regions_analyzed,
            successful_analyses=summary.successful_analyses,
            top_opportunities=[TopOpportunityModel(**t.to_dict()) for t in summary.top_opportunities],
            failed_regions=[RegionFailureModel(**f.to_dict()) for f in result.failed_regions],
        ),
    )


@app.get("/routes/{route:path}/metadata", response_model=RouteMetadataResponse, tags=["Meta"])
async def get_route_metadata(
    route: str,
    facet_id: Optional[str] = Query(
        default=None,
        description="Facet to enumerate (e.g. 'stateid', 'sectorid', 'respondent').",
    ),
    repo: ElectricityRepository = Depends(get_repository),
):
    """
    EIA route metadata (frequencies, facets, data columns, date range), or the
    valid options of one facet when ``facet_id`` is given.
    """
    if route not in ROUTES:
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported route '{route}'. Allowed: {', '.join(ROUTES)}.",
        )
    logger.info("GET /routes/{}/metadata | facet={}", route, facet_id)
    return await _upstream(repo.get_route_metadata, route, facet_id)
