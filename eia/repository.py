"""
GridScout: Electricity Repository
Issues the EIA v2 electricity queries GridScout needs and validates every
response into typed records before it reaches the analysis layer.

Routes used
-----------
operating-generator-capacity            plant-level summer/winter MW (monthly)
electric-power-operational-data         generation & fuel consumption by fuel (monthly)
retail-sales                            price, sales, revenue by sector (monthly)
state-electricity-profiles/summary      state totals (annual)
rto/region-data                         hourly demand / net generation by RTO

All queries ask EIA for ``period`` descending, so the first row is the most
recent one.  The aggregators still compute the latest period themselves.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from loguru import logger

from eia.capacity import capacity_by_fuel_type
from eia.client import EIAClient
from eia.records import (
    CapacityRecord,
    GenerationRecord,
    HourlySeriesRecord,
    RetailPriceRecord,
    StateProfileRecord,
    parse_records,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ELECTRICITY_ROOT = "/v2/electricity"

ROUTES: dict[str, str] = {
    "retail-sales":                       f"{ELECTRICITY_ROOT}/retail-sales",
    "electric-power-operational-data":    f"{ELECTRICITY_ROOT}/electric-power-operational-data",
    "operating-generator-capacity":       f"{ELECTRICITY_ROOT}/operating-generator-capacity",
    "state-electricity-profiles/summary": f"{ELECTRICITY_ROOT}/state-electricity-profiles/summary",
    "rto/region-data":                    f"{ELECTRICITY_ROOT}/rto/region-data",
}

# State → balancing-authority respondent on rto/region-data
STATE_TO_RTO: dict[str, str] = {
    "TX": "ERCO",   # ERCOT
    "CA": "CISO",   # CAISO
    "NY": "NYIS",   # NYISO
    "IL": "MISO",   # Midcontinent ISO
    "PA": "PJM",
    "MA": "ISNE",   # ISO New England
    "OK": "SWPP",   # Southwest Power Pool
}

SERIES_TYPES = ("D", "NG", "DF")     # demand, net generation, day-ahead demand forecast

PLANT_ROWS = 5000
RETAIL_SALES_ROWS = 1000
RETAIL_PRICE_MONTHS = 12
PROFILE_YEARS = 5
RTO_LOOKBACK_DAYS = 30
RTO_ROWS = RTO_LOOKBACK_DAYS * 24

_NEWEST_FIRST = [{"column": "period", "direction": "desc"}]


class ResponseShapeError(ValueError):
    """EIA answered, but without the ``response.data`` list we asked for."""


class UnsupportedRouteError(ValueError):
    """Route name outside ``ROUTES``."""


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ElectricityRepository:
    """
    Fetch-and-validate layer over ``EIAClient``.

    Every ``get_*`` method takes a two-letter state code and returns frozen
    records.  Bad rows raise ``pydantic.ValidationError``; a body without
    ``response.data`` raises ``ResponseShapeError``.
    """

    def __init__(self, client: EIAClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _data_rows(body: Any, context: str) -> list:
        response = body.get("response") if isinstance(body, dict) else None
        rows = response.get("data") if isinstance(response, dict) else None
        if rows is None:
            logger.error("Invalid response structure from EIA API for {}", context)
            raise ResponseShapeError(f"Invalid response structure from EIA API for {context}.")
        return rows

    def _fetch(self, model, route: str, params: dict[str, Any], context: str) -> list:
        body = self._client.get(f"{ROUTES[route]}/data", params)
        records = parse_records(model, self._data_rows(body, context))
        logger.debug("{} → {} rows", context, len(records))
        return records

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def get_operating_capacity(self, region: str) -> list[CapacityRecord]:
        """Plant-level monthly capacity rows for *region*."""
        return self._fetch(
            CapacityRecord,
            "operating-generator-capacity",
            {
                "frequency": "monthly",
                "facets":    {"stateid": [region]},
                "data":      ["net-summer-capacity-mw", "net-winter-capacity-mw"],
                "sort":      _NEWEST_FIRST,
                "length":    PLANT_ROWS,
            },
            f"operating capacity ({region})",
        )

    def get_capacity_by_fuel_type(self, region: str) -> list[CapacityRecord]:
        """Operating capacity collapsed to one record per energy source code."""
        return capacity_by_fuel_type(self.get_operating_capacity(region))

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def get_generation_by_fuel_type(self, region: str) -> list[GenerationRecord]:
        return self._fetch(
            GenerationRecord,
            "electric-power-operational-data",
            {
                "frequency": "monthly",
                "facets":    {"location": [region]},
                "data":      ["generation", "total-consumption"],
                "sort":      _NEWEST_FIRST,
                "length":    PLANT_ROWS,
            },
            f"generation by fuel ({region})",
        )

    # ------------------------------------------------------------------
    # Retail sales & prices
    # ------------------------------------------------------------------

    def get_retail_sales(self, region: str) -> list[RetailPriceRecord]:
        """Sales, price and revenue for every sector."""
        return self._fetch(
            RetailPriceRecord,
            "retail-sales",
            {
                "frequency": "monthly",
                "facets":    {"stateid": [region]},
                "data":      ["sales", "price", "revenue"],
                "sort":      _NEWEST_FIRST,
                "length":    RETAIL_SALES_ROWS,
            },
            f"retail sales ({region})",
        )

    def get_retail_prices(self, region: str) -> list[RetailPriceRecord]:
        """Last 12 months of all-sector average price."""
        return self._fetch(
            RetailPriceRecord,
            "retail-sales",
            {
                "frequency": "monthly",
                "facets":    {"stateid": [region], "sectorid": ["ALL"]},
                "data":      ["price", "sales"],
                "sort":      _NEWEST_FIRST,
                "length":    RETAIL_PRICE_MONTHS,
            },
            f"retail prices ({region})",
        )

    # ------------------------------------------------------------------
    # State profile
    # ------------------------------------------------------------------

    def get_state_profile(self, region: str) -> list[StateProfileRecord]:
        return self._fetch(
            StateProfileRecord,
            "state-electricity-profiles/summary",
            {
                "frequency": "annual",
                "facets":    {"stateID": [region]},
                "data":      ["net-generation", "total-retail-sales", "average-retail-price"],
                "sort":      _NEWEST_FIRST,
                "length":    PROFILE_YEARS,
            },
            f"state profile ({region})",
        )

    # ------------------------------------------------------------------
    # RTO hourly series
    # ------------------------------------------------------------------

    def get_rto_demand(
        self,
        region: str,
        respondent: Optional[str] = None,
        series_type: str = "D",
    ) -> list[HourlySeriesRecord]:
        """
        Last 30 days of hourly data for the RTO serving *region*.

        Returns ``[]`` without calling EIA when no respondent is given and the
        state has no RTO mapping.
        """
        rto = respondent or STATE_TO_RTO.get(region)
        if not rto:
            logger.info("No RTO mapping for {}; skipping hourly fetch", region)
            return []

        start = (datetime.now(tz=timezone.utc) - timedelta(days=RTO_LOOKBACK_DAYS)).strftime("%Y-%m-%d")
        return self._fetch(
            HourlySeriesRecord,
            "rto/region-data",
            {
                "frequency": "hourly",
                "facets":    {"respondent": [rto], "type": [series_type]},
                "data":      ["value"],
                "start":     start,
                "sort":      _NEWEST_FIRST,
                "length":    RTO_ROWS,
            },
            f"RTO {series_type} ({rto})",
        )

    # ------------------------------------------------------------------
    # Route discovery
    # ------------------------------------------------------------------

    def get_route_metadata(self, route: str, facet_id: Optional[str] = None) -> dict:
        """
        Route metadata (frequencies, facets, data columns, date range) or,
        with *facet_id*, the list of valid options for that facet.
        """
        base = ROUTES.get(route)
        if base is None:
            raise UnsupportedRouteError(f"Unsupported route: {route}")

        path = f"{base}/facet/{facet_id}" if facet_id else base
        body = self._client.get(path)
        payload = body.get("response", body) if isinstance(body, dict) else body

        result: dict[str, Any] = {"route": route}
        if facet_id:
            result["facet_id"] = facet_id
        result["response"] = payload
        return result
