"""
Integration tests for the FastAPI service. The EIA layer is replaced with an
in-memory repository via ``app.dependency_overrides``; nothing hits the network.

Run:
    pytest tests/test_api.py -v
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

import api
from conftest import FakeRepository, make_capacity, make_hourly, make_prices
from eia.records import GenerationRecord, StateProfileRecord
from eia.repository import ElectricityRepository, ResponseShapeError


class ApiFakeRepository(FakeRepository):
    """Adds the profile and metadata lookups the endpoints use."""

    def __init__(self, *args, profile=None, error: Exception | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.profile = profile or {}
        self.error = error

    def _lookup(self, name, table, region):
        if self.error is not None:
            raise self.error
        return super()._lookup(name, table, region)

    def get_state_profile(self, region):
        return self._lookup("profile", self.profile, region)

    def get_route_metadata(self, route, facet_id=None):
        result = {"route": route, "response": {"id": route}}
        if facet_id:
            result["facet_id"] = facet_id
        return result


@pytest.fixture()
def repo() -> ApiFakeRepository:
    return ApiFakeRepository(
        capacity={
            "TX": [
                *make_capacity("TX", {"SUN": 8000, "NG": 12000}, period="2024-06"),
                *make_capacity("TX", {"NG": 500}, period="2024-05"),
            ],
        },
        generation={
            "TX": [
                GenerationRecord(period="2024-06", fuel_code="NG", generation_value=6000.0,
                                 generation_units="thousand megawatthours"),
                GenerationRecord(period="2024-06", fuel_code="SUN", generation_value=2000.0,
                                 generation_units="thousand megawatthours"),
            ],
        },
        prices={
            "TX": make_prices("TX", [14.0, 12.0, 13.0]),
            "CA": make_prices("CA", [28.0, 27.0]),
        },
        hourly={"TX": make_hourly([1000, 1100, 1050, 1300])},
        profile={
            "TX": [
                StateProfileRecord(period="2023", net_generation=500_000.0),
                StateProfileRecord(period="2022", net_generation=480_000.0),
            ],
        },
        failing=("BB",),
    )


@pytest.fixture()
def client(repo):
    api.app.dependency_overrides[api.get_repository] = lambda: repo
    with TestClient(api.app) as c:
        yield c
    api.app.dependency_overrides.clear()


# ===========================================================================
# Meta endpoints
# ===========================================================================

class TestMetaEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["api_key_configured"] is True

    def test_assumptions(self, client):
        data = client.get("/assumptions").json()
        assert data["weights"]["renewable_integration"] == 0.35
        assert data["renewable"]["curtailment_rate"] == 0.03

    def test_route_metadata(self, client):
        response = client.get("/routes/rto/region-data/metadata", params={"facet_id": "respondent"})
        assert response.status_code == 200
        data = response.json()
        assert data["route"] == "rto/region-data"
        assert data["facet_id"] == "respondent"

    def test_unknown_route_is_422(self, client):
        assert client.get("/routes/natural-gas/metadata").status_code == 422


# ===========================================================================
# Single-region analyses
# ===========================================================================

class TestRegionEndpoints:

    def test_generation_mix(self, client):
        response = client.get("/generation-mix/tx")
        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["region"] == "TX"
        assert body["meta"]["units"] == "GWh"
        assert body["summary"]["dominant_fuel"] == "NG"
        assert body["summary"]["dominant_share_pct"] == 75.0
        assert {row["fuel_type"] for row in body["data"]} == {"NG", "SUN"}

    def test_capacity(self, client):
        body = client.get("/capacity/TX").json()
        summary = body["summary"]
        assert summary["latest_period"] == "2024-06"
        assert summary["total_summer_capacity_mw"] == 20000.0
        assert summary["total_generation_gwh"] == 8.0
        assert {row["fuel_type"]: row["summer_capacity_mw"] for row in body["data"]} == {
            "SUN": 8000.0,
            "NG": 12500.0,
        }

    def test_profile(self, client):
        body = client.get("/profile/TX").json()
        assert body["summary"]["years"] == ["2023", "2022"]
        assert body["summary"]["metrics"]["net_generation"]["trend"] == "up"
        assert [row["period"] for row in body["data"]] == ["2023", "2022"]

    def test_rto_demand(self, client):
        body = client.get("/rto-demand/TX", params={"days": 1}).json()
        assert body["summary"]["metrics"]["max_hourly_ramp_mw"] == 250
        assert body["summary"]["respondent"] == "ERCO"
        assert len(body["data"]) == 4

    def test_rto_demand_without_data_has_note(self, client):
        body = client.get("/rto-demand/WY").json()
        assert body["summary"]["metrics"] is None
        assert body["summary"]["note"]

    def test_rto_demand_rejects_unknown_series_type(self, client):
        assert client.get("/rto-demand/TX", params={"series_type": "XX"}).status_code == 422

    def test_invalid_region_is_422(self, client):
        assert client.get("/generation-mix/TEXAS").status_code == 422


# ===========================================================================
# Multi-region analyses
# ===========================================================================

class TestMultiRegionEndpoints:

    def test_retail_price_comparison(self, client):
        body = client.get("/retail-prices/compare", params={"regions": "TX,CA,BB"}).json()
        assert [row["region"] for row in body["data"]] == ["CA", "TX"]
        assert body["summary"]["failed_regions"][0]["region"] == "BB"
        assert body["meta"]["region"] == "TX,CA,BB"

    def test_storage_opportunities(self, client):
        response = client.get("/storage-opportunities", params={"regions": "TX,BB"})
        assert response.status_code == 200
        body = response.json()
        assert [row["region"] for row in body["data"]] == ["TX"]
        summary = body["summary"]
        assert summary["regions_analyzed"] == 2
        assert summary["successful_analyses"] == 1
        assert summary["failed_regions"] == [{"region": "BB", "error": "EIA request for BB failed"}]
        assert summary["top_opportunities"][0]["region"] == "TX"

    def test_duplicate_regions_collapse(self, client):
        body = client.get("/storage-opportunities", params={"regions": "TX,tx,TX"}).json()
        assert body["meta"]["region"] == "TX"
        assert body["summary"]["regions_analyzed"] == 1
        assert [row["region"] for row in body["data"]] == ["TX"]

    def test_invalid_region_list_is_422(self, client):
        assert client.get("/storage-opportunities", params={"regions": "TX,123"}).status_code == 422


# ===========================================================================
# Error mapping
# ===========================================================================

class TestErrorMapping:

    @pytest.mark.parametrize(
        "error",
        [requests.exceptions.ConnectionError("down"), ResponseShapeError("no data")],
    )
    def test_upstream_errors_are_502(self, repo, client, error):
        repo.error = error
        response = client.get("/generation-mix/TX")
        assert response.status_code == 502

    def test_missing_api_key_is_401(self, monkeypatch):
        monkeypatch.delenv("EIA_API_KEY", raising=False)
        api.app.dependency_overrides.clear()
        with TestClient(api.app) as c:
            response = c.get("/generation-mix/TX")
        assert response.status_code == 401

    def test_header_key_builds_cached_repository(self, monkeypatch):
        monkeypatch.delenv("EIA_API_KEY", raising=False)
        monkeypatch.setattr(api, "_clients", {})
        first = api.get_repository(x_eia_api_key="header-key")
        second = api.get_repository(x_eia_api_key="header-key")
        assert isinstance(first, ElectricityRepository)
        assert list(api._clients) == ["header-key"]
        assert first._client is second._client

    def test_concurrent_first_requests_share_one_client(self, monkeypatch):
        monkeypatch.setattr(api, "_clients", {})
        created = []

        def slow_client(api_key):
            time.sleep(0.05)
            created.append(api_key)
            return MagicMock()

        monkeypatch.setattr(api, "EIAClient", slow_client)
        with ThreadPoolExecutor(max_workers=8) as pool:
            repos = list(pool.map(lambda _: api.get_repository(x_eia_api_key="shared-key"), range(8)))
        assert created == ["shared-key"]
        assert len({id(r._client) for r in repos}) == 1
