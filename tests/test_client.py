"""Tests for eia.client: bracket parameter encoding and retry behaviour."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from eia.client import BASE_URL, EIAClient, encode_params


def _response(status: int = 200, body=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body if body is not None else {"response": {"data": []}}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} error", response=resp)
    else:
        resp.raise_for_status.return_value = None
    return resp


def _client(session: MagicMock, **kwargs) -> EIAClient:
    return EIAClient(api_key="abc123", backoff=0.0, session=session, **kwargs)


class TestEncodeParams:

    def test_bracket_notation(self):
        encoded = encode_params(
            {
                "frequency": "monthly",
                "facets": {"stateid": ["TX", "CA"], "sectorid": ["ALL"]},
                "data": ["price", "sales"],
                "sort": [{"column": "period", "direction": "desc"}],
                "length": 12,
            }
        )
        assert encoded == [
            ("frequency", "monthly"),
            ("facets[stateid][]", "TX"),
            ("facets[stateid][]", "CA"),
            ("facets[sectorid][]", "ALL"),
            ("data[]", "price"),
            ("data[]", "sales"),
            ("sort[0][column]", "period"),
            ("sort[0][direction]", "desc"),
            ("length", 12),
        ]

    def test_drops_none_and_handles_empty(self):
        assert encode_params({"start": None}) == []
        assert encode_params(None) == []


class TestEIAClientInit:

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("EIA_API_KEY", raising=False)
        with pytest.raises(ValueError):
            EIAClient()

    def test_key_from_environment(self):
        session = MagicMock()
        session.get.return_value = _response()
        EIAClient(session=session).get("/v2/electricity")
        params = session.get.call_args.kwargs["params"]
        assert ("api_key", "test-eia-key") in params


class TestEIAClientGet:

    def test_success_returns_json_and_adds_key(self):
        session = MagicMock()
        session.get.return_value = _response(body={"response": {"data": [{"period": "2024"}]}})
        body = _client(session).get("/v2/electricity/retail-sales/data", {"data": ["price"]})

        assert body == {"response": {"data": [{"period": "2024"}]}}
        args, kwargs = session.get.call_args
        assert args[0] == f"{BASE_URL}/v2/electricity/retail-sales/data"
        assert kwargs["params"] == [("data[]", "price"), ("api_key", "abc123")]

    @patch("eia.client.time.sleep")
    def test_retries_server_errors_then_succeeds(self, sleep):
        session = MagicMock()
        session.get.side_effect = [_response(503), _response(200, {"ok": True})]
        assert _client(session, max_retries=3).get("/v2/electricity") == {"ok": True}
        assert session.get.call_count == 2

    @patch("eia.client.time.sleep")
    def test_retries_timeouts_and_connection_errors(self, sleep):
        session = MagicMock()
        session.get.side_effect = [
            requests.exceptions.Timeout("slow"),
            requests.exceptions.ConnectionError("reset"),
            _response(200, {"ok": True}),
        ]
        assert _client(session, max_retries=3).get("/v2/electricity") == {"ok": True}
        assert session.get.call_count == 3

    @patch("eia.client.time.sleep")
    def test_client_errors_are_not_retried(self, sleep):
        session = MagicMock()
        session.get.return_value = _response(403)
        with pytest.raises(requests.exceptions.HTTPError):
            _client(session, max_retries=3).get("/v2/electricity")
        assert session.get.call_count == 1
        sleep.assert_not_called()

    @patch("eia.client.time.sleep")
    def test_gives_up_after_max_retries(self, sleep):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(requests.exceptions.Timeout):
            _client(session, max_retries=2).get("/v2/electricity")
        assert session.get.call_count == 2
        assert sleep.call_count == 1

    def test_close_closes_session(self):
        session = MagicMock()
        _client(session).close()
        session.close.assert_called_once()
