"""
GridScout: EIA Open Data API Client
Thin, retrying GET wrapper around the EIA v2 REST API.

Real API base:  https://api.eia.gov/v2/
Docs:           https://www.eia.gov/opendata/documentation.php

How it works
------------
1. Every request carries ``api_key`` as a query parameter.  A free key is
   issued at https://www.eia.gov/opendata/register.php.
2. EIA v2 uses bracketed query keys for structured parameters:

       facets[stateid][]=TX
       data[]=net-summer-capacity-mw
       sort[0][column]=period&sort[0][direction]=desc

   ``encode_params`` turns plain Python dicts/lists into that form.
3. Transient failures (timeouts, connection resets, 5xx) are retried with
   linear backoff; 4xx responses are raised immediately.
"""

from __future__ import annotations

import os
import time
from typing import Any, Optional

import requests
from dotenv import load_dotenv
from loguru import logger

load_dotenv()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_URL = "https://api.eia.gov"

REQUEST_TIMEOUT_SECONDS = float(os.getenv("EIA_API_TIMEOUT", "30"))
MAX_RETRIES = int(os.getenv("EIA_MAX_RETRIES", "3"))
RETRY_BACKOFF_SECONDS = float(os.getenv("EIA_RETRY_BACKOFF", "1.0"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def encode_params(params: Optional[dict[str, Any]]) -> list[tuple[str, Any]]:
    """
    Flatten a structured query into EIA's bracket notation.

    ``facets``  dict[str, list]   → ``facets[<id>][]`` repeated per value
    ``data``    list[str]         → ``data[]`` repeated per column
    ``sort``    list[dict]        → ``sort[<i>][column]`` / ``sort[<i>][direction]``

    Everything else is passed through unchanged.  ``None`` values are dropped.
    """
    encoded: list[tuple[str, Any]] = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if key == "facets":
            for facet_id, options in value.items():
                for option in options:
                    encoded.append((f"facets[{facet_id}][]", option))
        elif key == "data":
            for column in value:
                encoded.append(("data[]", column))
        elif key == "sort":
            for i, order in enumerate(value):
                encoded.append((f"sort[{i}][column]", order["column"]))
                encoded.append((f"sort[{i}][direction]", order.get("direction", "desc")))
        else:
            encoded.append((key, value))
    return encoded


# ---------------------------------------------------------------------------
# Core client class
# ---------------------------------------------------------------------------


class EIAClient:
    """
    GET-only client for the EIA v2 API.

    ``get`` returns the parsed JSON body untouched; shape validation is the
    repository's job.

    Parameters
    ----------
    api_key:
        EIA key.  Falls back to the ``EIA_API_KEY`` environment variable.
    timeout:
        Per-request HTTP timeout in seconds.
    max_retries:
        Attempts on transient network/server errors.
    backoff:
        Seconds to wait per attempt number (linear backoff).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        backoff: float = RETRY_BACKOFF_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key or os.getenv("EIA_API_KEY", "")
        if not self._api_key:
            raise ValueError("EIA API key is required (pass api_key or set EIA_API_KEY).")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff = backoff
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Single GET with retry/backoff. Returns parsed JSON body.
        Raises ``requests.HTTPError`` on a non-2xx final response.
        """
        url = f"{BASE_URL}{path}"
        query = encode_params(params) + [("api_key", self._api_key)]

        last_exc: Exception = RuntimeError("No attempts made")
        for attempt in range(1, self._max_retries + 1):
            try:
                logger.debug("GET {} params={} attempt={}/{}", path, params, attempt, self._max_retries)
                resp = self._session.get(url, params=query, timeout=self._timeout)
                resp.raise_for_status()
                return resp.json()
            except requests.exceptions.Timeout as exc:
                logger.warning("Timeout (attempt {}): {}", attempt, exc)
                last_exc = exc
            except requests.exceptions.ConnectionError as exc:
                logger.warning("Connection error (attempt {}): {}", attempt, exc)
                last_exc = exc
            except requests.exceptions.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else "?"
                if exc.response is not None and 400 <= exc.response.status_code < 500:
                    logger.error("EIA request to {} rejected ({}): {}", path, status, exc)
                    raise
                logger.warning("Server error {} (attempt {}): {}", status, attempt, exc)
                last_exc = exc

            if attempt < self._max_retries:
                wait = self._backoff * attempt
                logger.info("Retrying in {:.1f}s…", wait)
                time.sleep(wait)

        logger.error("EIA request to {} failed after {} attempts", path, self._max_retries)
        raise last_exc


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------


def fetch_route_metadata(route_path: str = "/v2/electricity") -> Any:
    """Fetch the metadata document for an EIA route path."""
    return EIAClient().get(route_path)


# ---------------------------------------------------------------------------
# Smoke test  (python -m eia.client)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import sys

    logger.remove()
    logger.add(sys.stderr, level="DEBUG")

    logger.info("=== GridScout: EIA Client Smoke Test ===")

    body = fetch_route_metadata()
    routes = body.get("response", {}).get("routes", [])
    if not routes:
        logger.error("Smoke test FAILED: no routes listed under /v2/electricity.")
    else:
        logger.success("Smoke test PASSED: {} routes", len(routes))
        for r in routes:
            logger.info("  {:<40} {}", r.get("id", "?"), r.get("name", ""))
