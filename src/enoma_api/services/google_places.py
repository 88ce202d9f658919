"""Google Places details proxy.

Profile pages show a business's star rating, latest reviews and opening hours
straight from Google. The browser cannot hold the server key, so it asks
``/api/google-place`` which forwards to the Place Details endpoint.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Optional

from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

import requests

from ..config import load_config

logger = logging.getLogger(__name__)

PLACE_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"

# Keep to the fields the profile page renders
DETAILS_FIELDS = ",".join([
    "rating",
    "reviews",
    "opening_hours",
])


class PlacesError(Exception):
    def __init__(self, status: str) -> None:
        super().__init__(f"Google Places returned {status}")
        self.status = status


class PlacesClient:
    """Google Places API client with session pooling."""

    def __init__(self, api_key: Optional[str], timeout: int = 10) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def _get_details(self, place_id: str, fields: str) -> dict[str, Any]:
        resp = self.session.get(
            PLACE_DETAILS_URL,
            params={"place_id": place_id, "fields": fields, "key": self.api_key},
            timeout=self.timeout,
        )

        if resp.status_code == 429 or resp.status_code >= 500:
            resp.raise_for_status()

        return resp.json()

    def place_details(self, place_id: str, fields: str = DETAILS_FIELDS) -> dict[str, Any]:
        """Return the ``result`` object of a Place Details lookup.

        Raises PlacesError when Google answers with a non-OK status and lets
        ``requests`` errors through once retries are exhausted.
        """
        if not self.api_key:
            raise PlacesError("REQUEST_DENIED")

        data = self._get_details(place_id, fields)
        status = data.get("status")
        if status != "OK":
            logger.warning(
                "Google Places details error for %s: %s %s",
                place_id,
                status,
                data.get("error_message", ""),
            )
            raise PlacesError(status or "UNKNOWN_ERROR")

        return data.get("result") or {}


@lru_cache(maxsize=1)
def get_places_client() -> PlacesClient:
    config = load_config()
    return PlacesClient(config.google_places_api_key, timeout=config.http_timeout)
