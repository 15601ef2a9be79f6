"""Forward and reverse geocoding through OpenStreetMap Nominatim."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from context import RequestContext
from errors import LocationNotFound

LOGGER = logging.getLogger(__name__)

NOMINATIM_BASE_URL = "https://nominatim.openstreetmap.org"


@dataclass
class Coordinate:
    latitude: float
    longitude: float


@dataclass
class LocationInfo:
    address: str
    country_code: str


class NominatimLocationResolver:
    """Turns place names into coordinates and coordinates into display addresses."""

    def __init__(
        self,
        base_url: str = NOMINATIM_BASE_URL,
        user_agent: str = "muslimboard-api/1.0",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._session = session

    def by_coordinate(
        self,
        latitude: str,
        longitude: str,
        ctx: Optional[RequestContext] = None,
    ) -> LocationInfo:
        params = {"format": "json", "lat": latitude, "lon": longitude}
        payload = self._get("/reverse", params, ctx)
        if not isinstance(payload, dict) or payload.get("error"):
            raise LocationNotFound(f"No address for {latitude}, {longitude}")

        address = str(payload.get("display_name") or "").strip()
        if not address:
            raise LocationNotFound(f"No address for {latitude}, {longitude}")
        details = payload.get("address") or {}
        country_code = str(details.get("country_code") or "").lower() if isinstance(details, dict) else ""
        LOGGER.debug("Reverse geocoded %s, %s -> %s (%s)", latitude, longitude, address, country_code)
        return LocationInfo(address=address, country_code=country_code)

    def by_name(self, query: str, ctx: Optional[RequestContext] = None) -> Coordinate:
        params = {"format": "json", "q": query, "limit": 1}
        payload = self._get("/search", params, ctx)
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            raise LocationNotFound(f"No coordinate for '{query}'")

        first = payload[0]
        try:
            coordinate = Coordinate(latitude=float(first["lat"]), longitude=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise LocationNotFound(f"Unusable coordinate for '{query}'") from exc
        LOGGER.debug("Geocoded '%s' -> %s, %s", query, coordinate.latitude, coordinate.longitude)
        return coordinate

    def _get(self, path: str, params: dict, ctx: Optional[RequestContext]) -> Any:
        ctx = ctx or RequestContext()
        ctx.raise_if_cancelled("nominatim" + path)
        LOGGER.debug("Requesting Nominatim %s with params=%s", path, params)
        # Nominatim's usage policy rejects requests without an identifying agent.
        headers = {"User-Agent": self.user_agent}
        session = self._session or requests.Session()
        try:
            with ctx.on_cancel(session.close):
                response = session.get(
                    self.base_url + path,
                    params=params,
                    headers=headers,
                    timeout=ctx.timeout(self.timeout),
                    stream=True,
                )
                LOGGER.debug("Nominatim response status: %s", response.status_code)
                with ctx.on_cancel(response.close):
                    response.raise_for_status()
                    return response.json()
        except (requests.RequestException, ValueError, OSError) as exc:
            ctx.raise_if_cancelled("nominatim" + path)
            raise LocationNotFound(f"Nominatim request to {path} failed: {exc}") from exc
        finally:
            if self._session is None:
                session.close()
