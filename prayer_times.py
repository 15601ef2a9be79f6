"""Client for the AlAdhan monthly prayer calendar."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from context import RequestContext
from errors import ProviderUnavailable

LOGGER = logging.getLogger(__name__)

ALADHAN_BASE_URL = "https://api.aladhan.com"
ALADHAN_CALENDAR_PATH = "/v1/calendar"


class AlAdhanScheduleProvider:
    """Fetches a month of prayer times by coordinate from the AlAdhan API."""

    def __init__(
        self,
        base_url: str = ALADHAN_BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session

    @property
    def calendar_url(self) -> str:
        return self.base_url + ALADHAN_CALENDAR_PATH

    def fetch(
        self,
        method: str,
        latitude: float,
        longitude: float,
        month: int,
        year: int,
        ctx: Optional[RequestContext] = None,
    ) -> List[Dict[str, Any]]:
        """Return the provider's daily records for *month*/*year* in calendar order."""
        ctx = ctx or RequestContext()
        ctx.raise_if_cancelled("aladhan.fetch")

        params: Dict[str, Any] = {
            "latitude": latitude,
            "longitude": longitude,
            "month": month,
            "year": year,
        }
        # Without a method the provider picks the one nearest the coordinate.
        if method:
            params["method"] = method
        LOGGER.debug("Requesting prayer calendar with params=%s", params)
        # A per-call session lets cancellation close this request's connections only.
        session = self._session or requests.Session()
        try:
            with ctx.on_cancel(session.close):
                response = session.get(self.calendar_url, params=params, timeout=ctx.timeout(self.timeout), stream=True)
                LOGGER.debug("Prayer calendar response status: %s", response.status_code)
                with ctx.on_cancel(response.close):
                    response.raise_for_status()
                    payload = response.json()
        except (requests.RequestException, ValueError, OSError) as exc:
            ctx.raise_if_cancelled("aladhan.fetch")
            raise ProviderUnavailable(f"AlAdhan request failed: {exc}") from exc
        finally:
            if self._session is None:
                session.close()

        if not isinstance(payload, dict):
            raise ProviderUnavailable("Invalid response from AlAdhan API: payload is not an object")
        LOGGER.debug("Prayer calendar response keys: %s", list(payload.keys()))
        if payload.get("code") != 200:
            raise ProviderUnavailable(f"Invalid response from AlAdhan API: {payload.get('status')}")

        data = payload.get("data")
        if not isinstance(data, list) or not data:
            raise ProviderUnavailable("AlAdhan API returned no schedule data")
        LOGGER.debug("Parsed %d schedule entries from AlAdhan", len(data))
        return data
