"""Resolves a month of prayer times with provider failover and address lookup."""
from __future__ import annotations

import logging
import math
import string
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from datetime import date
from typing import Any, List, Optional, Tuple

from context import RequestContext
from errors import (
    CalculationError,
    Cancelled,
    InvalidInput,
    LocationNotFound,
    PrayerServiceError,
    ScheduleUnavailable,
)
from geocoding import Coordinate, LocationInfo
from prayer_calculator import AstronomicalPrayerCalculator, CalculationConvention, get_convention
from schedule import PrayerScheduleEntry, ResolvedSchedule, normalize
from settings import ServiceConfig

LOGGER = logging.getLogger(__name__)

# Indonesian administrative prefixes: special district, regency, city.
REGION_PREFIXES = ("d.i. ", "kab. ", "kota ")
POLL_INTERVAL = 0.05


def normalize_location_query(city: str, province: str) -> str:
    """Build the geocoder query ``"city,province"`` without region prefixes."""
    location = f"{city or ''},{province or ''}".lower()
    for prefix in REGION_PREFIXES:
        location = location.replace(prefix, "")
    return location.strip()


def format_display_address(city: str, province: str) -> str:
    # capwords only capitalizes after whitespace: "bangka-belitung" -> "Bangka-belitung".
    parts = []
    for part in (city, province):
        text = (part or "").lower()
        for prefix in REGION_PREFIXES:
            text = text.replace(prefix, "")
        parts.append(text.strip())
    return string.capwords(", ".join(parts))


class PrayerScheduleResolver:
    """Entry points for schedule lookups by coordinate or by Indonesian place name."""

    def __init__(
        self,
        provider: Any,
        locations: Any,
        calculator: Optional[AstronomicalPrayerCalculator] = None,
        config: Optional[ServiceConfig] = None,
    ) -> None:
        config = config or ServiceConfig()
        self._provider = provider
        self._locations = locations
        self._calculator = calculator or AstronomicalPrayerCalculator()
        self.home_country_code = config.home_country_code
        self.coordinate_convention = get_convention(config.coordinate_convention)
        self.location_convention = get_convention(config.location_convention)

    def resolve_by_coordinate(
        self,
        method: str,
        latitude: str,
        longitude: str,
        month: str,
        year: str,
        ctx: Optional[RequestContext] = None,
    ) -> ResolvedSchedule:
        operation = "resolver.resolve_by_coordinate"
        ctx = ctx or RequestContext()
        executor = ThreadPoolExecutor(max_workers=2)
        try:
            lat = _parse_coordinate(latitude, "latitude", 90.0)
            lon = _parse_coordinate(longitude, "longitude", 180.0)
            month_number, year_number = _parse_period(month, year)
            ctx.raise_if_cancelled(operation)

            schedule_future = executor.submit(
                self._resolve_schedules, ctx, method, lat, lon, month_number, year_number, self.coordinate_convention
            )
            address_future = executor.submit(self._lookup_address, ctx, str(latitude).strip(), str(longitude).strip())
            _await(ctx, [schedule_future, address_future], operation)

            schedules = schedule_future.result()
            address, country_code = address_future.result()
        except PrayerServiceError as exc:
            LOGGER.error("%s failed: %s", operation, exc)
            raise
        finally:
            # No worker outlives the call; cancellation has closed their requests first.
            executor.shutdown(wait=True, cancel_futures=True)

        return ResolvedSchedule(schedules=schedules, address=address, country_code=country_code)

    def resolve_by_location(
        self,
        method: str,
        province: str,
        city: str,
        month: str,
        year: str,
        ctx: Optional[RequestContext] = None,
    ) -> ResolvedSchedule:
        operation = "resolver.resolve_by_location"
        ctx = ctx or RequestContext()
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            month_number, year_number = _parse_period(month, year)
            query = normalize_location_query(city, province)
            if not query.strip(","):
                raise InvalidInput("city or province is required")
            ctx.raise_if_cancelled(operation)

            coordinate = _await_result(ctx, executor.submit(self._lookup_coordinate, ctx, query), operation)
            schedules = _await_result(
                ctx,
                executor.submit(
                    self._resolve_schedules,
                    ctx,
                    method,
                    coordinate.latitude,
                    coordinate.longitude,
                    month_number,
                    year_number,
                    self.location_convention,
                ),
                operation,
            )
        except PrayerServiceError as exc:
            LOGGER.error("%s failed: %s", operation, exc)
            raise
        finally:
            # No worker outlives the call; cancellation has closed their requests first.
            executor.shutdown(wait=True, cancel_futures=True)

        return ResolvedSchedule(
            schedules=schedules,
            address=format_display_address(city, province),
            country_code=self.home_country_code,
        )

    # ------------------------------------------------------------------
    def _resolve_schedules(
        self,
        ctx: RequestContext,
        method: str,
        latitude: float,
        longitude: float,
        month: int,
        year: int,
        convention: CalculationConvention,
    ) -> List[PrayerScheduleEntry]:
        ctx.raise_if_cancelled("schedule lookup")
        try:
            records = self._provider.fetch(method, latitude, longitude, month, year, ctx)
            schedules = [normalize(record) for record in records]
        except Cancelled:
            raise
        except Exception:
            # A request torn down by cancellation is not a provider failure.
            ctx.raise_if_cancelled("schedule lookup")
            LOGGER.warning(
                "Remote schedule provider failed for %s, %s; recalculating prayer times locally (convention=%s)",
                latitude,
                longitude,
                convention.name,
                exc_info=True,
            )
        else:
            LOGGER.debug("Resolved %d schedule entries from the remote provider", len(schedules))
            return schedules

        ctx.raise_if_cancelled("schedule calculation")
        try:
            days = self._calculator.calculate(latitude, longitude, date(year, month, 1), convention)
        except CalculationError as exc:
            raise ScheduleUnavailable(f"Remote provider and local calculation both failed: {exc}") from exc
        LOGGER.debug("Resolved %d schedule entries by local calculation", len(days))
        return [normalize(day) for day in days]

    def _lookup_address(self, ctx: RequestContext, latitude: str, longitude: str) -> Tuple[str, str]:
        ctx.raise_if_cancelled("address lookup")
        try:
            location: LocationInfo = self._locations.by_coordinate(latitude, longitude, ctx)
        except Cancelled:
            raise
        except Exception:
            ctx.raise_if_cancelled("address lookup")
            LOGGER.warning("Address lookup failed for %s, %s", latitude, longitude, exc_info=True)
            return f"Location {latitude}, {longitude}", ""
        return location.address, self.home_country_code

    def _lookup_coordinate(self, ctx: RequestContext, query: str) -> Coordinate:
        ctx.raise_if_cancelled("coordinate lookup")
        try:
            return self._locations.by_name(query, ctx)
        except (Cancelled, LocationNotFound):
            raise
        except Exception as exc:
            raise LocationNotFound(f"Geocoding '{query}' failed: {exc}") from exc


def _await(ctx: RequestContext, futures: List[Future], operation: str) -> None:
    """Wait for *futures*, returning early on the first failure and raising on cancellation."""
    pending = set(futures)
    while pending:
        if ctx.cancelled:
            for future in pending:
                future.cancel()
            raise Cancelled(f"{operation} cancelled")
        done, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_EXCEPTION)
        if any(future.exception() is not None for future in done):
            return


def _await_result(ctx: RequestContext, future: Future, operation: str) -> Any:
    _await(ctx, [future], operation)
    return future.result()


def _parse_coordinate(value: Any, name: str, limit: float) -> float:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or abs(number) > limit:
        raise InvalidInput(f"{name} must be within ±{limit:g}, got {value!r}")
    return number


def _parse_period(month: Any, year: Any) -> Tuple[int, int]:
    try:
        month_number = int(str(month).strip())
        year_number = int(str(year).strip())
    except (TypeError, ValueError):
        raise InvalidInput(f"month and year must be integers, got {month!r}/{year!r}") from None
    if not 1 <= month_number <= 12:
        raise InvalidInput(f"month must be within 1..12, got {month_number}")
    # Gregorian calendar only, with room for instants that spill into a neighbouring year.
    if not 1583 <= year_number <= 9998:
        raise InvalidInput(f"year must be within 1583..9998, got {year_number}")
    return month_number, year_number
