"""Local prayer time calculation from solar position.

Used as the fallback when the remote schedule provider is unavailable. The
solar coordinates follow the low-precision USNO algorithm, which is accurate
to about a minute between 1950 and 2050.
"""
from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

import pytz
from timezonefinder import TimezoneFinder
from tzlocal import get_localzone_name

from errors import CalculationError

LOGGER = logging.getLogger(__name__)

SUNRISE_SUNSET_ANGLE = 0.833
DHUHR_SAFETY_MINUTES = 2
MAGHRIB_SAFETY_MINUTES = 2

# Approximate local solar hours used to seed the first pass.
_INITIAL_GUESSES = {
    "fajr": 5.0,
    "sunrise": 6.0,
    "dhuhr": 12.0,
    "asr": 13.0,
    "sunset": 18.0,
    "isha": 18.0,
}


class AsrSchool(Enum):
    """Asr jurisprudence; the value is the shadow length factor."""

    SHAFII = 1
    HANAFI = 2


@dataclass(frozen=True)
class CalculationConvention:
    name: str
    fajr_angle: float
    isha_angle: float
    asr_school: AsrSchool = AsrSchool.SHAFII
    isha_interval_minutes: int = 90


MUSLIM_WORLD_LEAGUE = CalculationConvention(name="mwl", fajr_angle=18.0, isha_angle=17.0)
KEMENAG = CalculationConvention(name="kemenag", fajr_angle=20.0, isha_angle=18.0)

CONVENTIONS: Dict[str, CalculationConvention] = {
    convention.name: convention for convention in (MUSLIM_WORLD_LEAGUE, KEMENAG)
}


def get_convention(name: str) -> CalculationConvention:
    try:
        return CONVENTIONS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown calculation convention '{name}'") from None


@dataclass
class DailyPrayerTimes:
    """Locally computed prayer moments for one day, as aware datetimes."""

    date: date
    fajr: datetime
    sunrise: datetime
    dhuhr: datetime
    asr: datetime
    maghrib: datetime
    isha: datetime

    def in_order(self) -> List[datetime]:
        return [self.fajr, self.sunrise, self.dhuhr, self.asr, self.maghrib, self.isha]


@lru_cache(maxsize=1)
def _timezone_finder() -> TimezoneFinder:
    return TimezoneFinder()


def timezone_for_coordinate(latitude: float, longitude: float) -> pytz.BaseTzInfo:
    """Return the civil time zone in force at a coordinate."""
    timezone_name = _timezone_finder().timezone_at(lng=longitude, lat=latitude)
    if not timezone_name:
        LOGGER.debug("No timezone found for %s, %s; using the server timezone", latitude, longitude)
        try:
            timezone_name = get_localzone_name()
        except Exception:  # pragma: no cover - depends on host configuration
            timezone_name = None
    timezone_name = timezone_name or "UTC"
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        LOGGER.warning("Unknown timezone '%s'; falling back to UTC", timezone_name)
        return pytz.utc


class AstronomicalPrayerCalculator:
    """Computes prayer times for a whole month from solar position."""

    def __init__(
        self,
        timezone_lookup: Optional[Callable[[float, float], pytz.BaseTzInfo]] = None,
    ) -> None:
        self._timezone_lookup = timezone_lookup or timezone_for_coordinate

    def calculate(
        self,
        latitude: float,
        longitude: float,
        day: date,
        convention: CalculationConvention,
    ) -> List[DailyPrayerTimes]:
        """Return one entry per day of the month containing *day*.

        A day that cannot be computed fails the whole month, the same way the
        remote provider answers for a month or not at all.
        """
        _, days_in_month = calendar.monthrange(day.year, day.month)
        LOGGER.debug(
            "Calculating prayer times for %s, %s (%04d-%02d, convention=%s)",
            latitude,
            longitude,
            day.year,
            day.month,
            convention.name,
        )
        return [
            self.calculate_day(latitude, longitude, date(day.year, day.month, day_number), convention)
            for day_number in range(1, days_in_month + 1)
        ]

    def calculate_day(
        self,
        latitude: float,
        longitude: float,
        day: date,
        convention: CalculationConvention,
    ) -> DailyPrayerTimes:
        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            raise CalculationError(f"Coordinate out of range: {latitude}, {longitude}")

        tzinfo = self._timezone_lookup(latitude, longitude)
        # Solve on the UTC day that holds local noon, so every instant lands on *day*
        # even where the civil offset runs more than 12 hours ahead of solar time.
        anchor = tzinfo.localize(datetime(day.year, day.month, day.day, 12)).astimezone(pytz.utc).date()
        hours = _solve_day(latitude, longitude, day, convention, anchor)
        midnight_utc = datetime(anchor.year, anchor.month, anchor.day, tzinfo=pytz.utc)

        def to_local(utc_hours: float) -> datetime:
            # Rounded to the minute so the rendered time matches the stored instant.
            instant = midnight_utc + timedelta(minutes=round(utc_hours * 60))
            return instant.astimezone(tzinfo)

        result = DailyPrayerTimes(
            date=day,
            fajr=to_local(hours["fajr"]),
            sunrise=to_local(hours["sunrise"]),
            dhuhr=to_local(hours["dhuhr"]),
            asr=to_local(hours["asr"]),
            maghrib=to_local(hours["maghrib"]),
            isha=to_local(hours["isha"]),
        )
        moments = result.in_order()
        if any(earlier >= later for earlier, later in zip(moments, moments[1:])):
            raise CalculationError(f"Prayer times out of order on {day.isoformat()} at {latitude}, {longitude}")
        return result


def _solve_day(
    latitude: float,
    longitude: float,
    day: date,
    convention: CalculationConvention,
    anchor: date,
) -> Dict[str, float]:
    """Return the prayer moments of *day* as hours after midnight UTC of *anchor*."""
    jd_midnight = _julian_day(anchor)
    longitude_hours = longitude / 15.0

    local_guesses: Dict[str, Optional[float]] = dict(_INITIAL_GUESSES)
    utc_hours: Dict[str, Optional[float]] = {}

    def jd_at(name: str) -> float:
        guess = local_guesses.get(name)
        if guess is None:
            guess = _INITIAL_GUESSES[name]
        return jd_midnight + (guess - longitude_hours) / 24.0

    # Two passes: the second evaluates the sun at each moment found by the first.
    for _ in range(2):
        noon = _solar_noon(longitude, jd_at("dhuhr"))
        utc_hours = {
            "fajr": _sun_angle_time(latitude, longitude, jd_at("fajr"), convention.fajr_angle, rising=True),
            "sunrise": _sun_angle_time(latitude, longitude, jd_at("sunrise"), SUNRISE_SUNSET_ANGLE, rising=True),
            "dhuhr": noon,
            "asr": _asr_time(latitude, longitude, jd_at("asr"), convention.asr_school),
            "sunset": _sun_angle_time(latitude, longitude, jd_at("sunset"), SUNRISE_SUNSET_ANGLE, rising=False),
            "isha": _sun_angle_time(latitude, longitude, jd_at("isha"), convention.isha_angle, rising=False),
        }
        local_guesses = {
            name: (value + longitude_hours if value is not None else None) for name, value in utc_hours.items()
        }

    sunrise = utc_hours["sunrise"]
    sunset = utc_hours["sunset"]
    if sunrise is None or sunset is None:
        raise CalculationError(f"No sunrise or sunset on {day.isoformat()} at {latitude}, {longitude}")
    asr = utc_hours["asr"]
    if asr is None:
        raise CalculationError(f"No Asr time on {day.isoformat()} at {latitude}, {longitude}")

    maghrib = sunset + MAGHRIB_SAFETY_MINUTES / 60.0
    interval = convention.isha_interval_minutes / 60.0
    fajr = utc_hours["fajr"]
    if fajr is None:
        LOGGER.debug("Fajr angle %s not reached on %s; using fixed interval", convention.fajr_angle, day)
        fajr = sunrise - interval
    isha = utc_hours["isha"]
    if isha is None or isha <= maghrib:
        LOGGER.debug("Isha angle %s not reached on %s; using fixed interval", convention.isha_angle, day)
        isha = maghrib + interval

    return {
        "fajr": fajr,
        "sunrise": sunrise,
        "dhuhr": noon + DHUHR_SAFETY_MINUTES / 60.0,
        "asr": asr,
        "maghrib": maghrib,
        "isha": isha,
    }


def _julian_day(day: date) -> float:
    """Julian day at 0h UTC of *day*."""
    year, month = day.year, day.month
    if month <= 2:
        year -= 1
        month += 12
    a = math.floor(year / 100)
    b = 2 - a + math.floor(a / 4)
    return math.floor(365.25 * (year + 4716)) + math.floor(30.6001 * (month + 1)) + day.day + b - 1524.5


def _sun_position(jd: float) -> Tuple[float, float]:
    """Return (declination in degrees, equation of time in hours)."""
    d = jd - 2451545.0
    g = _fix_angle(357.529 + 0.98560028 * d)
    q = _fix_angle(280.459 + 0.98564736 * d)
    ecliptic_longitude = _fix_angle(q + 1.915 * _dsin(g) + 0.020 * _dsin(2 * g))
    obliquity = 23.439 - 0.00000036 * d

    right_ascension = math.degrees(
        math.atan2(_dcos(obliquity) * _dsin(ecliptic_longitude), _dcos(ecliptic_longitude))
    ) / 15.0
    right_ascension = right_ascension % 24.0
    equation_of_time = q / 15.0 - right_ascension
    if equation_of_time > 12.0:
        equation_of_time -= 24.0
    elif equation_of_time < -12.0:
        equation_of_time += 24.0

    declination = math.degrees(math.asin(_dsin(obliquity) * _dsin(ecliptic_longitude)))
    return declination, equation_of_time


def _solar_noon(longitude: float, jd: float) -> float:
    _, equation_of_time = _sun_position(jd)
    return 12.0 - longitude / 15.0 - equation_of_time


def _hour_angle(latitude: float, declination: float, altitude: float) -> Optional[float]:
    """Hours between solar noon and the sun reaching *altitude*, or None if it never does."""
    denominator = _dcos(latitude) * _dcos(declination)
    if abs(denominator) < 1e-12:
        return None
    cos_omega = (_dsin(altitude) - _dsin(latitude) * _dsin(declination)) / denominator
    if cos_omega < -1.0 or cos_omega > 1.0:
        return None
    return math.degrees(math.acos(cos_omega)) / 15.0


def _sun_angle_time(latitude: float, longitude: float, jd: float, angle_below: float, rising: bool) -> Optional[float]:
    declination, _ = _sun_position(jd)
    offset = _hour_angle(latitude, declination, -angle_below)
    if offset is None:
        return None
    noon = _solar_noon(longitude, jd)
    return noon - offset if rising else noon + offset


def _asr_time(latitude: float, longitude: float, jd: float, school: AsrSchool) -> Optional[float]:
    declination, _ = _sun_position(jd)
    zenith_at_noon = abs(latitude - declination)
    if zenith_at_noon >= 90.0:
        return None
    altitude = math.degrees(math.atan(1.0 / (school.value + math.tan(math.radians(zenith_at_noon)))))
    offset = _hour_angle(latitude, declination, altitude)
    if offset is None:
        return None
    return _solar_noon(longitude, jd) + offset


def _fix_angle(degrees: float) -> float:
    return degrees % 360.0


def _dsin(degrees: float) -> float:
    return math.sin(math.radians(degrees))


def _dcos(degrees: float) -> float:
    return math.cos(math.radians(degrees))
