"""Canonical schedule shapes and the normalizer that produces them."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Union

from errors import ProviderUnavailable
from prayer_calculator import DailyPrayerTimes

DATE_FORMAT = "%d-%m-%Y"
TIME_FORMAT = "%H:%M (%Z)"
PRAYER_ORDER = ["Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha"]


@dataclass
class PrayerScheduleEntry:
    """One calendar day of prayer times in the canonical string form."""

    gregorian_date: str
    hijri_date: str
    fajr: str
    sunrise: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str

    def timings(self) -> Dict[str, str]:
        return {name: getattr(self, name.lower()) for name in PRAYER_ORDER}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": {
                "gregorian": {"date": self.gregorian_date},
                "hijri": {"date": self.hijri_date},
            },
            "timings": self.timings(),
        }


@dataclass
class ResolvedSchedule:
    schedules: List[PrayerScheduleEntry]
    address: str = ""
    country_code: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedules": [entry.to_dict() for entry in self.schedules],
            "address": self.address,
            "countryCode": self.country_code,
        }


ScheduleSource = Union[Mapping[str, Any], DailyPrayerTimes, PrayerScheduleEntry]


def normalize(source: ScheduleSource) -> PrayerScheduleEntry:
    """Map a remote record or a locally computed day onto :class:`PrayerScheduleEntry`."""
    if isinstance(source, PrayerScheduleEntry):
        return source
    if isinstance(source, DailyPrayerTimes):
        return _from_calculation(source)
    if isinstance(source, Mapping):
        return _from_remote(source)
    raise TypeError(f"Cannot normalize schedule record of type {type(source).__name__}")


def _from_calculation(day: DailyPrayerTimes) -> PrayerScheduleEntry:
    return PrayerScheduleEntry(
        gregorian_date=day.date.strftime(DATE_FORMAT),
        hijri_date="",
        fajr=_format_time(day.fajr),
        sunrise=_format_time(day.sunrise),
        dhuhr=_format_time(day.dhuhr),
        asr=_format_time(day.asr),
        maghrib=_format_time(day.maghrib),
        isha=_format_time(day.isha),
    )


def _from_remote(record: Mapping[str, Any]) -> PrayerScheduleEntry:
    date_info = record.get("date") or {}
    raw_timings = record.get("timings") or {}
    if not isinstance(date_info, Mapping) or not isinstance(raw_timings, Mapping):
        raise ProviderUnavailable("Schedule record has unexpected structure")

    gregorian = _calendar_date(date_info, "gregorian")
    if not gregorian:
        raise ProviderUnavailable("Schedule record is missing the Gregorian date")
    hijri = _calendar_date(date_info, "hijri")

    # The provider capitalizes timing names; accept any casing.
    timings = {str(key).lower(): value for key, value in raw_timings.items()}
    missing = [name for name in PRAYER_ORDER if not timings.get(name.lower())]
    if missing:
        raise ProviderUnavailable(f"Schedule record is missing timings: {', '.join(missing)}")

    return PrayerScheduleEntry(
        gregorian_date=str(gregorian),
        hijri_date=str(hijri),
        fajr=str(timings["fajr"]),
        sunrise=str(timings["sunrise"]),
        dhuhr=str(timings["dhuhr"]),
        asr=str(timings["asr"]),
        maghrib=str(timings["maghrib"]),
        isha=str(timings["isha"]),
    )


def _calendar_date(date_info: Mapping[str, Any], calendar_name: str) -> str:
    details = date_info.get(calendar_name)
    if not isinstance(details, Mapping):
        return ""
    return str(details.get("date") or "")


def _format_time(moment: datetime) -> str:
    return moment.strftime(TIME_FORMAT)
