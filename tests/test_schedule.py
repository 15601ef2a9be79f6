from datetime import date, datetime

import pytest
import pytz

from errors import ProviderUnavailable
from prayer_calculator import DailyPrayerTimes
from schedule import PrayerScheduleEntry, ResolvedSchedule, normalize


def build_remote_record() -> dict:
    return {
        "timings": {
            "Fajr": "04:35 (WIB)",
            "Sunrise": "05:52 (WIB)",
            "Dhuhr": "12:01 (WIB)",
            "Asr": "15:26 (WIB)",
            "Sunset": "18:08 (WIB)",
            "Maghrib": "18:08 (WIB)",
            "Isha": "19:21 (WIB)",
            "Midnight": "00:01 (WIB)",
        },
        "date": {
            "gregorian": {"date": "15-01-2024", "format": "DD-MM-YYYY"},
            "hijri": {"date": "04-07-1445"},
        },
    }


def build_local_day() -> DailyPrayerTimes:
    tzinfo = pytz.timezone("Asia/Jakarta")

    def at(hour: int, minute: int) -> datetime:
        return tzinfo.localize(datetime(2024, 1, 15, hour, minute))

    return DailyPrayerTimes(
        date=date(2024, 1, 15),
        fajr=at(4, 20),
        sunrise=at(5, 45),
        dhuhr=at(12, 4),
        asr=at(15, 28),
        maghrib=at(18, 19),
        isha=at(19, 33),
    )


def test_remote_record_passes_through():
    entry = normalize(build_remote_record())

    assert entry.gregorian_date == "15-01-2024"
    assert entry.hijri_date == "04-07-1445"
    assert entry.fajr == "04:35 (WIB)"
    assert entry.isha == "19:21 (WIB)"
    assert list(entry.timings()) == ["Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha"]


def test_lowercase_timing_keys_are_accepted():
    record = build_remote_record()
    record["timings"] = {key.lower(): value for key, value in record["timings"].items()}

    assert normalize(record) == normalize(build_remote_record())


def test_local_day_is_formatted():
    entry = normalize(build_local_day())

    assert entry == PrayerScheduleEntry(
        gregorian_date="15-01-2024",
        hijri_date="",
        fajr="04:20 (WIB)",
        sunrise="05:45 (WIB)",
        dhuhr="12:04 (WIB)",
        asr="15:28 (WIB)",
        maghrib="18:19 (WIB)",
        isha="19:33 (WIB)",
    )


@pytest.mark.parametrize("source", [build_remote_record(), build_local_day()])
def test_normalizing_own_output_is_stable(source):
    entry = normalize(source)

    assert normalize(entry.to_dict()) == entry
    assert normalize(entry) is entry


def test_missing_timing_is_rejected():
    record = build_remote_record()
    del record["timings"]["Asr"]

    with pytest.raises(ProviderUnavailable):
        normalize(record)


def test_missing_gregorian_date_is_rejected():
    record = build_remote_record()
    record["date"] = {"hijri": {"date": "04-07-1445"}}

    with pytest.raises(ProviderUnavailable):
        normalize(record)


def test_unknown_source_type_is_rejected():
    with pytest.raises(TypeError):
        normalize(["15-01-2024"])


def test_resolved_schedule_payload_shape():
    entry = normalize(build_remote_record())
    resolved = ResolvedSchedule(schedules=[entry], address="Bandung, Jawa Barat", country_code="id")

    payload = resolved.to_dict()

    assert payload["address"] == "Bandung, Jawa Barat"
    assert payload["countryCode"] == "id"
    assert payload["schedules"][0]["date"]["gregorian"]["date"] == "15-01-2024"
    assert payload["schedules"][0]["timings"]["Maghrib"] == "18:08 (WIB)"
