from datetime import date, timedelta

import pytest
import pytz

from errors import CalculationError
from prayer_calculator import (
    KEMENAG,
    MUSLIM_WORLD_LEAGUE,
    AsrSchool,
    AstronomicalPrayerCalculator,
    CalculationConvention,
    get_convention,
    timezone_for_coordinate,
)


def fixed_zone(name: str) -> AstronomicalPrayerCalculator:
    tzinfo = pytz.timezone(name)
    return AstronomicalPrayerCalculator(timezone_lookup=lambda latitude, longitude: tzinfo)


@pytest.mark.parametrize(
    "latitude, longitude, zone, day",
    [
        (-6.2088, 106.8456, "Asia/Jakarta", date(2024, 1, 15)),
        (21.4225, 39.8262, "Asia/Riyadh", date(2024, 7, 1)),
        (51.5074, -0.1278, "Europe/London", date(2024, 6, 21)),
        (51.5074, -0.1278, "Europe/London", date(2024, 12, 21)),
        (-33.8688, 151.2093, "Australia/Sydney", date(2024, 3, 10)),
        (40.7128, -74.0060, "America/New_York", date(2024, 11, 3)),
        (-13.8333, -171.7667, "Pacific/Apia", date(2024, 1, 15)),
        (1.8721, -157.4278, "Pacific/Kiritimati", date(2024, 1, 15)),
    ],
)
def test_prayer_times_are_in_order(latitude, longitude, zone, day):
    calculator = fixed_zone(zone)

    for convention in (MUSLIM_WORLD_LEAGUE, KEMENAG):
        times = calculator.calculate_day(latitude, longitude, day, convention)
        moments = times.in_order()
        assert moments == sorted(moments)
        assert len(set(moments)) == 6
        assert times.dhuhr.astimezone(pytz.timezone(zone)).date() == day


def test_times_fall_on_the_local_calendar_day_far_east_of_utc():
    calculator = fixed_zone("Pacific/Apia")

    days = calculator.calculate(-13.8333, -171.7667, date(2024, 1, 1), MUSLIM_WORLD_LEAGUE)

    assert days[-1].date == date(2024, 1, 31)
    for times in days:
        assert {moment.date() for moment in times.in_order()} == {times.date}
    assert "12:00" <= days[14].dhuhr.strftime("%H:%M") <= "13:00"


def test_jakarta_times_match_published_schedule():
    calculator = fixed_zone("Asia/Jakarta")

    times = calculator.calculate_day(-6.2088, 106.8456, date(2024, 1, 15), KEMENAG)

    assert times.dhuhr.strftime("%H") == "12"
    assert 0 <= times.dhuhr.minute <= 8
    assert "05:35" <= times.sunrise.strftime("%H:%M") <= "05:55"
    assert "18:10" <= times.maghrib.strftime("%H:%M") <= "18:30"
    assert times.fajr.strftime("%Z") == "WIB"


def test_month_has_one_entry_per_day():
    calculator = fixed_zone("Asia/Jakarta")

    days = calculator.calculate(-6.2088, 106.8456, date(2024, 2, 17), MUSLIM_WORLD_LEAGUE)

    assert len(days) == 29
    assert days[0].date == date(2024, 2, 1)
    assert days[-1].date == date(2024, 2, 29)
    assert all(later.date - earlier.date == timedelta(days=1) for earlier, later in zip(days, days[1:]))


def test_unreached_twilight_uses_fixed_interval():
    calculator = fixed_zone("Europe/London")

    times = calculator.calculate_day(51.5074, -0.1278, date(2024, 6, 21), MUSLIM_WORLD_LEAGUE)

    assert times.isha - times.maghrib == timedelta(minutes=MUSLIM_WORLD_LEAGUE.isha_interval_minutes)
    assert times.sunrise - times.fajr == timedelta(minutes=MUSLIM_WORLD_LEAGUE.isha_interval_minutes)
    assert times.maghrib.strftime("%Z") == "BST"


def test_polar_night_is_a_calculation_error():
    calculator = fixed_zone("Europe/Oslo")

    with pytest.raises(CalculationError):
        calculator.calculate_day(69.6492, 18.9553, date(2024, 12, 21), MUSLIM_WORLD_LEAGUE)


def test_one_failing_day_fails_the_month():
    calculator = fixed_zone("Europe/Oslo")

    with pytest.raises(CalculationError):
        calculator.calculate(69.6492, 18.9553, date(2024, 12, 1), MUSLIM_WORLD_LEAGUE)


def test_out_of_range_coordinate_is_rejected():
    calculator = fixed_zone("UTC")

    with pytest.raises(CalculationError):
        calculator.calculate_day(95.0, 0.0, date(2024, 1, 1), MUSLIM_WORLD_LEAGUE)


def test_hanafi_asr_is_later_than_shafii():
    calculator = fixed_zone("Asia/Karachi")
    hanafi = CalculationConvention(name="karachi-hanafi", fajr_angle=18.0, isha_angle=18.0, asr_school=AsrSchool.HANAFI)
    shafii = CalculationConvention(name="karachi", fajr_angle=18.0, isha_angle=18.0)

    day = date(2024, 4, 10)
    late = calculator.calculate_day(24.8607, 67.0011, day, hanafi)
    early = calculator.calculate_day(24.8607, 67.0011, day, shafii)

    assert late.asr > early.asr
    assert late.dhuhr == early.dhuhr


def test_kemenag_fajr_is_earlier_than_world_league():
    calculator = fixed_zone("Asia/Jakarta")
    day = date(2024, 5, 1)

    kemenag = calculator.calculate_day(-6.2088, 106.8456, day, KEMENAG)
    mwl = calculator.calculate_day(-6.2088, 106.8456, day, MUSLIM_WORLD_LEAGUE)

    assert kemenag.fajr < mwl.fajr
    assert kemenag.isha > mwl.isha


def test_get_convention_by_name():
    assert get_convention("MWL") is MUSLIM_WORLD_LEAGUE
    assert get_convention(" kemenag ") is KEMENAG
    with pytest.raises(ValueError):
        get_convention("unknown")


def test_timezone_lookup_for_jakarta():
    tzinfo = timezone_for_coordinate(-6.2088, 106.8456)

    assert getattr(tzinfo, "zone", None) == "Asia/Jakarta"
