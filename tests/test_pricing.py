from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from rentdesk.errors import ValidationError
from rentdesk.pricing import DAILY, HOURLY, billable_units, calculate_price, effective_hour_rate, round_half_up

from .conftest import at


def test_full_day_is_one_unit():
    assert calculate_price(1000, None, at("2030-01-10 10:00"), at("2030-01-11 10:00"), DAILY) == 1000


def test_started_day_counts_in_full():
    assert calculate_price(1000, None, at("2030-01-10 10:00"), at("2030-01-11 10:01"), DAILY) == 2000


def test_short_daily_booking_costs_one_day():
    assert billable_units(at("2030-01-10 10:00"), at("2030-01-10 10:05"), DAILY) == 1


def test_hourly_rounds_up_started_hours():
    assert billable_units(at("2030-01-10 10:00"), at("2030-01-10 11:30"), HOURLY) == 2
    assert calculate_price(1000, 100, at("2030-01-10 10:00"), at("2030-01-10 11:30"), HOURLY) == 200


def test_hour_rate_falls_back_to_day_rate():
    # 1000 / 24 = 41.67
    assert effective_hour_rate(1000, None) == 42
    assert effective_hour_rate(1000, 0) == 42
    assert effective_hour_rate(1000, 55) == 55
    assert calculate_price(1000, None, at("2030-01-10 10:00"), at("2030-01-10 13:00"), HOURLY) == 126


def test_half_rounds_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert effective_hour_rate(12, None) == 1


@pytest.mark.parametrize("start,end", [
    ("2030-01-10 10:00", "2030-01-10 10:00"),
    ("2030-01-10 10:00", "2030-01-09 10:00"),
])
def test_empty_or_inverted_interval_is_rejected(start, end):
    with pytest.raises(ValidationError):
        calculate_price(1000, None, at(start), at(end), DAILY)


def test_unknown_booking_type_is_rejected():
    with pytest.raises(ValidationError) as exc:
        billable_units(at("2030-01-10 10:00"), at("2030-01-11 10:00"), "WEEKLY")
    assert exc.value.details["booking_type"] == "WEEKLY"


BERLIN = ZoneInfo("Europe/Berlin")


def test_hours_are_real_hours_across_spring_forward():
    # 02:00 does not exist on 2030-03-31, the stretch is two hours long
    start = datetime(2030, 3, 31, 1, 0, tzinfo=BERLIN)
    end = datetime(2030, 3, 31, 4, 0, tzinfo=BERLIN)
    assert billable_units(start, end, HOURLY) == 2
    assert calculate_price(2400, 100, start, end, HOURLY) == 200


def test_days_are_real_days_across_clock_changes():
    long_day = (datetime(2030, 10, 27, 0, 0, tzinfo=BERLIN), datetime(2030, 10, 28, 0, 0, tzinfo=BERLIN))
    short_day = (datetime(2030, 3, 30, 12, 0, tzinfo=BERLIN), datetime(2030, 3, 31, 12, 0, tzinfo=BERLIN))
    assert billable_units(*long_day, DAILY) == 2
    assert billable_units(*short_day, DAILY) == 1
