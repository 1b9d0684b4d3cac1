from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP

from .errors import ValidationError


DAILY = "DAILY"
HOURLY = "HOURLY"
BOOKING_TYPES = (DAILY, HOURLY)

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)


def round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def effective_hour_rate(day_rate: int, hour_rate: int | None) -> int:
    if hour_rate:
        return int(hour_rate)
    return round_half_up(Decimal(int(day_rate)) / 24)


def _ceil_units(elapsed: timedelta, unit: timedelta) -> int:
    whole, rest = divmod(elapsed, unit)
    return whole + 1 if rest else whole


def billable_units(start: datetime, end: datetime, booking_type: str) -> int:
    """Number of started days (DAILY) or hours (HOURLY) between two instants.

    Partial units always count as a full unit.
    """
    elapsed = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    if elapsed <= timedelta(0):
        raise ValidationError("End must be after start", details={"start": start.isoformat(), "end": end.isoformat()})
    if booking_type == DAILY:
        return _ceil_units(elapsed, _DAY)
    if booking_type == HOURLY:
        return _ceil_units(elapsed, _HOUR)
    raise ValidationError(f"Unknown booking type {booking_type!r}", details={"booking_type": booking_type})


def calculate_price(day_rate: int, hour_rate: int | None, start: datetime, end: datetime, booking_type: str) -> int:
    units = billable_units(start, end, booking_type)
    if booking_type == DAILY:
        return round_half_up(units * int(day_rate))
    return round_half_up(units * effective_hour_rate(day_rate, hour_rate))
