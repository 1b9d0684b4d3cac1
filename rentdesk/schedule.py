"""Wall-clock conversion, vehicle status derivation and the occupancy board."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterable
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from .availability import Slot
from .config import settings
from .errors import ValidationError
from .models import Rental, Vehicle


logger = logging.getLogger("rentdesk.schedule")

AVAILABLE = "AVAILABLE"
RENTED = "RENTED"
RESERVED = "RESERVED"
MAINTENANCE = "MAINTENANCE"
VEHICLE_STATUSES = (AVAILABLE, RENTED, MAINTENANCE, RESERVED)


@lru_cache(maxsize=8)
def business_tz(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.TIMEZONE)


def now() -> datetime:
    return datetime.now(timezone.utc).astimezone(business_tz())


def today() -> date:
    return now().date()


def parse_hhmm(value: str) -> time:
    try:
        hh, mm = value.split(":")
        return time(int(hh), int(mm))
    except (ValueError, AttributeError):
        raise ValidationError("Time must be HH:MM", details={"time": value})


def to_instant(day: date, hhmm: str) -> datetime:
    """Wall-clock date + HH:MM in the business zone as a UTC instant.

    Datetimes sharing one zone object compare and subtract as naive wall
    clock values, so everything downstream works in UTC.
    """
    local = datetime.combine(day, parse_hhmm(hhmm), tzinfo=business_tz())
    return local.astimezone(timezone.utc)


def split_instant(moment: datetime) -> tuple[date, str]:
    local = moment.astimezone(business_tz())
    return local.date(), local.strftime("%H:%M")


def rental_start(r) -> datetime:
    return to_instant(r.start_date, r.start_time)


def rental_end(r) -> datetime:
    return to_instant(r.end_date, r.end_time)


def slot_for(record) -> Slot:
    return Slot(
        record_id=str(record.id),
        vehicle_id=str(record.car_id),
        status=record.status,
        start=rental_start(record),
        end=rental_end(record),
        label=getattr(record, "contract_number", None),
    )


def active_rentals(db: Session, vehicle_id, *, exclude_id=None) -> list[Rental]:
    q = db.query(Rental).filter(Rental.car_id == vehicle_id, Rental.status == "ACTIVE")
    if exclude_id is not None:
        q = q.filter(Rental.id != exclude_id)
    return q.order_by(Rental.start_date.asc(), Rental.start_time.asc()).all()


def derive_vehicle_status(vehicle, rentals: Iterable, at: datetime) -> str:
    """Status a vehicle should carry at ``at`` given its rentals.

    Maintenance is set by staff and never derived away. A handed-over rental
    that has started keeps the car RENTED until it is completed, even past
    its planned end.
    """
    if vehicle.status == MAINTENANCE:
        return MAINTENANCE
    reserved = False
    for r in rentals:
        if r.status != "ACTIVE" or str(r.car_id) != str(vehicle.id):
            continue
        start = rental_start(r)
        if start > at:
            continue
        if not r.is_reservation:
            return RENTED
        if at < rental_end(r):
            reserved = True
    return RESERVED if reserved else AVAILABLE


_BOOKING_RANK = {AVAILABLE: 0, RESERVED: 1, RENTED: 2}


def mark_booked(vehicle, is_reservation: bool) -> str:
    """Status flip for a freshly booked rental.

    The flip only ever moves up AVAILABLE -> RESERVED -> RENTED, so a reservation
    added while the car is out leaves it RENTED. MAINTENANCE is left alone.
    """
    target = RESERVED if is_reservation else RENTED
    if vehicle.status == MAINTENANCE:
        return vehicle.status
    if _BOOKING_RANK.get(vehicle.status, 0) < _BOOKING_RANK[target]:
        vehicle.status = target
    return vehicle.status


def reconcile_vehicle_status(db: Session, vehicle: Vehicle, at: datetime | None = None) -> str:
    status = derive_vehicle_status(vehicle, active_rentals(db, vehicle.id), at or now())
    if status != vehicle.status:
        logger.info("vehicle %s status %s -> %s", vehicle.id, vehicle.status, status)
        vehicle.status = status
        db.flush()
    return status


def reconcile_owner(db: Session, owner_id, at: datetime | None = None) -> dict[str, str]:
    """Recompute the status of every vehicle of one tenant; safe to re-run."""
    at = at or now()
    changed: dict[str, str] = {}
    for v in db.query(Vehicle).filter(Vehicle.owner_id == owner_id).all():
        before = v.status
        after = reconcile_vehicle_status(db, v, at)
        if after != before:
            changed[str(v.id)] = after
    return changed


def _occupies(rental, day: date) -> bool:
    # a rental ending at 00:00 frees its end day
    if day < rental.start_date or day > rental.end_date:
        return False
    return day < rental.end_date or rental.end_time != "00:00"


def occupancy_calendar(vehicles: Iterable, rentals: Iterable, start_day: date, days: int) -> list[dict]:
    day_list = [start_day + timedelta(days=i) for i in range(days)]
    by_car: dict[str, list] = {}
    for r in rentals:
        if r.status == "ACTIVE":
            by_car.setdefault(str(r.car_id), []).append(r)
    rows = []
    for v in vehicles:
        cells = []
        for d in day_list:
            if v.status == MAINTENANCE:
                cells.append({"date": d, "state": MAINTENANCE, "contract_number": None})
                continue
            hit = None
            for r in by_car.get(str(v.id), []):
                if _occupies(r, d):
                    hit = r
                    break
            if hit is None:
                cells.append({"date": d, "state": AVAILABLE, "contract_number": None})
            else:
                state = RESERVED if hit.is_reservation else RENTED
                cells.append({"date": d, "state": state, "contract_number": hit.contract_number})
        rows.append({"vehicle_id": str(v.id), "label": f"{v.brand} {v.model}", "plate": v.plate, "days": cells})
    return rows
