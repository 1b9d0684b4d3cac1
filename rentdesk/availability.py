"""Interval conflict detection for a single vehicle.

Intervals are half-open ``[start, end)``: a rental ending at 10:00 and another
starting at 10:00 do not conflict. The check never reads the clock.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

MAINTENANCE = "MAINTENANCE"
NON_BLOCKING_STATUSES = frozenset({"CANCELLED", "REJECTED"})


@dataclass(frozen=True)
class Slot:
    record_id: str
    vehicle_id: str
    status: str
    start: datetime
    end: datetime
    label: Optional[str] = None


@dataclass(frozen=True)
class Availability:
    free: bool
    conflict: Optional[Slot] = None
    reason: Optional[str] = None  # maintenance|overlap

    def __bool__(self) -> bool:
        return self.free


def _utc(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return _utc(a_start) < _utc(b_end) and _utc(a_end) > _utc(b_start)


def check_availability(vehicle, start: datetime, end: datetime, slots: Iterable[Slot]) -> Availability:
    if vehicle.status == MAINTENANCE:
        return Availability(free=False, reason="maintenance")
    vehicle_id = str(vehicle.id)
    for slot in slots:
        if slot.vehicle_id != vehicle_id or slot.status in NON_BLOCKING_STATUSES:
            continue
        if overlaps(start, end, slot.start, slot.end):
            return Availability(free=False, conflict=slot, reason="overlap")
    return Availability(free=True)
