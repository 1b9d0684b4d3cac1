from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import settings
from ..database import get_db
from ..lifecycle import ACTIVE
from ..models import Rental, User, Vehicle
from ..schedule import occupancy_calendar, today
from ..schemas import CalendarOut


router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("", response_model=CalendarOut)
def calendar(
    start: Optional[date] = None,
    days: Optional[int] = Query(None, ge=1, le=92),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    start = start or today()
    days = days or settings.CALENDAR_DEFAULT_DAYS
    last = start + timedelta(days=days - 1)
    vehicles = db.query(Vehicle).filter(Vehicle.owner_id == user.id).order_by(Vehicle.brand.asc(), Vehicle.model.asc()).all()
    rentals = (
        db.query(Rental)
        .filter(
            Rental.owner_id == user.id,
            Rental.status == ACTIVE,
            Rental.start_date <= last,
            Rental.end_date >= start,
        )
        .order_by(Rental.start_date.asc(), Rental.start_time.asc())
        .all()
    )
    return CalendarOut(start=start, days=days, vehicles=occupancy_calendar(vehicles, rentals, start, days))
