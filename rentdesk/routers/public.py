from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundError
from ..lookups import get_vehicle
from ..models import User, Vehicle
from ..pricing import effective_hour_rate
from ..schedule import AVAILABLE, to_instant
from ..schemas import BookingRequestOut, PublicRequestIn, PublicVehicleOut
from ..triage import submit_request
from .requests import request_out


router = APIRouter(prefix="/public", tags=["public"])


def _owner_by_slug(db: Session, slug: str) -> User:
    owner = db.query(User).filter(User.public_slug == slug).one_or_none()
    if owner is None:
        raise NotFoundError("Company not found", details={"slug": slug})
    return owner


@router.get("/{slug}/vehicles", response_model=list[PublicVehicleOut])
def public_vehicles(slug: str, db: Session = Depends(get_db)):
    owner = _owner_by_slug(db, slug)
    rows = db.query(Vehicle).filter(Vehicle.owner_id == owner.id).order_by(Vehicle.brand.asc(), Vehicle.model.asc()).all()
    return [
        PublicVehicleOut(
            id=str(v.id), brand=v.brand, model=v.model, year=v.year, category=v.category,
            day_rate=v.day_rate, hour_rate=effective_hour_rate(v.day_rate, v.hour_rate),
            available_now=v.status == AVAILABLE,
        )
        for v in rows
    ]


@router.post("/{slug}/requests", response_model=BookingRequestOut)
def public_request(slug: str, payload: PublicRequestIn, db: Session = Depends(get_db)):
    owner = _owner_by_slug(db, slug)
    vehicle = get_vehicle(db, owner.id, payload.car_id)
    b = submit_request(
        db,
        vehicle,
        to_instant(payload.start_date, payload.start_time),
        to_instant(payload.end_date, payload.end_time),
        name=payload.client_name,
        phone=payload.client_phone,
        birth_date=payload.client_birth_date,
    )
    return request_out(b)
