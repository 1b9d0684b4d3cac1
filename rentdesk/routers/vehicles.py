from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import ConflictError
from ..lookups import get_vehicle
from ..models import BookingRequest, Rental, User, Vehicle
from ..schedule import MAINTENANCE, VEHICLE_STATUSES, reconcile_vehicle_status
from ..schemas import VehicleCreateIn, VehicleUpdateIn, VehicleOut


router = APIRouter(prefix="/vehicles", tags=["vehicles"])


def vehicle_out(v: Vehicle) -> VehicleOut:
    return VehicleOut(
        id=str(v.id), brand=v.brand, model=v.model, year=v.year, plate=v.plate, category=v.category,
        day_rate=v.day_rate, hour_rate=v.hour_rate, status=v.status, created_at=v.created_at,
    )


@router.post("", response_model=VehicleOut)
def add_vehicle(payload: VehicleCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = Vehicle(
        owner_id=user.id,
        brand=payload.brand,
        model=payload.model,
        year=payload.year,
        plate=payload.plate,
        category=payload.category,
        day_rate=payload.day_rate,
        hour_rate=payload.hour_rate,
        status="AVAILABLE",
    )
    db.add(v)
    db.flush()
    return vehicle_out(v)


@router.get("", response_model=list[VehicleOut])
def list_vehicles(status: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    q = db.query(Vehicle).filter(Vehicle.owner_id == user.id)
    if status and status.upper() in VEHICLE_STATUSES:
        q = q.filter(Vehicle.status == status.upper())
    return [vehicle_out(v) for v in q.order_by(Vehicle.created_at.desc()).all()]


@router.get("/{vehicle_id}", response_model=VehicleOut)
def read_vehicle(vehicle_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return vehicle_out(get_vehicle(db, user.id, vehicle_id))


@router.patch("/{vehicle_id}", response_model=VehicleOut)
def update_vehicle(vehicle_id: str, payload: VehicleUpdateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_vehicle(db, user.id, vehicle_id)
    if payload.plate is not None:
        v.plate = payload.plate
    if payload.category is not None:
        v.category = payload.category
    if payload.day_rate is not None:
        v.day_rate = payload.day_rate
    if payload.hour_rate is not None:
        v.hour_rate = payload.hour_rate
    if payload.maintenance is True:
        v.status = MAINTENANCE
    elif payload.maintenance is False and v.status == MAINTENANCE:
        # released from repair: status follows the schedule again
        v.status = "AVAILABLE"
        reconcile_vehicle_status(db, v)
    db.flush()
    return vehicle_out(v)


@router.delete("/{vehicle_id}")
def delete_vehicle(vehicle_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    v = get_vehicle(db, user.id, vehicle_id)
    if db.query(Rental.id).filter(Rental.car_id == v.id).first() is not None:
        raise ConflictError("Vehicle has rentals on record", details={"vehicle_id": str(v.id)})
    db.query(BookingRequest).filter(BookingRequest.car_id == v.id).delete(synchronize_session=False)
    db.delete(v)
    return {"detail": "deleted"}
