from sqlalchemy.orm import Session

from .errors import NotFoundError
from .models import BookingRequest, Client, Fine, Rental, Vehicle
from uuid import UUID


def _owned(db: Session, model, owner_id, obj_id, label: str):
    try:
        key = obj_id if isinstance(obj_id, UUID) else UUID(str(obj_id))
    except ValueError:
        raise NotFoundError(f"{label} not found", details={"id": str(obj_id)})
    obj = db.get(model, key)
    if obj is None or obj.owner_id != owner_id:
        raise NotFoundError(f"{label} not found", details={"id": str(obj_id)})
    return obj


def get_vehicle(db: Session, owner_id, vehicle_id) -> Vehicle:
    return _owned(db, Vehicle, owner_id, vehicle_id, "Vehicle")


def get_client(db: Session, owner_id, client_id) -> Client:
    return _owned(db, Client, owner_id, client_id, "Client")


def get_rental(db: Session, owner_id, rental_id) -> Rental:
    return _owned(db, Rental, owner_id, rental_id, "Rental")


def get_request(db: Session, owner_id, request_id) -> BookingRequest:
    return _owned(db, BookingRequest, owner_id, request_id, "Booking request")


def get_fine(db: Session, owner_id, fine_id) -> Fine:
    return _owned(db, Fine, owner_id, fine_id, "Fine")
