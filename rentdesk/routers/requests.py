from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import ValidationError
from ..lookups import get_client, get_request, get_vehicle
from ..models import BookingRequest, User
from ..schedule import to_instant
from ..schemas import BookingRequestCreateIn, BookingRequestOut, BookingRequestsListOut, RentalOut
from ..triage import PENDING, approve_request, delete_request, reject_request, submit_request
from .rentals import rental_out


router = APIRouter(prefix="/requests", tags=["requests"])


def request_out(b: BookingRequest) -> BookingRequestOut:
    return BookingRequestOut(
        id=str(b.id),
        car_id=str(b.car_id),
        client_id=str(b.client_id) if b.client_id else None,
        client_name=b.client_name,
        client_phone=b.client_phone,
        client_birth_date=b.client_birth_date,
        start_date=b.start_date,
        start_time=b.start_time,
        end_date=b.end_date,
        end_time=b.end_time,
        status=b.status,
        created_at=b.created_at,
    )


@router.get("", response_model=BookingRequestsListOut)
def list_requests(status: Optional[str] = PENDING, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    q = db.query(BookingRequest).filter(BookingRequest.owner_id == user.id)
    if status:
        q = q.filter(BookingRequest.status == status.upper())
    rows = q.order_by(BookingRequest.created_at.desc()).all()
    return BookingRequestsListOut(requests=[request_out(b) for b in rows])


@router.post("", response_model=BookingRequestOut)
def create_request(payload: BookingRequestCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    vehicle = get_vehicle(db, user.id, payload.car_id)
    client = get_client(db, user.id, payload.client_id) if payload.client_id else None
    if client is None and not payload.client_name:
        raise ValidationError("client_id or client_name is required")
    b = submit_request(
        db,
        vehicle,
        to_instant(payload.start_date, payload.start_time),
        to_instant(payload.end_date, payload.end_time),
        client=client,
        name=payload.client_name,
        phone=payload.client_phone,
        birth_date=payload.client_birth_date,
    )
    return request_out(b)


@router.post("/{request_id}/approve", response_model=RentalOut)
def approve(request_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return rental_out(approve_request(db, get_request(db, user.id, request_id)))


@router.post("/{request_id}/reject", response_model=BookingRequestOut)
def reject(request_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return request_out(reject_request(db, get_request(db, user.id, request_id)))


@router.delete("/{request_id}")
def remove(request_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    delete_request(db, get_request(db, user.id, request_id))
    return {"detail": "deleted"}
