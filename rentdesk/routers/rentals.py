from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..availability import check_availability
from ..database import get_db
from ..lifecycle import (
    ACTIVE,
    cancel_rental,
    complete_rental,
    create_rental,
    delete_rental,
    extend_rental,
    issue_from_reservation,
)
from ..lookups import get_client, get_rental, get_vehicle
from ..models import Client, Rental, User
from ..pricing import billable_units, calculate_price
from ..schedule import active_rentals, slot_for, to_instant
from ..schemas import (
    DebtSettlementOut,
    ExtensionOut,
    QuoteIn,
    QuoteOut,
    RentalCreateIn,
    RentalExtendIn,
    RentalOut,
    RentalsListOut,
)
from ..settlement import settle_rental_debt


router = APIRouter(prefix="/rentals", tags=["rentals"])


def rental_out(r: Rental) -> RentalOut:
    return RentalOut(
        id=str(r.id),
        car_id=str(r.car_id),
        client_id=str(r.client_id),
        contract_number=r.contract_number,
        start_date=r.start_date,
        start_time=r.start_time,
        end_date=r.end_date,
        end_time=r.end_time,
        total_amount=r.total_amount,
        outstanding_amount=int(r.outstanding_amount or 0),
        prepayment=r.prepayment,
        status=r.status,
        payment_status=r.payment_status,
        is_reservation=bool(r.is_reservation),
        booking_type=r.booking_type,
        extensions=[
            ExtensionOut(seq=e.seq, end_date=e.end_date, end_time=e.end_time, amount=e.amount, payment_status=e.payment_status, date=e.created_at)
            for e in r.extensions
        ],
        created_at=r.created_at,
    )


@router.post("", response_model=RentalOut)
def open_rental(payload: RentalCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    vehicle = get_vehicle(db, user.id, payload.car_id)
    client = get_client(db, user.id, payload.client_id)
    r = create_rental(
        db,
        vehicle,
        client,
        to_instant(payload.start_date, payload.start_time),
        to_instant(payload.end_date, payload.end_time),
        booking_type=payload.booking_type,
        payment_choice=payload.payment_status,
        is_reservation=payload.is_reservation,
        prepayment=payload.prepayment,
    )
    return rental_out(r)


@router.get("", response_model=RentalsListOut)
def list_rentals(
    status: Optional[str] = None,
    archive: bool = False,
    reservation: Optional[bool] = None,
    car_id: Optional[str] = None,
    q: Optional[str] = None,
    on: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Rental).filter(Rental.owner_id == user.id)
    if status:
        query = query.filter(Rental.status == status.upper())
    elif archive:
        query = query.filter(Rental.status != ACTIVE)
    else:
        query = query.filter(Rental.status == ACTIVE)
    if reservation is not None:
        query = query.filter(Rental.is_reservation == reservation)
    if car_id:
        query = query.filter(Rental.car_id == get_vehicle(db, user.id, car_id).id)
    if q:
        like = f"%{q}%"
        query = query.join(Client, Client.id == Rental.client_id).filter(
            or_(Rental.contract_number.ilike(like), Client.name.ilike(like), Client.phone.ilike(like))
        )
    if on is not None:
        query = query.filter(Rental.start_date <= on, Rental.end_date >= on)
    rows = query.order_by(Rental.start_date.desc(), Rental.start_time.desc()).all()
    return RentalsListOut(rentals=[rental_out(r) for r in rows])


@router.post("/quote", response_model=QuoteOut)
def quote(payload: QuoteIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    vehicle = get_vehicle(db, user.id, payload.car_id)
    start = to_instant(payload.start_date, payload.start_time)
    end = to_instant(payload.end_date, payload.end_time)
    units = billable_units(start, end, payload.booking_type)
    amount = calculate_price(vehicle.day_rate, vehicle.hour_rate, start, end, payload.booking_type)
    verdict = check_availability(vehicle, start, end, [slot_for(r) for r in active_rentals(db, vehicle.id)])
    return QuoteOut(
        car_id=str(vehicle.id),
        booking_type=payload.booking_type,
        units=units,
        amount=amount,
        available=verdict.free,
        conflict_rental_id=verdict.conflict.record_id if verdict.conflict else None,
    )


@router.get("/{rental_id}", response_model=RentalOut)
def read_rental(rental_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return rental_out(get_rental(db, user.id, rental_id))


@router.post("/{rental_id}/extend", response_model=RentalOut)
def extend(rental_id: str, payload: RentalExtendIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    r = get_rental(db, user.id, rental_id)
    extend_rental(db, r, to_instant(payload.end_date, payload.end_time), payload.payment_status)
    return rental_out(r)


@router.post("/{rental_id}/complete", response_model=RentalOut)
def complete(rental_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return rental_out(complete_rental(db, get_rental(db, user.id, rental_id)))


@router.post("/{rental_id}/cancel", response_model=RentalOut)
def cancel(rental_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return rental_out(cancel_rental(db, get_rental(db, user.id, rental_id)))


@router.post("/{rental_id}/issue", response_model=RentalOut)
def issue(rental_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return rental_out(issue_from_reservation(db, get_rental(db, user.id, rental_id)))


@router.post("/{rental_id}/settle_debt", response_model=DebtSettlementOut)
def settle_debt(rental_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    r = get_rental(db, user.id, rental_id)
    amount = settle_rental_debt(db, r)
    return DebtSettlementOut(rental=rental_out(r), settled_amount=amount)


@router.delete("/{rental_id}")
def remove(rental_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    delete_rental(db, get_rental(db, user.id, rental_id))
    return {"detail": "deleted"}
