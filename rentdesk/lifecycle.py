"""Rental lifecycle: create, extend, complete, cancel, delete, issue.

Every operation works inside the caller's transaction (the request session)
and locks the vehicle row before it reads the schedule, so two writers for
the same vehicle are serialised between check and insert.

State machine per rental: ACTIVE -> COMPLETED | CANCELLED, both terminal.
"""

import logging
from datetime import datetime

from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.orm import Session

from . import ledger
from .availability import check_availability
from .config import settings
from .errors import ConflictError, NotFoundError, StateError, ValidationError
from .models import Client, Rental, RentalExtension, Vehicle
from .pricing import BOOKING_TYPES, calculate_price
from .schedule import (
    RENTED,
    active_rentals,
    mark_booked,
    reconcile_vehicle_status,
    rental_end,
    slot_for,
    split_instant,
    today,
)
from .utils.ids import contract_number
from .utils.notify import notify


logger = logging.getLogger("rentdesk.lifecycle")

RENTAL_EVENTS = Counter(
    "rentdesk_rental_events_total",
    "Rental lifecycle operations",
    ["operation", "result"],
)

ACTIVE = "ACTIVE"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"
PAID = "PAID"
DEBT = "DEBT"
PAYMENT_CHOICES = (PAID, DEBT)


def lock_vehicle(db: Session, vehicle_id) -> Vehicle:
    """Row-lock the vehicle and reload it, so status reflects the latest commit."""
    db.flush()
    stmt = (
        select(Vehicle)
        .where(Vehicle.id == vehicle_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    v = db.execute(stmt).scalars().first()
    if v is None:
        raise NotFoundError("Vehicle not found", details={"id": str(vehicle_id)})
    return v


def _require_choice(payment_choice: str) -> None:
    if payment_choice not in PAYMENT_CHOICES:
        raise ValidationError("payment_choice must be PAID or DEBT", details={"payment_choice": payment_choice})


def _require_active(rental: Rental, operation: str) -> None:
    if rental.status != ACTIVE:
        RENTAL_EVENTS.labels(operation, "invalid_state").inc()
        raise StateError(
            f"Cannot {operation} a {rental.status.lower()} rental",
            details={"rental_id": str(rental.id), "status": rental.status},
        )


def _conflict(operation: str, verdict) -> ConflictError:
    RENTAL_EVENTS.labels(operation, "conflict").inc()
    details = {"reason": verdict.reason}
    if verdict.conflict is not None:
        details["rental_id"] = verdict.conflict.record_id
        details["contract_number"] = verdict.conflict.label
    if verdict.reason == "maintenance":
        return ConflictError("Vehicle is under maintenance", details=details)
    return ConflictError("Vehicle is already booked for this period", details=details)


def _new_contract_number(db: Session, owner_id) -> str:
    for _ in range(5):
        number = contract_number(settings.CONTRACT_PREFIX, today())
        taken = db.query(Rental.id).filter(Rental.owner_id == owner_id, Rental.contract_number == number).first()
        if taken is None:
            return number
    raise ConflictError("Could not allocate a contract number")


def _charge(db: Session, rental: Rental, amount: int, payment_choice: str, category: str, description: str) -> None:
    """Book money for a handed-over rental: income when paid, client debt otherwise."""
    if amount <= 0:
        return
    if payment_choice == PAID:
        ledger.record_income(
            db,
            owner_id=rental.owner_id,
            amount=amount,
            category=category,
            description=description,
            client_id=rental.client_id,
            car_id=rental.car_id,
        )
        return
    client = db.get(Client, rental.client_id)
    if client is not None:
        client.debt = int(client.debt or 0) + amount
    rental.outstanding_amount = int(rental.outstanding_amount or 0) + amount


def create_rental(
    db: Session,
    vehicle: Vehicle,
    client: Client,
    start: datetime,
    end: datetime,
    booking_type: str,
    payment_choice: str,
    is_reservation: bool = False,
    prepayment: int | None = None,
) -> Rental:
    if end <= start:
        raise ValidationError("End must be after start", details={"start": start.isoformat(), "end": end.isoformat()})
    if booking_type not in BOOKING_TYPES:
        raise ValidationError("booking_type must be DAILY or HOURLY", details={"booking_type": booking_type})
    _require_choice(payment_choice)
    if prepayment is not None and prepayment < 0:
        raise ValidationError("prepayment cannot be negative", details={"prepayment": prepayment})
    if client.owner_id != vehicle.owner_id:
        raise NotFoundError("Client not found", details={"id": str(client.id)})

    vehicle = lock_vehicle(db, vehicle.id)
    verdict = check_availability(vehicle, start, end, [slot_for(r) for r in active_rentals(db, vehicle.id)])
    if not verdict.free:
        raise _conflict("create", verdict)

    total = calculate_price(vehicle.day_rate, vehicle.hour_rate, start, end, booking_type)
    payment_status = payment_choice
    if is_reservation and prepayment is not None and prepayment >= total:
        payment_status = PAID

    start_date, start_time = split_instant(start)
    end_date, end_time = split_instant(end)
    rental = Rental(
        owner_id=vehicle.owner_id,
        car_id=vehicle.id,
        client_id=client.id,
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        total_amount=total,
        outstanding_amount=0,
        prepayment=prepayment if is_reservation else None,
        status=ACTIVE,
        payment_status=payment_status,
        is_reservation=bool(is_reservation),
        booking_type=booking_type,
        contract_number=_new_contract_number(db, vehicle.owner_id),
    )
    db.add(rental)
    db.flush()

    mark_booked(vehicle, is_reservation)
    if not is_reservation:
        _charge(db, rental, total, payment_status, ledger.CATEGORY_RENTAL, f"Payment for contract {rental.contract_number}")
    db.flush()

    RENTAL_EVENTS.labels("create", "ok").inc()
    logger.info("rental %s created for vehicle %s total=%s status=%s", rental.contract_number, vehicle.id, total, payment_status)
    notify("rental.created", {"rental_id": str(rental.id), "vehicle_id": str(vehicle.id), "reservation": rental.is_reservation})
    return rental


def extend_rental(db: Session, rental: Rental, new_end: datetime, payment_choice: str) -> RentalExtension:
    _require_active(rental, "extend")
    _require_choice(payment_choice)
    current_end = rental_end(rental)
    if new_end <= current_end:
        raise ValidationError(
            "New end must be after the current end",
            details={"current_end": current_end.isoformat(), "new_end": new_end.isoformat()},
        )

    vehicle = lock_vehicle(db, rental.car_id)
    others = [slot_for(r) for r in active_rentals(db, vehicle.id, exclude_id=rental.id)]
    verdict = check_availability(vehicle, current_end, new_end, others)
    if not verdict.free:
        raise _conflict("extend", verdict)

    added = calculate_price(vehicle.day_rate, vehicle.hour_rate, current_end, new_end, rental.booking_type)
    end_date, end_time = split_instant(new_end)
    ext = RentalExtension(
        seq=len(rental.extensions) + 1,
        end_date=end_date,
        end_time=end_time,
        amount=added,
        payment_status=payment_choice,
    )
    rental.extensions.append(ext)
    rental.end_date = end_date
    rental.end_time = end_time
    rental.total_amount = int(rental.total_amount) + added
    # debt is only cleared by an explicit settlement
    if rental.payment_status == DEBT or payment_choice == DEBT:
        rental.payment_status = DEBT
    if not rental.is_reservation:
        _charge(db, rental, added, payment_choice, ledger.CATEGORY_EXTENSION, f"Extension of contract {rental.contract_number}")
    db.flush()

    RENTAL_EVENTS.labels("extend", "ok").inc()
    logger.info("rental %s extended to %s %s (+%s)", rental.contract_number, end_date, end_time, added)
    notify("rental.extended", {"rental_id": str(rental.id), "amount": added})
    return ext


def complete_rental(db: Session, rental: Rental, at: datetime | None = None) -> Rental:
    _require_active(rental, "complete")
    vehicle = lock_vehicle(db, rental.car_id)
    rental.status = COMPLETED
    db.flush()
    reconcile_vehicle_status(db, vehicle, at)
    RENTAL_EVENTS.labels("complete", "ok").inc()
    notify("rental.completed", {"rental_id": str(rental.id), "vehicle_id": str(vehicle.id)})
    return rental


def cancel_rental(db: Session, rental: Rental, at: datetime | None = None) -> Rental:
    _require_active(rental, "cancel")
    vehicle = lock_vehicle(db, rental.car_id)
    rental.status = CANCELLED
    db.flush()
    reconcile_vehicle_status(db, vehicle, at)
    RENTAL_EVENTS.labels("cancel", "ok").inc()
    notify("rental.cancelled", {"rental_id": str(rental.id), "vehicle_id": str(vehicle.id)})
    return rental


def delete_rental(db: Session, rental: Rental, at: datetime | None = None) -> None:
    was_active = rental.status == ACTIVE
    vehicle = lock_vehicle(db, rental.car_id)
    rental_id = str(rental.id)
    db.delete(rental)
    db.flush()
    if was_active:
        reconcile_vehicle_status(db, vehicle, at)
    RENTAL_EVENTS.labels("delete", "ok").inc()
    notify("rental.deleted", {"rental_id": rental_id, "vehicle_id": str(vehicle.id)})


def cancel_or_delete_rental(db: Session, rental: Rental, *, keep_record: bool = False, at: datetime | None = None):
    if keep_record:
        return cancel_rental(db, rental, at)
    return delete_rental(db, rental, at)


def issue_from_reservation(db: Session, rental: Rental) -> Rental:
    if rental.status != ACTIVE or not rental.is_reservation:
        RENTAL_EVENTS.labels("issue", "invalid_state").inc()
        raise StateError(
            "Only an active reservation can be issued",
            details={"rental_id": str(rental.id), "status": rental.status, "is_reservation": rental.is_reservation},
        )
    vehicle = lock_vehicle(db, rental.car_id)
    rental.is_reservation = False
    vehicle.status = RENTED
    description = f"Payment for contract {rental.contract_number}"
    if rental.payment_status == PAID:
        _charge(db, rental, int(rental.total_amount), PAID, ledger.CATEGORY_RENTAL, description)
    else:
        owed = int(rental.total_amount) - int(rental.prepayment or 0)
        _charge(db, rental, owed, DEBT, ledger.CATEGORY_RENTAL, description)
    db.flush()
    RENTAL_EVENTS.labels("issue", "ok").inc()
    notify("rental.issued", {"rental_id": str(rental.id), "vehicle_id": str(vehicle.id)})
    return rental
