"""Booking requests submitted by clients or guests, pending staff approval.

Pending requests may overlap each other; only approval turns a request into
a rental and is therefore exclusive.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from .availability import check_availability
from .errors import ConflictError, NotFoundError, StateError, ValidationError
from .lifecycle import PAID, create_rental
from .models import BookingRequest, Client, Rental, Vehicle
from .pricing import DAILY
from .schedule import active_rentals, rental_end, rental_start, slot_for, split_instant


logger = logging.getLogger("rentdesk.triage")

PENDING = "PENDING"
APPROVED = "APPROVED"
REJECTED = "REJECTED"


def submit_request(
    db: Session,
    vehicle: Vehicle,
    start: datetime,
    end: datetime,
    *,
    client: Client | None = None,
    name: str | None = None,
    phone: str | None = None,
    birth_date: str | None = None,
) -> BookingRequest:
    if end <= start:
        raise ValidationError("End must be after start", details={"start": start.isoformat(), "end": end.isoformat()})
    contact_name = (name or (client.name if client else "") or "").strip()
    if not contact_name:
        raise ValidationError("Contact name is required")
    verdict = check_availability(vehicle, start, end, [slot_for(r) for r in active_rentals(db, vehicle.id)])
    if not verdict.free:
        details = {"reason": verdict.reason}
        if verdict.conflict is not None:
            details["rental_id"] = verdict.conflict.record_id
        raise ConflictError("Vehicle is not available for this period", details=details)

    start_date, start_time = split_instant(start)
    end_date, end_time = split_instant(end)
    req = BookingRequest(
        owner_id=vehicle.owner_id,
        car_id=vehicle.id,
        client_id=client.id if client else None,
        client_name=contact_name,
        client_phone=(phone or (client.phone if client else None)),
        client_birth_date=(birth_date or (client.birth_date if client else None)),
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        status=PENDING,
    )
    db.add(req)
    db.flush()
    logger.info("booking request %s submitted for vehicle %s", req.id, vehicle.id)
    return req


def _require_pending(req: BookingRequest, operation: str) -> None:
    if req.status != PENDING:
        raise StateError(
            f"Cannot {operation} a {req.status.lower()} request",
            details={"request_id": str(req.id), "status": req.status},
        )


def _resolve_client(db: Session, req: BookingRequest) -> Client:
    if req.client_id is not None:
        client = db.get(Client, req.client_id)
        if client is not None and client.owner_id == req.owner_id:
            return client
    if req.client_phone:
        existing = (
            db.query(Client)
            .filter(Client.owner_id == req.owner_id, Client.phone == req.client_phone)
            .order_by(Client.created_at.asc())
            .first()
        )
        if existing is not None:
            return existing
    client = Client(
        owner_id=req.owner_id,
        name=req.client_name,
        phone=req.client_phone,
        birth_date=req.client_birth_date,
    )
    db.add(client)
    db.flush()
    return client


def approve_request(db: Session, req: BookingRequest) -> Rental:
    """Accept a request as submitted: daily pricing, paid, handed over.

    A ConflictError from rental creation propagates untouched; the caller's
    transaction rolls back and the request stays PENDING.
    """
    _require_pending(req, "approve")
    vehicle = db.get(Vehicle, req.car_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found", details={"id": str(req.car_id)})
    client = _resolve_client(db, req)
    rental = create_rental(
        db,
        vehicle,
        client,
        rental_start(req),
        rental_end(req),
        booking_type=DAILY,
        payment_choice=PAID,
        is_reservation=False,
    )
    req.status = APPROVED
    db.delete(req)
    db.flush()
    logger.info("booking request %s approved as %s", req.id, rental.contract_number)
    return rental


def reject_request(db: Session, req: BookingRequest) -> BookingRequest:
    _require_pending(req, "reject")
    req.status = REJECTED
    db.flush()
    return req


def delete_request(db: Session, req: BookingRequest) -> None:
    db.delete(req)
    db.flush()
