import re

import pytest

from rentdesk.errors import ConflictError, StateError, ValidationError
from rentdesk.lifecycle import (
    cancel_or_delete_rental,
    cancel_rental,
    complete_rental,
    create_rental,
    delete_rental,
    extend_rental,
    issue_from_reservation,
)
from sqlalchemy import update

from rentdesk.models import Rental, RentalExtension, Transaction, Vehicle
from rentdesk.schedule import active_rentals, derive_vehicle_status

from .conftest import at


def _rent(db, vehicle, client, start, end, booking_type="DAILY", payment="PAID", **kw):
    return create_rental(db, vehicle, client, at(start), at(end), booking_type=booking_type, payment_choice=payment, **kw)


def test_create_prices_and_marks_vehicle_rented(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    assert r.total_amount == 2000
    assert r.status == "ACTIVE"
    assert r.payment_status == "PAID"
    assert car.status == "RENTED"
    assert re.fullmatch(r"RC-\d{6}-[0-9A-F]{6}", r.contract_number)
    txs = db.query(Transaction).all()
    assert [(t.type, t.amount, t.category) for t in txs] == [("INCOME", 2000, "rental")]


def test_future_reservation_keeps_a_rented_car_rented(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    _rent(db, car, cl, "2030-01-20 10:00", "2030-01-22 10:00", is_reservation=True)
    assert car.status == "RENTED"
    assert car.status == derive_vehicle_status(car, active_rentals(db, car.id), at("2030-01-11 10:00"))


def test_create_sees_maintenance_committed_elsewhere(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    db.execute(
        update(Vehicle)
        .where(Vehicle.id == car.id)
        .values(status="MAINTENANCE")
        .execution_options(synchronize_session=False)
    )
    assert car.status == "AVAILABLE"
    with pytest.raises(ConflictError) as exc:
        _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    assert exc.value.details["reason"] == "maintenance"
    assert db.query(Rental).count() == 0


def test_overlap_is_refused_with_the_blocking_rental(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    first = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    with pytest.raises(ConflictError) as exc:
        _rent(db, car, cl, "2030-01-11 10:00", "2030-01-13 10:00")
    assert exc.value.details["rental_id"] == str(first.id)
    assert exc.value.details["reason"] == "overlap"
    assert db.query(Rental).count() == 1


def test_back_to_back_rentals_are_allowed(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    _rent(db, car, cl, "2030-01-12 10:00", "2030-01-13 10:00")
    assert db.query(Rental).count() == 2


def test_cancelled_rental_frees_the_slot(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    first = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    cancel_rental(db, first, at=at("2030-01-01 10:00"))
    second = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    assert second.status == "ACTIVE"


def test_maintenance_vehicle_cannot_be_rented(db, make_vehicle, make_client):
    car, cl = make_vehicle(status="MAINTENANCE"), make_client()
    with pytest.raises(ConflictError) as exc:
        _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    assert exc.value.details["reason"] == "maintenance"


def test_invalid_inputs(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    with pytest.raises(ValidationError):
        _rent(db, car, cl, "2030-01-10 10:00", "2030-01-10 10:00")
    with pytest.raises(ValidationError):
        _rent(db, car, cl, "2030-01-10 10:00", "2030-01-11 10:00", payment="LATER")
    with pytest.raises(ValidationError):
        _rent(db, car, cl, "2030-01-10 10:00", "2030-01-11 10:00", booking_type="WEEKLY")


def test_debt_goes_to_client_not_cashbox(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1500), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-11 10:00", payment="DEBT")
    assert r.payment_status == "DEBT"
    assert r.outstanding_amount == 1500
    assert cl.debt == 1500
    assert db.query(Transaction).count() == 0


def test_extension_appends_and_charges_the_added_interval(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    ext = extend_rental(db, r, at("2030-01-13 10:00"), "PAID")
    assert ext.seq == 1
    assert ext.amount == 1000
    assert (str(r.end_date), r.end_time) == ("2030-01-13", "10:00")
    assert r.total_amount == 3000
    ext2 = extend_rental(db, r, at("2030-01-13 12:00"), "PAID")
    assert ext2.seq == 2
    assert ext2.amount == 1000
    assert [e.seq for e in r.extensions] == [1, 2]
    assert sum(t.amount for t in db.query(Transaction).all()) == 4000


def test_hourly_extension_bills_started_hours(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=2400, hour_rate=100), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-10 12:00", booking_type="HOURLY")
    assert r.total_amount == 200
    ext = extend_rental(db, r, at("2030-01-10 13:30"), "PAID")
    assert ext.amount == 200
    assert r.total_amount == 400
    assert (str(r.end_date), r.end_time) == ("2030-01-10", "13:30")
    assert sum(t.amount for t in db.query(Transaction).all()) == 400


def test_extension_must_move_the_end_forward(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    for new_end in ("2030-01-12 10:00", "2030-01-11 10:00"):
        with pytest.raises(ValidationError):
            extend_rental(db, r, at(new_end), "PAID")
    assert r.total_amount == 2000
    assert r.extensions == []


def test_extension_into_next_booking_conflicts(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    nxt = _rent(db, car, cl, "2030-01-13 10:00", "2030-01-14 10:00")
    with pytest.raises(ConflictError) as exc:
        extend_rental(db, r, at("2030-01-13 12:00"), "PAID")
    assert exc.value.details["rental_id"] == str(nxt.id)
    # up to the next start is fine
    extend_rental(db, r, at("2030-01-13 10:00"), "PAID")


def test_debt_is_sticky_across_paid_extensions(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-11 10:00", payment="DEBT")
    extend_rental(db, r, at("2030-01-12 10:00"), "PAID")
    assert r.payment_status == "DEBT"
    assert r.outstanding_amount == 1000
    assert cl.debt == 1000


def test_paid_rental_turns_debt_on_unpaid_extension(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-11 10:00")
    extend_rental(db, r, at("2030-01-12 10:00"), "DEBT")
    assert r.payment_status == "DEBT"
    assert r.outstanding_amount == 1000
    assert cl.debt == 1000


def test_complete_frees_the_vehicle(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    complete_rental(db, r, at=at("2030-01-12 09:00"))
    assert r.status == "COMPLETED"
    assert car.status == "AVAILABLE"
    with pytest.raises(StateError):
        complete_rental(db, r)
    with pytest.raises(StateError):
        extend_rental(db, r, at("2030-01-15 10:00"), "PAID")


def test_complete_keeps_vehicle_rented_for_a_started_handover(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    r1 = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    _rent(db, car, cl, "2030-01-12 10:00", "2030-01-14 10:00")
    complete_rental(db, r1, at=at("2030-01-12 11:00"))
    assert car.status == "RENTED"


def test_complete_leaves_maintenance_alone(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    car.status = "MAINTENANCE"
    complete_rental(db, r, at=at("2030-01-11 10:00"))
    assert car.status == "MAINTENANCE"


def test_reservation_fully_prepaid_is_paid(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00", payment="DEBT", is_reservation=True, prepayment=2000)
    assert r.payment_status == "PAID"
    assert r.prepayment == 2000
    assert car.status == "RESERVED"
    assert cl.debt == 0
    assert db.query(Transaction).count() == 0


def test_issue_paid_reservation_books_income(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00", is_reservation=True)
    issue_from_reservation(db, r)
    assert r.is_reservation is False
    assert car.status == "RENTED"
    assert [t.amount for t in db.query(Transaction).all()] == [2000]
    with pytest.raises(StateError):
        issue_from_reservation(db, r)


def test_issue_partly_prepaid_reservation_charges_the_rest_as_debt(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00", payment="DEBT", is_reservation=True, prepayment=500)
    assert r.payment_status == "DEBT"
    issue_from_reservation(db, r)
    assert cl.debt == 1500
    assert r.outstanding_amount == 1500


def test_delete_active_rental_drops_extensions_and_frees_vehicle(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    r = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    extend_rental(db, r, at("2030-01-13 10:00"), "PAID")
    delete_rental(db, r, at=at("2030-01-11 10:00"))
    assert db.query(Rental).count() == 0
    assert db.query(RentalExtension).count() == 0
    assert car.status == "AVAILABLE"


def test_cancel_or_delete(db, make_vehicle, make_client):
    car, cl = make_vehicle(), make_client()
    kept = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    cancel_or_delete_rental(db, kept, keep_record=True, at=at("2030-01-01 10:00"))
    assert kept.status == "CANCELLED"
    gone = _rent(db, car, cl, "2030-01-10 10:00", "2030-01-12 10:00")
    cancel_or_delete_rental(db, gone, at=at("2030-01-01 10:00"))
    assert db.query(Rental).count() == 1
