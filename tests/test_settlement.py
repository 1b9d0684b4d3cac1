import pytest

from rentdesk.errors import StateError
from rentdesk.lifecycle import create_rental, extend_rental
from rentdesk.models import Fine, Transaction
from rentdesk.settlement import pay_fine, settle_rental_debt

from .conftest import at


def test_settle_clears_rental_and_client_debt(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = create_rental(db, car, cl, at("2030-01-10 10:00"), at("2030-01-11 10:00"), booking_type="DAILY", payment_choice="DEBT")
    extend_rental(db, r, at("2030-01-12 10:00"), "DEBT")
    assert cl.debt == 2000
    assert settle_rental_debt(db, r) == 2000
    assert r.payment_status == "PAID"
    assert r.outstanding_amount == 0
    assert cl.debt == 0
    tx = db.query(Transaction).one()
    assert (tx.amount, tx.category) == (2000, "debt_settlement")
    with pytest.raises(StateError):
        settle_rental_debt(db, r)


def test_client_debt_never_goes_negative(db, make_vehicle, make_client):
    car, cl = make_vehicle(day_rate=1000), make_client()
    r = create_rental(db, car, cl, at("2030-01-10 10:00"), at("2030-01-11 10:00"), booking_type="DAILY", payment_choice="DEBT")
    cl.debt = 300
    settle_rental_debt(db, r)
    assert cl.debt == 0


def test_fine_payment_is_recorded_once(db, owner, make_client):
    cl = make_client()
    fine = Fine(owner_id=owner.id, client_id=cl.id, amount=700, description="Speeding", source="camera")
    db.add(fine)
    db.flush()
    pay_fine(db, fine)
    assert fine.status == "PAID"
    tx = db.query(Transaction).one()
    assert (tx.amount, tx.category) == (700, "fine")
    with pytest.raises(StateError):
        pay_fine(db, fine)
