import logging

from sqlalchemy.orm import Session

from . import ledger
from .errors import StateError
from .models import Client, Fine, Rental
from .utils.notify import notify


logger = logging.getLogger("rentdesk.settlement")


def settle_rental_debt(db: Session, rental: Rental) -> int:
    """Clear a rental's debt; returns the amount taken."""
    if rental.payment_status != "DEBT":
        raise StateError("Rental has no debt", details={"rental_id": str(rental.id), "payment_status": rental.payment_status})
    amount = int(rental.outstanding_amount or 0)
    client = db.get(Client, rental.client_id)
    if client is not None and amount:
        client.debt = max(0, int(client.debt or 0) - amount)
    rental.outstanding_amount = 0
    rental.payment_status = "PAID"
    db.flush()
    ledger.record_income(
        db,
        owner_id=rental.owner_id,
        amount=amount,
        category=ledger.CATEGORY_DEBT,
        description=f"Debt settlement for contract {rental.contract_number}",
        client_id=rental.client_id,
        car_id=rental.car_id,
    )
    logger.info("rental %s debt settled (%s)", rental.contract_number, amount)
    notify("rental.debt_settled", {"rental_id": str(rental.id), "amount": amount})
    return amount


def pay_fine(db: Session, fine: Fine) -> Fine:
    if fine.status == "PAID":
        raise StateError("Fine already paid", details={"fine_id": str(fine.id)})
    fine.status = "PAID"
    db.flush()
    ledger.record_income(
        db,
        owner_id=fine.owner_id,
        amount=int(fine.amount),
        category=ledger.CATEGORY_FINE,
        description=f"Fine: {fine.description or fine.source or fine.id}",
        client_id=fine.client_id,
        car_id=fine.car_id,
    )
    notify("fine.paid", {"fine_id": str(fine.id), "amount": int(fine.amount)})
    return fine
