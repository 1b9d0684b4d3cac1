from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import ValidationError
from ..ledger import INCOME, TRANSACTION_TYPES
from ..lookups import get_client, get_vehicle
from ..models import Transaction, User
from ..schemas import TransactionCreateIn, TransactionOut, TransactionsListOut


router = APIRouter(prefix="/cashbox", tags=["cashbox"])


def _tx_out(t: Transaction) -> TransactionOut:
    return TransactionOut(
        id=str(t.id), amount=t.amount, type=t.type, category=t.category, description=t.description,
        client_id=str(t.client_id) if t.client_id else None, car_id=str(t.car_id) if t.car_id else None, date=t.date,
    )


def _balance(db: Session, owner_id) -> int:
    rows = (
        db.query(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.owner_id == owner_id)
        .group_by(Transaction.type)
        .all()
    )
    total = 0
    for tx_type, amount in rows:
        total += int(amount) if tx_type == INCOME else -int(amount)
    return total


@router.get("/transactions", response_model=TransactionsListOut)
def list_transactions(
    type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = db.query(Transaction).filter(Transaction.owner_id == user.id)
    if type:
        q = q.filter(Transaction.type == type.upper())
    if date_from:
        q = q.filter(Transaction.date >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(Transaction.date < datetime.combine(date_to + timedelta(days=1), time.min))
    rows = q.order_by(Transaction.date.desc()).all()
    return TransactionsListOut(transactions=[_tx_out(t) for t in rows], balance=_balance(db, user.id))


@router.post("/transactions", response_model=TransactionOut)
def add_transaction(payload: TransactionCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    tx_type = payload.type.upper()
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError("type must be INCOME, EXPENSE or PAYOUT", details={"type": payload.type})
    client = get_client(db, user.id, payload.client_id) if payload.client_id else None
    vehicle = get_vehicle(db, user.id, payload.car_id) if payload.car_id else None
    t = Transaction(
        owner_id=user.id,
        amount=payload.amount,
        type=tx_type,
        category=payload.category,
        description=payload.description,
        client_id=client.id if client else None,
        car_id=vehicle.id if vehicle else None,
    )
    db.add(t)
    db.flush()
    return _tx_out(t)
