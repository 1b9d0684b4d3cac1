from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..lookups import get_client, get_fine, get_vehicle
from ..models import Fine, User
from ..schemas import FineCreateIn, FineOut
from ..settlement import pay_fine


router = APIRouter(prefix="/fines", tags=["fines"])


def _fine_out(f: Fine) -> FineOut:
    return FineOut(
        id=str(f.id), client_id=str(f.client_id), car_id=str(f.car_id) if f.car_id else None,
        amount=f.amount, description=f.description, source=f.source, status=f.status, date=f.date,
    )


@router.post("", response_model=FineOut)
def add_fine(payload: FineCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    client = get_client(db, user.id, payload.client_id)
    vehicle = get_vehicle(db, user.id, payload.car_id) if payload.car_id else None
    f = Fine(
        owner_id=user.id,
        client_id=client.id,
        car_id=vehicle.id if vehicle else None,
        amount=payload.amount,
        description=payload.description,
        source=payload.source,
        status="UNPAID",
    )
    db.add(f)
    db.flush()
    return _fine_out(f)


@router.get("", response_model=list[FineOut])
def list_fines(
    status: Optional[str] = None,
    client_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = db.query(Fine).filter(Fine.owner_id == user.id)
    if status:
        q = q.filter(Fine.status == status.upper())
    if client_id:
        q = q.filter(Fine.client_id == get_client(db, user.id, client_id).id)
    return [_fine_out(f) for f in q.order_by(Fine.date.desc()).all()]


@router.post("/{fine_id}/pay", response_model=FineOut)
def pay(fine_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _fine_out(pay_fine(db, get_fine(db, user.id, fine_id)))
