from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..errors import ConflictError
from ..lookups import get_client
from ..models import Client, Fine, Rental, User
from ..schemas import ClientCreateIn, ClientUpdateIn, ClientOut


router = APIRouter(prefix="/clients", tags=["clients"])


def client_out(c: Client) -> ClientOut:
    return ClientOut(
        id=str(c.id), name=c.name, phone=c.phone, email=c.email, passport=c.passport,
        driver_license=c.driver_license, birth_date=c.birth_date, debt=int(c.debt or 0), created_at=c.created_at,
    )


@router.post("", response_model=ClientOut)
def add_client(payload: ClientCreateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = Client(owner_id=user.id, debt=0, **payload.model_dump())
    db.add(c)
    db.flush()
    return client_out(c)


@router.get("", response_model=list[ClientOut])
def list_clients(
    q: Optional[str] = None,
    debtors: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Client).filter(Client.owner_id == user.id)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Client.name.ilike(like), Client.phone.ilike(like)))
    if debtors:
        query = query.filter(Client.debt > 0)
    return [client_out(c) for c in query.order_by(Client.name.asc()).all()]


@router.get("/{client_id}", response_model=ClientOut)
def read_client(client_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return client_out(get_client(db, user.id, client_id))


@router.patch("/{client_id}", response_model=ClientOut)
def update_client(client_id: str, payload: ClientUpdateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = get_client(db, user.id, client_id)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(c, field, value)
    db.flush()
    return client_out(c)


@router.delete("/{client_id}")
def delete_client(client_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    c = get_client(db, user.id, client_id)
    if db.query(Rental.id).filter(Rental.client_id == c.id).first() is not None:
        raise ConflictError("Client has rentals on record", details={"client_id": str(c.id)})
    if db.query(Fine.id).filter(Fine.client_id == c.id).first() is not None:
        raise ConflictError("Client has fines on record", details={"client_id": str(c.id)})
    db.delete(c)
    return {"detail": "deleted"}
