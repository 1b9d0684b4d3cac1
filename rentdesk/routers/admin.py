from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schedule import reconcile_owner
from ..schemas import ReconcileOut


router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reconcile", response_model=ReconcileOut)
def reconcile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Recompute every vehicle status of the caller's fleet from its rentals."""
    return ReconcileOut(changed=reconcile_owner(db, user.id))
