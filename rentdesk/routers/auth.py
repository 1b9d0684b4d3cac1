import hmac

from fastapi import APIRouter, HTTPException, status, Depends
from sqlalchemy.orm import Session

from ..schemas import RequestOtpIn, VerifyOtpIn, TokenOut, OwnerOut, OwnerUpdateIn
from ..auth import create_access_token, get_current_user
from ..database import get_db
from ..models import User
from ..config import settings
from ..utils.ids import public_slug


router = APIRouter(prefix="/auth", tags=["auth"])


def _owner_out(u: User) -> OwnerOut:
    return OwnerOut(id=str(u.id), phone=u.phone, name=u.name, brand_name=u.brand_name, public_slug=u.public_slug)


@router.post("/request_otp")
def request_otp(payload: RequestOtpIn):
    if not payload.phone or not payload.phone.startswith("+"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid phone")
    response = {"detail": "OTP sent"}
    if settings.OTP_MODE == "dev":
        response["dev_code"] = settings.OTP_DEV_CODE
    return response


@router.post("/verify_otp", response_model=TokenOut)
def verify_otp(payload: VerifyOtpIn, db: Session = Depends(get_db)):
    if settings.OTP_MODE != "dev":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OTP login disabled")
    if not hmac.compare_digest(payload.otp or "", settings.OTP_DEV_CODE):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")
    user = db.query(User).filter(User.phone == payload.phone).one_or_none()
    if user is None:
        user = User(
            phone=payload.phone,
            name=payload.name or None,
            brand_name=payload.brand_name or None,
            public_slug=public_slug(),
        )
        db.add(user)
        db.flush()
    token = create_access_token(str(user.id), user.phone)
    return TokenOut(access_token=token)


@router.get("/me", response_model=OwnerOut)
def me(user: User = Depends(get_current_user)):
    return _owner_out(user)


@router.patch("/me", response_model=OwnerOut)
def update_me(payload: OwnerUpdateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.name is not None:
        user.name = payload.name
    if payload.brand_name is not None:
        user.brand_name = payload.brand_name
    db.flush()
    return _owner_out(user)
