from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field


HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class RequestOtpIn(BaseModel):
    phone: str


class VerifyOtpIn(BaseModel):
    phone: str
    otp: str
    name: Optional[str] = None
    brand_name: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str


class OwnerOut(BaseModel):
    id: str
    phone: str
    name: Optional[str] = None
    brand_name: Optional[str] = None
    public_slug: str


class OwnerUpdateIn(BaseModel):
    name: Optional[str] = None
    brand_name: Optional[str] = None


class VehicleCreateIn(BaseModel):
    brand: str
    model: str
    year: Optional[int] = Field(None, ge=1900)
    plate: Optional[str] = None
    category: Optional[str] = None
    day_rate: int = Field(..., ge=0)
    hour_rate: Optional[int] = Field(None, ge=0)


class VehicleUpdateIn(BaseModel):
    plate: Optional[str] = None
    category: Optional[str] = None
    day_rate: Optional[int] = Field(None, ge=0)
    hour_rate: Optional[int] = Field(None, ge=0)
    maintenance: Optional[bool] = Field(None, description="true puts the car into repair, false releases it")


class VehicleOut(BaseModel):
    id: str
    brand: str
    model: str
    year: Optional[int] = None
    plate: Optional[str] = None
    category: Optional[str] = None
    day_rate: int
    hour_rate: Optional[int] = None
    status: str
    created_at: datetime


class ClientCreateIn(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    passport: Optional[str] = None
    driver_license: Optional[str] = None
    birth_date: Optional[str] = None


class ClientUpdateIn(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    passport: Optional[str] = None
    driver_license: Optional[str] = None
    birth_date: Optional[str] = None


class ClientOut(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    passport: Optional[str] = None
    driver_license: Optional[str] = None
    birth_date: Optional[str] = None
    debt: int
    created_at: datetime


class IntervalIn(BaseModel):
    start_date: date
    start_time: str = Field(..., pattern=HHMM)
    end_date: date
    end_time: str = Field(..., pattern=HHMM)


class RentalCreateIn(IntervalIn):
    car_id: str
    client_id: str
    booking_type: str = Field("DAILY", description="DAILY|HOURLY")
    payment_status: str = Field("PAID", description="PAID|DEBT")
    is_reservation: bool = False
    prepayment: Optional[int] = Field(None, ge=0)


class RentalExtendIn(BaseModel):
    end_date: date
    end_time: str = Field(..., pattern=HHMM)
    payment_status: str = Field("PAID", description="PAID|DEBT")


class QuoteIn(IntervalIn):
    car_id: str
    booking_type: str = "DAILY"


class QuoteOut(BaseModel):
    car_id: str
    booking_type: str
    units: int
    amount: int
    available: bool
    conflict_rental_id: Optional[str] = None


class ExtensionOut(BaseModel):
    seq: int
    end_date: date
    end_time: str
    amount: int
    payment_status: str
    date: datetime


class RentalOut(BaseModel):
    id: str
    car_id: str
    client_id: str
    contract_number: str
    start_date: date
    start_time: str
    end_date: date
    end_time: str
    total_amount: int
    outstanding_amount: int
    prepayment: Optional[int] = None
    status: str
    payment_status: str
    is_reservation: bool
    booking_type: str
    extensions: List[ExtensionOut] = []
    created_at: datetime


class RentalsListOut(BaseModel):
    rentals: List[RentalOut]


class BookingRequestCreateIn(IntervalIn):
    car_id: str
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_birth_date: Optional[str] = None


class PublicRequestIn(IntervalIn):
    car_id: str
    client_name: str = Field(..., min_length=1)
    client_phone: str = Field(..., min_length=3)
    client_birth_date: Optional[str] = None


class BookingRequestOut(BaseModel):
    id: str
    car_id: str
    client_id: Optional[str] = None
    client_name: str
    client_phone: Optional[str] = None
    client_birth_date: Optional[str] = None
    start_date: date
    start_time: str
    end_date: date
    end_time: str
    status: str
    created_at: datetime


class BookingRequestsListOut(BaseModel):
    requests: List[BookingRequestOut]


class PublicVehicleOut(BaseModel):
    id: str
    brand: str
    model: str
    year: Optional[int] = None
    category: Optional[str] = None
    day_rate: int
    hour_rate: int
    available_now: bool


class TransactionCreateIn(BaseModel):
    amount: int = Field(..., gt=0)
    type: str = Field(..., description="INCOME|EXPENSE|PAYOUT")
    category: Optional[str] = None
    description: Optional[str] = None
    client_id: Optional[str] = None
    car_id: Optional[str] = None


class TransactionOut(BaseModel):
    id: str
    amount: int
    type: str
    category: Optional[str] = None
    description: Optional[str] = None
    client_id: Optional[str] = None
    car_id: Optional[str] = None
    date: datetime


class TransactionsListOut(BaseModel):
    transactions: List[TransactionOut]
    balance: int


class FineCreateIn(BaseModel):
    client_id: str
    car_id: Optional[str] = None
    amount: int = Field(..., gt=0)
    description: Optional[str] = None
    source: Optional[str] = None


class FineOut(BaseModel):
    id: str
    client_id: str
    car_id: Optional[str] = None
    amount: int
    description: Optional[str] = None
    source: Optional[str] = None
    status: str
    date: datetime


class DebtSettlementOut(BaseModel):
    rental: RentalOut
    settled_amount: int


class CalendarCellOut(BaseModel):
    date: date
    state: str
    contract_number: Optional[str] = None


class CalendarRowOut(BaseModel):
    vehicle_id: str
    label: str
    plate: Optional[str] = None
    days: List[CalendarCellOut]


class CalendarOut(BaseModel):
    start: date
    days: int
    vehicles: List[CalendarRowOut]


class ReconcileOut(BaseModel):
    changed: dict[str, str]
