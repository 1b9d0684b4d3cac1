import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Date, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def default_uuid():
    return uuid.uuid4()


class User(Base):
    __tablename__ = "rentdesk_users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    phone = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String(128), nullable=True)
    brand_name = Column(String(128), nullable=True)
    public_slug = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Vehicle(Base):
    __tablename__ = "rentdesk_vehicles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_users.id"), nullable=False, index=True)
    brand = Column(String(64), nullable=False)
    model = Column(String(64), nullable=False)
    year = Column(Integer, nullable=True)
    plate = Column(String(32), nullable=True)
    category = Column(String(32), nullable=True)
    day_rate = Column(Integer, nullable=False)
    hour_rate = Column(Integer, nullable=True)  # falls back to day_rate/24
    status = Column(String(16), nullable=False, default="AVAILABLE")  # AVAILABLE|RENTED|MAINTENANCE|RESERVED
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    rentals = relationship("Rental", back_populates="vehicle")


class Client(Base):
    __tablename__ = "rentdesk_clients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_users.id"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    phone = Column(String(32), nullable=True, index=True)
    email = Column(String(128), nullable=True)
    passport = Column(String(64), nullable=True)
    driver_license = Column(String(64), nullable=True)
    birth_date = Column(String(16), nullable=True)  # ISO date
    debt = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    rentals = relationship("Rental", back_populates="client")


class Rental(Base):
    __tablename__ = "rentdesk_rentals"
    __table_args__ = (
        UniqueConstraint("owner_id", "contract_number", name="uq_rentdesk_rental_owner_contract"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_users.id"), nullable=False, index=True)
    car_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_vehicles.id"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_clients.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM wall clock
    end_date = Column(Date, nullable=False)
    end_time = Column(String(5), nullable=False)
    total_amount = Column(Integer, nullable=False)
    outstanding_amount = Column(Integer, nullable=False, default=0)
    prepayment = Column(Integer, nullable=True)
    status = Column(String(16), nullable=False, default="ACTIVE")  # ACTIVE|COMPLETED|CANCELLED
    payment_status = Column(String(8), nullable=False, default="PAID")  # PAID|DEBT
    is_reservation = Column(Boolean, nullable=False, default=False)
    booking_type = Column(String(8), nullable=False, default="DAILY")  # DAILY|HOURLY
    contract_number = Column(String(32), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    vehicle = relationship("Vehicle", back_populates="rentals")
    client = relationship("Client", back_populates="rentals")
    extensions = relationship(
        "RentalExtension",
        back_populates="rental",
        order_by="RentalExtension.seq",
        cascade="all, delete-orphan",
    )


class RentalExtension(Base):
    __tablename__ = "rentdesk_rental_extensions"
    __table_args__ = (
        UniqueConstraint("rental_id", "seq", name="uq_rentdesk_extension_seq"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    rental_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_rentals.id", ondelete="CASCADE"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    end_date = Column(Date, nullable=False)
    end_time = Column(String(5), nullable=False)
    amount = Column(Integer, nullable=False)
    payment_status = Column(String(8), nullable=False)  # PAID|DEBT
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    rental = relationship("Rental", back_populates="extensions")


class BookingRequest(Base):
    __tablename__ = "rentdesk_booking_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_users.id"), nullable=False, index=True)
    car_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_vehicles.id"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_clients.id"), nullable=True)  # null = guest
    client_name = Column(String(128), nullable=False)
    client_phone = Column(String(32), nullable=True)
    client_birth_date = Column(String(16), nullable=True)
    start_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_date = Column(Date, nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(String(16), nullable=False, default="PENDING")  # PENDING|APPROVED|REJECTED
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Transaction(Base):
    __tablename__ = "rentdesk_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String(16), nullable=False)  # INCOME|EXPENSE|PAYOUT
    category = Column(String(64), nullable=True)
    description = Column(String(512), nullable=True)
    client_id = Column(UUID(as_uuid=True), nullable=True)
    car_id = Column(UUID(as_uuid=True), nullable=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow)


class Fine(Base):
    __tablename__ = "rentdesk_fines"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_users.id"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_clients.id"), nullable=False)
    car_id = Column(UUID(as_uuid=True), ForeignKey("rentdesk_vehicles.id"), nullable=True)
    amount = Column(Integer, nullable=False)
    description = Column(String(512), nullable=True)
    source = Column(String(64), nullable=True)
    status = Column(String(8), nullable=False, default="UNPAID")  # PAID|UNPAID
    date = Column(DateTime, nullable=False, default=datetime.utcnow)
