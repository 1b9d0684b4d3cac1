import os
from datetime import date

import pytest


# Ensure sensible defaults for tests before app import
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("DB_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("OTP_MODE", "dev")
os.environ.setdefault("LEDGER_MODE", "local")
os.environ.setdefault("NOTIFY_MODE", "log")
os.environ.setdefault("TIMEZONE", "Europe/Moscow")
# In-memory limiter off: the whole suite shares one client address
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "0")

from rentdesk import ledger  # noqa: E402
from rentdesk.database import SessionLocal, engine  # noqa: E402
from rentdesk.models import Base, Client, User, Vehicle  # noqa: E402
from rentdesk.schedule import to_instant  # noqa: E402


def at(stamp: str):
    """'2030-01-10 10:00' -> aware instant in the business zone."""
    day, hhmm = stamp.split(" ")
    return to_instant(date.fromisoformat(day), hhmm)


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    ledger.set_ledger(None)
    yield
    ledger.set_ledger(None)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def owner(db):
    u = User(phone="+963900000001", name="Owner", brand_name="Acme Rent", public_slug="acme")
    db.add(u)
    db.flush()
    return u


@pytest.fixture
def make_vehicle(db, owner):
    def _make(day_rate: int = 1000, hour_rate: int | None = None, status: str = "AVAILABLE", owner_id=None):
        v = Vehicle(
            owner_id=owner_id or owner.id,
            brand="Toyota",
            model="Camry",
            year=2020,
            plate="A001AA",
            day_rate=day_rate,
            hour_rate=hour_rate,
            status=status,
        )
        db.add(v)
        db.flush()
        return v
    return _make


@pytest.fixture
def make_client(db, owner):
    def _make(name: str = "Ivan Petrov", phone: str | None = "+79990000001", owner_id=None):
        c = Client(owner_id=owner_id or owner.id, name=name, phone=phone, debt=0)
        db.add(c)
        db.flush()
        return c
    return _make
