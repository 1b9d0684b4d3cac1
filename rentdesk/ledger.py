"""Cash ledger linkage.

Income is recorded whenever money is taken for a rental, an extension, a
settled debt or a fine. Recording is fire-and-forget: a failure is logged and
counted but never undoes the rental operation that triggered it.
"""

import logging
from datetime import datetime, timezone

import httpx
from prometheus_client import Counter
from sqlalchemy.orm import Session

from .config import settings
from .models import Transaction


logger = logging.getLogger("rentdesk.ledger")

LEDGER_RECORDS = Counter(
    "rentdesk_ledger_records_total",
    "Cash ledger income records",
    ["backend", "result"],
)

INCOME = "INCOME"
EXPENSE = "EXPENSE"
PAYOUT = "PAYOUT"
TRANSACTION_TYPES = (INCOME, EXPENSE, PAYOUT)

CATEGORY_RENTAL = "rental"
CATEGORY_EXTENSION = "rental_extension"
CATEGORY_DEBT = "debt_settlement"
CATEGORY_FINE = "fine"


class LocalLedger:
    """Writes ``Transaction`` rows in the caller's session under a SAVEPOINT."""

    name = "local"

    def record(self, db: Session, *, owner_id, amount: int, category: str, description: str, client_id=None, car_id=None) -> None:
        with db.begin_nested():
            db.add(Transaction(
                owner_id=owner_id,
                amount=int(amount),
                type=INCOME,
                category=category,
                description=description,
                client_id=client_id,
                car_id=car_id,
            ))


class HttpLedger:
    """Posts income to an external cash service."""

    name = "http"

    def __init__(self, base_url: str, secret: str, timeout: float = 5.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.timeout = timeout
        self.transport = transport

    def record(self, db: Session, *, owner_id, amount: int, category: str, description: str, client_id=None, car_id=None) -> None:
        body = {
            "owner_id": str(owner_id),
            "amount": int(amount),
            "type": INCOME,
            "category": category,
            "description": description,
            "client_id": str(client_id) if client_id else None,
            "car_id": str(car_id) if car_id else None,
            "date": datetime.now(timezone.utc).isoformat(),
        }
        headers = {"X-Internal-Secret": self.secret}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as cli:
            r = cli.post(f"{self.base_url}/transactions", json=body, headers=headers)
            r.raise_for_status()


def _default_backend():
    if (settings.LEDGER_MODE or "").lower() == "http":
        return HttpLedger(settings.CASH_LEDGER_URL, settings.CASH_LEDGER_SECRET, settings.CASH_LEDGER_TIMEOUT_SECS)
    return LocalLedger()


_backend = None


def get_ledger():
    global _backend
    if _backend is None:
        _backend = _default_backend()
    return _backend


def set_ledger(backend) -> None:
    """Swap the ledger backend (``None`` restores the configured default)."""
    global _backend
    _backend = backend


def record_income(db: Session, *, owner_id, amount: int, category: str, description: str, client_id=None, car_id=None) -> bool:
    if not amount or amount <= 0:
        return False
    backend = get_ledger()
    name = getattr(backend, "name", type(backend).__name__)
    try:
        backend.record(
            db,
            owner_id=owner_id,
            amount=amount,
            category=category,
            description=description,
            client_id=client_id,
            car_id=car_id,
        )
    except Exception as e:
        LEDGER_RECORDS.labels(name, "failed").inc()
        logger.warning("ledger income not recorded (%s, %s): %s", category, description, e)
        return False
    LEDGER_RECORDS.labels(name, "ok").inc()
    return True
