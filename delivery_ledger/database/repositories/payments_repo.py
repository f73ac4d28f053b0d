from __future__ import annotations

import re
import sqlite3
import uuid
from dataclasses import dataclass
from typing import Optional

from ...constants import PAYMENT_METHODS
from ...utils.helpers import now_iso, today_str
from ...utils.validators import is_iso_date, is_strictly_positive_number, non_empty


class DomainError(Exception):
    pass


@dataclass
class PaymentRecord:
    payment_id: str
    driver_id: str
    client_id: str
    date: str
    amount: float
    method: str
    paid_until: str | None = None
    route_id: str | None = None
    created_at: str = ""  # precise ordering key used by settlements


def new_payment_id(created_at: str) -> str:
    """Timestamp-prefixed id; the random tail keeps same-instant writes apart."""
    return f"pay-{re.sub(r'[^0-9]', '', created_at)}-{uuid.uuid4().hex[:6]}"


class PaymentsRepo:
    """
    Collections made by drivers (rows in payments).

    Rules enforced here (mirrors the CHECK constraints):
      • amount must be strictly positive;
      • method must be one of PAYMENT_METHODS;
      • date / paid_until are ISO dates.

    Payments are an append-mostly log: settlements and debts are recomputed
    from it rather than from client balance fields.
    """

    METHODS: tuple[str, ...] = PAYMENT_METHODS

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # --- soft validations mirroring DB rules -------------------------------

    def _normalize_and_validate(
        self, *, driver_id: str, client_id: str, amount, method: str, date: str, paid_until: Optional[str]
    ) -> tuple[float, str]:
        if not non_empty(driver_id):
            raise DomainError("Driver is required.")
        if not non_empty(client_id):
            raise DomainError("Client is required.")
        if amount is None:
            raise DomainError("Amount is required.")
        if not is_strictly_positive_number(amount):
            raise DomainError("Payment amount must be a positive number.")
        method = (method or "").strip()
        if method not in self.METHODS:
            raise DomainError(f"Unsupported payment method: {method or '(empty)'}")
        if not is_iso_date(date):
            raise DomainError(f"Invalid payment date: {date!r}.")
        if paid_until is not None and not is_iso_date(paid_until):
            raise DomainError(f"Invalid paid-until date: {paid_until!r}.")
        return float(amount), method

    @staticmethod
    def _record(r: sqlite3.Row) -> PaymentRecord:
        return PaymentRecord(
            payment_id=str(r["payment_id"]),
            driver_id=str(r["driver_id"]),
            client_id=str(r["client_id"]),
            date=str(r["date"]),
            amount=float(r["amount"]),
            method=r["method"],
            paid_until=r["paid_until"],
            route_id=r["route_id"],
            created_at=r["created_at"],
        )

    # --- API ---------------------------------------------------------------

    def record_payment(
        self,
        *,
        driver_id: str,
        client_id: str,
        amount: float,
        method: str,
        date: Optional[str] = None,        # 'YYYY-MM-DD' (today if None)
        paid_until: Optional[str] = None,  # date the payment covers up to
        route_id: Optional[str] = None,    # route snapshot at payment time
        created_at: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> str:
        """Inserts a row into payments and returns payment_id."""
        day = date or today_str()
        amount, method = self._normalize_and_validate(
            driver_id=driver_id,
            client_id=client_id,
            amount=amount,
            method=method,
            date=day,
            paid_until=paid_until,
        )
        ts = created_at or now_iso()
        closed = self._closed_through(driver_id)
        if closed is not None and ts <= closed:
            raise DomainError(f"Payment time {ts} falls in a settlement already confirmed for driver {driver_id}.")
        pid = payment_id or new_payment_id(ts)
        self.conn.execute(
            "INSERT INTO payments(payment_id, driver_id, client_id, route_id, date, amount, method, "
            "paid_until, created_at) VALUES (?,?,?,?,?,?,?,?,?)",
            (pid, driver_id, client_id, route_id, day, amount, method, paid_until, ts),
        )
        self.conn.commit()
        return pid

    def _closed_through(self, driver_id: str) -> Optional[str]:
        """Confirmation time of the driver's latest settlement, if any."""
        r = self.conn.execute(
            "SELECT MAX(confirmed_at) FROM settlements WHERE driver_id=? AND status='confirmed'",
            (driver_id,),
        ).fetchone()
        return r[0] if r else None

    def get(self, payment_id: str) -> PaymentRecord | None:
        r = self.conn.execute("SELECT * FROM payments WHERE payment_id=?", (payment_id,)).fetchone()
        return self._record(r) if r else None

    def list_by_driver(self, driver_id: str, date: Optional[str] = None) -> list[PaymentRecord]:
        if date is None:
            rows = self.conn.execute(
                "SELECT * FROM payments WHERE driver_id=? ORDER BY created_at, payment_id",
                (driver_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM payments WHERE driver_id=? AND date=? ORDER BY created_at, payment_id",
                (driver_id, date),
            ).fetchall()
        return [self._record(r) for r in rows]

    def list_by_client(self, client_id: str) -> list[PaymentRecord]:
        rows = self.conn.execute(
            "SELECT * FROM payments WHERE client_id=? ORDER BY created_at, payment_id",
            (client_id,),
        ).fetchall()
        return [self._record(r) for r in rows]
