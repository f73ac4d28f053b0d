from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ...constants import PAYMENT_FREQUENCIES, WEEKDAY_KEYS
from ...utils.helpers import now_iso, today_str
from ...utils.validators import is_iso_date, is_non_negative_number, non_empty


# Domain-level error the controller can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


@dataclass
class ScheduleItem:
    product_id: str
    quantity: float


# weekday key ('mon'..'sun') -> items delivered that day
Schedule = Dict[str, List[ScheduleItem]]


@dataclass
class ScheduleSnapshot:
    date: str  # YYYY-MM-DD the plan takes effect
    schedule: Schedule


@dataclass
class Client:
    client_id: str
    name: str
    driver_id: str
    route_id: str | None = None
    address: str | None = None
    phone: str | None = None
    status: str = "ACTIVE"
    is_dynamic_choice: bool = False
    payment_frequency: str = "Semanal"
    payment_custom_days: int | None = None
    current_balance: float = 0.0
    last_payment_date: str | None = None  # paid through (inclusive)
    delivery_schedule: Schedule = field(default_factory=dict)
    schedule_history: List[ScheduleSnapshot] = field(default_factory=list)
    custom_prices: Dict[str, float] = field(default_factory=dict)
    skipped_dates: set[str] = field(default_factory=set)
    notes: str | None = None
    created_at: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"


# ---- Schedule (de)serialization ---------------------------------------------

def schedule_to_json(schedule: Schedule) -> str:
    return json.dumps(
        {
            day: [{"product_id": i.product_id, "quantity": i.quantity} for i in items]
            for day, items in (schedule or {}).items()
            if items
        },
        ensure_ascii=False,
        sort_keys=True,
    )


def schedule_from_json(text: str | None) -> Schedule:
    if not text:
        return {}
    raw = json.loads(text)
    return {
        day: [ScheduleItem(str(i["product_id"]), float(i["quantity"])) for i in items]
        for day, items in raw.items()
    }


class ClientsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip()

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if not non_empty(value):
            raise DomainError(f"{field_label} cannot be empty.")

    @staticmethod
    def _validate_schedule(schedule: Schedule) -> None:
        for day, items in (schedule or {}).items():
            if day not in WEEKDAY_KEYS:
                raise DomainError(f"Unknown weekday key: {day!r}.")
            for item in items:
                if not is_non_negative_number(item.quantity):
                    raise DomainError("Scheduled quantities must be zero or more.")

    def _hydrate(self, r: sqlite3.Row) -> Client:
        client_id = r["client_id"]
        prices = {
            str(p["product_id"]): float(p["price"])
            for p in self.conn.execute(
                "SELECT product_id, price FROM client_prices WHERE client_id=?",
                (client_id,),
            )
        }
        skipped = {
            str(s["date"])
            for s in self.conn.execute(
                "SELECT date FROM client_skipped_dates WHERE client_id=?",
                (client_id,),
            )
        }
        history = [
            ScheduleSnapshot(str(h["effective_date"]), schedule_from_json(h["schedule"]))
            for h in self.conn.execute(
                "SELECT effective_date, schedule FROM client_schedule_history "
                "WHERE client_id=? ORDER BY effective_date, snapshot_id",
                (client_id,),
            )
        ]
        return Client(
            client_id=str(client_id),
            name=r["name"],
            driver_id=str(r["driver_id"]),
            route_id=r["route_id"],
            address=r["address"],
            phone=r["phone"],
            status=r["status"],
            is_dynamic_choice=bool(r["is_dynamic_choice"]),
            payment_frequency=r["payment_frequency"],
            payment_custom_days=r["payment_custom_days"],
            current_balance=float(r["current_balance"] or 0.0),
            last_payment_date=r["last_payment_date"],
            delivery_schedule=schedule_from_json(r["delivery_schedule"]),
            schedule_history=history,
            custom_prices=prices,
            skipped_dates=skipped,
            notes=r["notes"],
            created_at=r["created_at"],
        )

    # ---- Queries ----------------------------------------------------------

    def list_clients(self, driver_id: str | None = None, active_only: bool = False) -> list[Client]:
        """
        Clients ordered by name. Optionally restricted to one driver and/or
        to active rows (status='ACTIVE').
        """
        sql = "SELECT * FROM clients WHERE 1=1"
        params: list[object] = []
        if driver_id is not None:
            sql += " AND driver_id = ?"
            params.append(driver_id)
        if active_only:
            sql += " AND status = 'ACTIVE'"
        sql += " ORDER BY name COLLATE NOCASE"
        return [self._hydrate(r) for r in self.conn.execute(sql, params).fetchall()]

    def get(self, client_id: str) -> Client | None:
        r = self.conn.execute("SELECT * FROM clients WHERE client_id=?", (client_id,)).fetchone()
        return self._hydrate(r) if r else None

    # ---- Mutations --------------------------------------------------------

    def create(self, client: Client) -> str:
        """
        Insert a client together with its price overrides, skip dates and
        schedule snapshots.
        """
        self._ensure_non_empty(client.client_id, "Client id")
        self._ensure_non_empty(client.name, "Name")
        self._ensure_non_empty(client.driver_id, "Driver")
        if client.payment_frequency not in PAYMENT_FREQUENCIES:
            raise DomainError(f"Unknown payment frequency: {client.payment_frequency!r}.")
        self._validate_schedule(client.delivery_schedule)

        created_at = client.created_at or now_iso()
        try:
            self.conn.execute(
                """
                INSERT INTO clients(
                    client_id, name, address, phone, driver_id, route_id, status,
                    is_dynamic_choice, payment_frequency, payment_custom_days,
                    current_balance, last_payment_date, delivery_schedule, notes, created_at
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    client.client_id,
                    self._normalize_text(client.name),
                    self._normalize_text(client.address),
                    self._normalize_text(client.phone),
                    client.driver_id,
                    client.route_id,
                    client.status,
                    1 if client.is_dynamic_choice else 0,
                    client.payment_frequency,
                    client.payment_custom_days,
                    float(client.current_balance or 0.0),
                    client.last_payment_date,
                    schedule_to_json(client.delivery_schedule),
                    client.notes,
                    created_at,
                ),
            )
            self.conn.executemany(
                "INSERT INTO client_prices(client_id, product_id, price) VALUES (?,?,?)",
                [(client.client_id, pid, float(p)) for pid, p in client.custom_prices.items()],
            )
            self.conn.executemany(
                "INSERT INTO client_skipped_dates(client_id, date) VALUES (?,?)",
                [(client.client_id, d) for d in sorted(client.skipped_dates)],
            )
            self.conn.executemany(
                "INSERT INTO client_schedule_history(client_id, effective_date, schedule, created_at) "
                "VALUES (?,?,?,?)",
                [
                    (client.client_id, s.date, schedule_to_json(s.schedule), created_at)
                    for s in client.schedule_history
                ],
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return client.client_id

    def append_schedule_snapshot(
        self,
        client_id: str,
        schedule: Schedule,
        effective_date: Optional[str] = None,
    ) -> ScheduleSnapshot:
        """
        Replace the current plan and append it to the history as a snapshot
        effective from `effective_date` (today by default). Earlier snapshots
        are never modified.
        """
        self._validate_schedule(schedule)
        effective = effective_date or today_str()
        if not is_iso_date(effective):
            raise DomainError(f"Invalid effective date: {effective!r}.")
        if self.conn.execute("SELECT 1 FROM clients WHERE client_id=?", (client_id,)).fetchone() is None:
            raise DomainError(f"Client {client_id} not found.")

        payload = schedule_to_json(schedule)
        try:
            self.conn.execute(
                "UPDATE clients SET delivery_schedule=? WHERE client_id=?",
                (payload, client_id),
            )
            self.conn.execute(
                "INSERT INTO client_schedule_history(client_id, effective_date, schedule, created_at) "
                "VALUES (?,?,?,?)",
                (client_id, effective, payload, now_iso()),
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return ScheduleSnapshot(effective, schedule_from_json(payload))

    def toggle_skipped_date(self, client_id: str, date: str) -> bool:
        """Flip a skip marker; returns True when the date is now skipped."""
        if not is_iso_date(date):
            raise DomainError(f"Invalid date: {date!r}.")
        exists = self.conn.execute(
            "SELECT 1 FROM client_skipped_dates WHERE client_id=? AND date=?",
            (client_id, date),
        ).fetchone()
        if exists:
            self.conn.execute(
                "DELETE FROM client_skipped_dates WHERE client_id=? AND date=?",
                (client_id, date),
            )
        else:
            self.conn.execute(
                "INSERT INTO client_skipped_dates(client_id, date) VALUES (?,?)",
                (client_id, date),
            )
        self.conn.commit()
        return not exists

    def set_custom_price(self, client_id: str, product_id: str, price: float) -> None:
        if not is_non_negative_number(price):
            raise DomainError("Custom price must be zero or more.")
        self.conn.execute(
            "INSERT INTO client_prices(client_id, product_id, price) VALUES (?,?,?) "
            "ON CONFLICT(client_id, product_id) DO UPDATE SET price=excluded.price",
            (client_id, product_id, float(price)),
        )
        self.conn.commit()

    def clear_custom_price(self, client_id: str, product_id: str) -> None:
        self.conn.execute(
            "DELETE FROM client_prices WHERE client_id=? AND product_id=?",
            (client_id, product_id),
        )
        self.conn.commit()

    def mark_paid_through(self, client_id: str, paid_until: str, balance: float = 0.0) -> None:
        """Denormalized paid-through date and balance; the payments log stays the source of truth."""
        if not is_iso_date(paid_until):
            raise DomainError(f"Invalid paid-through date: {paid_until!r}.")
        cur = self.conn.execute(
            "UPDATE clients SET last_payment_date=?, current_balance=? WHERE client_id=?",
            (paid_until, float(balance), client_id),
        )
        if cur.rowcount == 0:
            self.conn.rollback()
            raise DomainError(f"Client {client_id} not found.")
        self.conn.commit()
