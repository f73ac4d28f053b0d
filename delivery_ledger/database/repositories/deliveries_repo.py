# delivery_ledger/database/repositories/deliveries_repo.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from ...utils.helpers import now_iso, round_money
from ...utils.validators import is_iso_date, is_non_negative_number


class DomainError(Exception):
    pass


DELIVERY_STATUSES: tuple[str, ...] = ("pending", "delivered", "not_delivered")


@dataclass
class DeliveryItem:
    product_id: str
    quantity: float
    unit_price: float = 0.0
    total_price: float = 0.0
    is_extra: bool = False
    is_substitute: bool = False


@dataclass
class DeliveryRecord:
    delivery_id: str
    date: str
    driver_id: str
    client_id: str
    items: List[DeliveryItem] = field(default_factory=list)
    total_value: float = 0.0
    status: str = "pending"
    route_id: str | None = None
    delivered_at: str | None = None
    not_delivered_reason: str | None = None
    created_at: str = ""
    updated_at: str = ""


def items_total(items: List[DeliveryItem]) -> float:
    return round_money(sum(float(i.total_price or 0.0) for i in items))


class DeliveriesRepo:
    """
    Realized and pending deliveries (one per client per date).

    Lifecycle:
      • save(...) inserts or replaces a record and its lines.
      • mark_delivered(...) / mark_not_delivered(...) move a pending record on.
      • Only pending records may have their items replaced (replace_items).
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # --- internals ----------------------------------------------------------

    def _items_for(self, delivery_id: str) -> list[DeliveryItem]:
        rows = self.conn.execute(
            "SELECT product_id, quantity, unit_price, total_price, is_extra, is_substitute "
            "FROM delivery_items WHERE delivery_id=? ORDER BY line_no",
            (delivery_id,),
        ).fetchall()
        return [
            DeliveryItem(
                product_id=str(r["product_id"]),
                quantity=float(r["quantity"]),
                unit_price=float(r["unit_price"] or 0.0),
                total_price=float(r["total_price"] or 0.0),
                is_extra=bool(r["is_extra"]),
                is_substitute=bool(r["is_substitute"]),
            )
            for r in rows
        ]

    def _record(self, r: sqlite3.Row) -> DeliveryRecord:
        return DeliveryRecord(
            delivery_id=str(r["delivery_id"]),
            date=str(r["date"]),
            driver_id=str(r["driver_id"]),
            client_id=str(r["client_id"]),
            items=self._items_for(r["delivery_id"]),
            total_value=float(r["total_value"] or 0.0),
            status=r["status"],
            route_id=r["route_id"],
            delivered_at=r["delivered_at"],
            not_delivered_reason=r["not_delivered_reason"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )

    def _write_items(self, delivery_id: str, items: List[DeliveryItem]) -> None:
        self.conn.execute("DELETE FROM delivery_items WHERE delivery_id=?", (delivery_id,))
        self.conn.executemany(
            "INSERT INTO delivery_items(delivery_id, line_no, product_id, quantity, unit_price, "
            "total_price, is_extra, is_substitute) VALUES (?,?,?,?,?,?,?,?)",
            [
                (
                    delivery_id,
                    n,
                    i.product_id,
                    float(i.quantity),
                    float(i.unit_price),
                    float(i.total_price),
                    1 if i.is_extra else 0,
                    1 if i.is_substitute else 0,
                )
                for n, i in enumerate(items, start=1)
            ],
        )

    # --- queries ------------------------------------------------------------

    def get(self, delivery_id: str) -> DeliveryRecord | None:
        r = self.conn.execute(
            "SELECT * FROM deliveries WHERE delivery_id=?", (delivery_id,)
        ).fetchone()
        return self._record(r) if r else None

    def list_by_driver(
        self, driver_id: str, date_from: Optional[str] = None, date_to: Optional[str] = None
    ) -> list[DeliveryRecord]:
        sql = "SELECT * FROM deliveries WHERE driver_id=?"
        params: list[object] = [driver_id]
        if date_from:
            sql += " AND date >= ?"
            params.append(date_from)
        if date_to:
            sql += " AND date <= ?"
            params.append(date_to)
        sql += " ORDER BY date, delivery_id"
        return [self._record(r) for r in self.conn.execute(sql, params).fetchall()]

    def list_by_client(self, client_id: str) -> list[DeliveryRecord]:
        rows = self.conn.execute(
            "SELECT * FROM deliveries WHERE client_id=? ORDER BY date, delivery_id",
            (client_id,),
        ).fetchall()
        return [self._record(r) for r in rows]

    def list_by_date(self, date: str) -> list[DeliveryRecord]:
        rows = self.conn.execute(
            "SELECT * FROM deliveries WHERE date=? ORDER BY driver_id, delivery_id",
            (date,),
        ).fetchall()
        return [self._record(r) for r in rows]

    # --- mutations ----------------------------------------------------------

    def save(self, record: DeliveryRecord) -> str:
        """Insert or fully replace a delivery and its lines."""
        if record.status not in DELIVERY_STATUSES:
            raise DomainError(f"Unknown delivery status: {record.status!r}.")
        if not is_iso_date(record.date):
            raise DomainError(f"Invalid delivery date: {record.date!r}.")
        for item in record.items:
            if not is_non_negative_number(item.quantity):
                raise DomainError("Delivered quantities must be zero or more.")

        ts = now_iso()
        try:
            self.conn.execute(
                """
                INSERT INTO deliveries(delivery_id, date, driver_id, client_id, route_id, status,
                    total_value, delivered_at, not_delivered_reason, created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?)
                ON CONFLICT(delivery_id) DO UPDATE SET
                    status=excluded.status,
                    total_value=excluded.total_value,
                    route_id=excluded.route_id,
                    delivered_at=excluded.delivered_at,
                    not_delivered_reason=excluded.not_delivered_reason,
                    updated_at=excluded.updated_at
                """,
                (
                    record.delivery_id,
                    record.date,
                    record.driver_id,
                    record.client_id,
                    record.route_id,
                    record.status,
                    float(record.total_value),
                    record.delivered_at,
                    record.not_delivered_reason,
                    record.created_at or ts,
                    record.updated_at or ts,
                ),
            )
            self._write_items(record.delivery_id, record.items)
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return record.delivery_id

    def replace_items(self, delivery_id: str, items: List[DeliveryItem]) -> None:
        """Edit a pending delivery's lines; its total follows the lines."""
        current = self.get(delivery_id)
        if current is None:
            raise DomainError(f"Delivery {delivery_id} not found.")
        if current.status != "pending":
            raise DomainError("Only pending deliveries can be edited.")
        try:
            self._write_items(delivery_id, items)
            self.conn.execute(
                "UPDATE deliveries SET total_value=?, updated_at=? WHERE delivery_id=?",
                (items_total(items), now_iso(), delivery_id),
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

    def mark_delivered(self, delivery_id: str, delivered_at: Optional[str] = None) -> None:
        ts = delivered_at or now_iso()
        cur = self.conn.execute(
            "UPDATE deliveries SET status='delivered', delivered_at=?, not_delivered_reason=NULL, "
            "updated_at=? WHERE delivery_id=? AND status='pending'",
            (ts, now_iso(), delivery_id),
        )
        if cur.rowcount == 0:
            self.conn.rollback()
            raise DomainError(f"Delivery {delivery_id} is not pending.")
        self.conn.commit()

    def mark_not_delivered(self, delivery_id: str, reason: str) -> None:
        cur = self.conn.execute(
            "UPDATE deliveries SET status='not_delivered', not_delivered_reason=?, delivered_at=NULL, "
            "updated_at=? WHERE delivery_id=? AND status='pending'",
            ((reason or "").strip() or None, now_iso(), delivery_id),
        )
        if cur.rowcount == 0:
            self.conn.rollback()
            raise DomainError(f"Delivery {delivery_id} is not pending.")
        self.conn.commit()
