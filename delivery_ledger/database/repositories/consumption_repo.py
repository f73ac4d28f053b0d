from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from ...utils.helpers import now_iso, parse_iso, round_money


class DomainError(Exception):
    pass


@dataclass
class ConsumptionItem:
    product_id: str
    quantity: float
    price: float = 0.0


@dataclass
class ConsumptionRecord:
    """One realized delivery to a dynamic-choice client. Immutable once written."""
    record_id: str
    client_id: str
    driver_id: str
    date: str
    day_of_week: int  # date.weekday(), Monday = 0
    items: List[ConsumptionItem] = field(default_factory=list)
    total_value: float = 0.0
    created_at: str = ""


def make_consumption_record(
    record_id: str,
    client_id: str,
    driver_id: str,
    date: str,
    items: List[ConsumptionItem],
    created_at: Optional[str] = None,
) -> ConsumptionRecord:
    """Build a record with day_of_week and total_value derived from the inputs."""
    return ConsumptionRecord(
        record_id=record_id,
        client_id=client_id,
        driver_id=driver_id,
        date=date,
        day_of_week=parse_iso(date).weekday(),
        items=list(items),
        total_value=round_money(sum(i.quantity * i.price for i in items)),
        created_at=created_at or now_iso(),
    )


class ConsumptionRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _hydrate(self, rows: list[sqlite3.Row]) -> list[ConsumptionRecord]:
        out: list[ConsumptionRecord] = []
        for r in rows:
            items = [
                ConsumptionItem(str(i["product_id"]), float(i["quantity"]), float(i["price"] or 0.0))
                for i in self.conn.execute(
                    "SELECT product_id, quantity, price FROM consumption_items WHERE record_id=? "
                    "ORDER BY rowid",
                    (r["record_id"],),
                )
            ]
            out.append(
                ConsumptionRecord(
                    record_id=str(r["record_id"]),
                    client_id=str(r["client_id"]),
                    driver_id=str(r["driver_id"]),
                    date=str(r["date"]),
                    day_of_week=int(r["day_of_week"]),
                    items=items,
                    total_value=float(r["total_value"] or 0.0),
                    created_at=r["created_at"],
                )
            )
        return out

    def list_by_client(self, client_id: str) -> list[ConsumptionRecord]:
        rows = self.conn.execute(
            "SELECT * FROM consumption_records WHERE client_id=? ORDER BY date, created_at",
            (client_id,),
        ).fetchall()
        return self._hydrate(rows)

    def list_by_driver(self, driver_id: str) -> list[ConsumptionRecord]:
        rows = self.conn.execute(
            "SELECT * FROM consumption_records WHERE driver_id=? ORDER BY date, created_at",
            (driver_id,),
        ).fetchall()
        return self._hydrate(rows)

    def add(self, record: ConsumptionRecord) -> str:
        """Append a record; an existing id is refused (records are history)."""
        exists = self.conn.execute(
            "SELECT 1 FROM consumption_records WHERE record_id=?", (record.record_id,)
        ).fetchone()
        if exists:
            raise DomainError(f"Consumption record {record.record_id} already exists.")
        if not record.items:
            raise DomainError("A consumption record needs at least one item.")
        try:
            self.conn.execute(
                "INSERT INTO consumption_records(record_id, client_id, driver_id, date, day_of_week, "
                "total_value, created_at) VALUES (?,?,?,?,?,?,?)",
                (
                    record.record_id,
                    record.client_id,
                    record.driver_id,
                    record.date,
                    int(record.day_of_week),
                    float(record.total_value),
                    record.created_at or now_iso(),
                ),
            )
            self.conn.executemany(
                "INSERT INTO consumption_items(record_id, product_id, quantity, price) VALUES (?,?,?,?)",
                [(record.record_id, i.product_id, float(i.quantity), float(i.price)) for i in record.items],
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return record.record_id
