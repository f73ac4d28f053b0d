# delivery_ledger/database/repositories/loads_repo.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ...utils.helpers import now_iso
from ...utils.validators import is_iso_date, is_non_negative_number


class DomainError(Exception):
    pass


LOAD_STATUSES: tuple[str, ...] = ("loading", "in_route", "completed")


@dataclass
class ReturnItem:
    product_id: str
    returned: int
    sold: int


@dataclass
class LoadRecord:
    load_id: str
    driver_id: str
    date: str
    status: str = "loading"
    load_items: Dict[str, int] = field(default_factory=dict)  # product_id -> quantity taken
    return_items: List[ReturnItem] = field(default_factory=list)
    total_loaded: int = 0
    total_sold: int = 0
    total_returned: int = 0
    utilization_rate: int = 0
    load_observations: str | None = None
    return_observations: str | None = None
    created_at: str = ""
    updated_at: str = ""


class LoadsRepo:
    """
    Daily loads. Items are stored one row per product; the returned/sold
    columns stay NULL until the load is completed.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- internals ---------------------------------------------------------

    def _record(self, r: sqlite3.Row) -> LoadRecord:
        load_items: Dict[str, int] = {}
        returns: List[ReturnItem] = []
        for i in self.conn.execute(
            "SELECT product_id, quantity, returned, sold FROM load_items WHERE load_id=? "
            "ORDER BY rowid",
            (r["load_id"],),
        ):
            load_items[str(i["product_id"])] = int(i["quantity"])
            if i["returned"] is not None or i["sold"] is not None:
                returns.append(ReturnItem(str(i["product_id"]), int(i["returned"] or 0), int(i["sold"] or 0)))
        return LoadRecord(
            load_id=str(r["load_id"]),
            driver_id=str(r["driver_id"]),
            date=str(r["date"]),
            status=r["status"],
            load_items=load_items,
            return_items=returns,
            total_loaded=int(r["total_loaded"] or 0),
            total_sold=int(r["total_sold"] or 0),
            total_returned=int(r["total_returned"] or 0),
            utilization_rate=int(r["utilization_rate"] or 0),
            load_observations=r["load_observations"],
            return_observations=r["return_observations"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )

    # ---- queries -----------------------------------------------------------

    def get(self, load_id: str) -> LoadRecord | None:
        r = self.conn.execute("SELECT * FROM loads WHERE load_id=?", (load_id,)).fetchone()
        return self._record(r) if r else None

    def list_by_date(self, date: str) -> list[LoadRecord]:
        rows = self.conn.execute(
            "SELECT * FROM loads WHERE date=? ORDER BY driver_id, load_id", (date,)
        ).fetchall()
        return [self._record(r) for r in rows]

    def list_by_driver(self, driver_id: str, date: Optional[str] = None) -> list[LoadRecord]:
        if date is None:
            rows = self.conn.execute(
                "SELECT * FROM loads WHERE driver_id=? ORDER BY date, load_id", (driver_id,)
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM loads WHERE driver_id=? AND date=? ORDER BY load_id",
                (driver_id, date),
            ).fetchall()
        return [self._record(r) for r in rows]

    def list_between(self, date_from: str, date_to: str, status: Optional[str] = None) -> list[LoadRecord]:
        sql = "SELECT * FROM loads WHERE date >= ? AND date <= ?"
        params: list[object] = [date_from, date_to]
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY date, driver_id, load_id"
        return [self._record(r) for r in self.conn.execute(sql, params).fetchall()]

    # ---- mutations ---------------------------------------------------------

    def save(self, load: LoadRecord) -> str:
        """
        Insert or replace a load with its items and derived totals. The
        totals are written as given; callers compute them (see
        modules.loads.utilization.complete_load).
        """
        if load.status not in LOAD_STATUSES:
            raise DomainError(f"Unknown load status: {load.status!r}.")
        if not is_iso_date(load.date):
            raise DomainError(f"Invalid load date: {load.date!r}.")
        for qty in load.load_items.values():
            if not is_non_negative_number(qty):
                raise DomainError("Loaded quantities must be zero or more.")
        for ri in load.return_items:
            if ri.returned < 0 or ri.sold < 0:
                raise DomainError("Returned and sold quantities must be zero or more.")

        ts = now_iso()
        returns = {ri.product_id: ri for ri in load.return_items}
        try:
            self.conn.execute(
                """
                INSERT INTO loads(load_id, driver_id, date, status, total_loaded, total_sold,
                    total_returned, utilization_rate, load_observations, return_observations,
                    created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
                ON CONFLICT(load_id) DO UPDATE SET
                    status=excluded.status,
                    total_loaded=excluded.total_loaded,
                    total_sold=excluded.total_sold,
                    total_returned=excluded.total_returned,
                    utilization_rate=excluded.utilization_rate,
                    load_observations=excluded.load_observations,
                    return_observations=excluded.return_observations,
                    updated_at=excluded.updated_at
                """,
                (
                    load.load_id,
                    load.driver_id,
                    load.date,
                    load.status,
                    int(load.total_loaded),
                    int(load.total_sold),
                    int(load.total_returned),
                    int(load.utilization_rate),
                    load.load_observations,
                    load.return_observations,
                    load.created_at or ts,
                    load.updated_at or ts,
                ),
            )
            self.conn.execute("DELETE FROM load_items WHERE load_id=?", (load.load_id,))
            self.conn.executemany(
                "INSERT INTO load_items(load_id, product_id, quantity, returned, sold) VALUES (?,?,?,?,?)",
                [
                    (
                        load.load_id,
                        pid,
                        int(qty),
                        returns[pid].returned if pid in returns else None,
                        returns[pid].sold if pid in returns else None,
                    )
                    for pid, qty in load.load_items.items()
                ],
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return load.load_id
