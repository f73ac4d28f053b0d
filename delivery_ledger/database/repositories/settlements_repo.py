# delivery_ledger/database/repositories/settlements_repo.py
from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from ...utils.helpers import now_iso


class DomainError(Exception):
    pass


@dataclass
class RouteSettlementTotal:
    route_id: str
    route_name: str
    total_delivered: float = 0.0
    total_received: float = 0.0
    clients_paid: int = 0


@dataclass
class ClientPaymentSummary:
    client_id: str
    client_name: str
    route_id: str | None = None
    route_name: str | None = None
    total_paid: float = 0.0
    method: str = ""
    payment_dates: List[str] = field(default_factory=list)


@dataclass
class SettlementRecord:
    settlement_id: str
    driver_id: str
    week_start_date: str
    week_end_date: str
    total_delivered: float = 0.0
    total_received: float = 0.0
    total_to_settle: float = 0.0
    cash_total: float = 0.0
    mbway_total: float = 0.0
    transfer_total: float = 0.0
    other_total: float = 0.0
    route_totals: List[RouteSettlementTotal] = field(default_factory=list)
    client_payments: List[ClientPaymentSummary] = field(default_factory=list)
    status: str = "pending"
    confirmed_at: str | None = None
    confirmed_by: str | None = None
    amount_delivered: float | None = None
    variance: float | None = None
    denominations: Dict[str, int] = field(default_factory=dict)  # face value (as text) -> count
    observations: str | None = None
    created_at: str = ""
    updated_at: str = ""
    seq: int | None = None  # store-assigned ordering key


class SettlementsRepo:
    """
    Settlement records. Confirmed rows are history: they can be inserted or
    deleted (cancel) but never rewritten.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    @staticmethod
    def _record(r: sqlite3.Row) -> SettlementRecord:
        return SettlementRecord(
            settlement_id=r["settlement_id"],
            driver_id=str(r["driver_id"]),
            week_start_date=str(r["week_start_date"]),
            week_end_date=str(r["week_end_date"]),
            total_delivered=float(r["total_delivered"] or 0.0),
            total_received=float(r["total_received"] or 0.0),
            total_to_settle=float(r["total_to_settle"] or 0.0),
            cash_total=float(r["cash_total"] or 0.0),
            mbway_total=float(r["mbway_total"] or 0.0),
            transfer_total=float(r["transfer_total"] or 0.0),
            other_total=float(r["other_total"] or 0.0),
            route_totals=[RouteSettlementTotal(**x) for x in json.loads(r["route_totals"] or "[]")],
            client_payments=[ClientPaymentSummary(**x) for x in json.loads(r["client_payments"] or "[]")],
            status=r["status"],
            confirmed_at=r["confirmed_at"],
            confirmed_by=r["confirmed_by"],
            amount_delivered=None if r["amount_delivered"] is None else float(r["amount_delivered"]),
            variance=None if r["variance"] is None else float(r["variance"]),
            denominations={str(k): int(v) for k, v in json.loads(r["denominations"] or "{}").items()},
            observations=r["observations"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
            seq=int(r["seq"]),
        )

    # ---- queries ------------------------------------------------------------

    def get(self, settlement_id: str) -> SettlementRecord | None:
        r = self.conn.execute(
            "SELECT * FROM settlements WHERE settlement_id=?", (settlement_id,)
        ).fetchone()
        return self._record(r) if r else None

    def list_by_driver(self, driver_id: str, status: Optional[str] = None) -> list[SettlementRecord]:
        """Newest first (confirmation time, then store order)."""
        sql = "SELECT * FROM settlements WHERE driver_id=?"
        params: list[object] = [driver_id]
        if status is not None:
            sql += " AND status=?"
            params.append(status)
        sql += " ORDER BY COALESCE(confirmed_at, created_at) DESC, seq DESC"
        return [self._record(r) for r in self.conn.execute(sql, params).fetchall()]

    def latest_confirmed(self, driver_id: str) -> SettlementRecord | None:
        r = self.conn.execute(
            "SELECT * FROM settlements WHERE driver_id=? AND status='confirmed' "
            "ORDER BY confirmed_at DESC, seq DESC LIMIT 1",
            (driver_id,),
        ).fetchone()
        return self._record(r) if r else None

    # ---- mutations ----------------------------------------------------------

    def insert(self, record: SettlementRecord) -> int:
        """Write a new record and return its store-assigned sequence number."""
        if record.status not in ("pending", "confirmed"):
            raise DomainError(f"Unknown settlement status: {record.status!r}.")
        if record.status == "confirmed" and not record.confirmed_at:
            raise DomainError("A confirmed settlement needs confirmed_at.")
        ts = now_iso()
        try:
            cur = self.conn.execute(
                """
                INSERT INTO settlements(
                    settlement_id, driver_id, week_start_date, week_end_date,
                    total_delivered, total_received, total_to_settle,
                    cash_total, mbway_total, transfer_total, other_total,
                    route_totals, client_payments, status, confirmed_at, confirmed_by,
                    amount_delivered, variance, denominations, observations, created_at, updated_at
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    record.settlement_id,
                    record.driver_id,
                    record.week_start_date,
                    record.week_end_date,
                    record.total_delivered,
                    record.total_received,
                    record.total_to_settle,
                    record.cash_total,
                    record.mbway_total,
                    record.transfer_total,
                    record.other_total,
                    json.dumps([asdict(x) for x in record.route_totals], ensure_ascii=False),
                    json.dumps([asdict(x) for x in record.client_payments], ensure_ascii=False),
                    record.status,
                    record.confirmed_at,
                    record.confirmed_by,
                    record.amount_delivered,
                    record.variance,
                    json.dumps(record.denominations, sort_keys=True),
                    record.observations,
                    record.created_at or ts,
                    record.updated_at or ts,
                ),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DomainError(f"Could not store settlement {record.settlement_id}: {e}") from e
        return int(cur.lastrowid)

    def delete(self, settlement_id: str) -> None:
        self.conn.execute("DELETE FROM settlements WHERE settlement_id=?", (settlement_id,))
        self.conn.commit()
