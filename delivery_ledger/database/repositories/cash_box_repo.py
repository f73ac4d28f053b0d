from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field
from typing import List

from ...utils.helpers import now_iso
from ...utils.validators import is_non_negative_number


class DomainError(Exception):
    pass


@dataclass
class DailyCashFund:
    driver_id: str
    date: str
    initial_amount: float
    observations: str | None = None


@dataclass
class RouteReceivedTotal:
    route_id: str
    route_name: str
    total_received: float = 0.0
    client_count: int = 0


@dataclass
class DailyClosure:
    driver_id: str
    date: str
    cash_fund_amount: float
    counted_amount: float
    total_cash: float
    total_mbway: float
    total_transfer: float
    total_other: float
    expected_cash: float
    difference: float
    status: str  # balanced | surplus | shortage
    route_totals: List[RouteReceivedTotal] = field(default_factory=list)
    observations: str | None = None


class CashBoxRepo:
    """Driver's daily cash fund and end-of-day closure (one of each per driver and day)."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- cash fund ----------------------------------------------------------

    def get_fund(self, driver_id: str, date: str) -> DailyCashFund | None:
        r = self.conn.execute(
            "SELECT driver_id, date, initial_amount, observations FROM daily_cash_funds "
            "WHERE driver_id=? AND date=?",
            (driver_id, date),
        ).fetchone()
        if r is None:
            return None
        return DailyCashFund(str(r["driver_id"]), str(r["date"]), float(r["initial_amount"]), r["observations"])

    def save_fund(self, fund: DailyCashFund) -> None:
        if not is_non_negative_number(fund.initial_amount):
            raise DomainError("Cash fund must be zero or more.")
        ts = now_iso()
        self.conn.execute(
            """
            INSERT INTO daily_cash_funds(driver_id, date, initial_amount, observations, created_at, updated_at)
            VALUES (?,?,?,?,?,?)
            ON CONFLICT(driver_id, date) DO UPDATE SET
                initial_amount=excluded.initial_amount,
                observations=excluded.observations,
                updated_at=excluded.updated_at
            """,
            (fund.driver_id, fund.date, float(fund.initial_amount), fund.observations, ts, ts),
        )
        self.conn.commit()

    # ---- closure ------------------------------------------------------------

    def get_closure(self, driver_id: str, date: str) -> DailyClosure | None:
        r = self.conn.execute(
            "SELECT * FROM daily_closures WHERE driver_id=? AND date=?", (driver_id, date)
        ).fetchone()
        if r is None:
            return None
        return DailyClosure(
            driver_id=str(r["driver_id"]),
            date=str(r["date"]),
            cash_fund_amount=float(r["cash_fund_amount"]),
            counted_amount=float(r["counted_amount"]),
            total_cash=float(r["total_cash"]),
            total_mbway=float(r["total_mbway"]),
            total_transfer=float(r["total_transfer"]),
            total_other=float(r["total_other"]),
            expected_cash=float(r["expected_cash"]),
            difference=float(r["difference"]),
            status=r["status"],
            route_totals=[RouteReceivedTotal(**x) for x in json.loads(r["route_totals"] or "[]")],
            observations=r["observations"],
        )

    def save_closure(self, closure: DailyClosure) -> None:
        if not is_non_negative_number(closure.counted_amount):
            raise DomainError("Counted amount must be zero or more.")
        ts = now_iso()
        self.conn.execute(
            """
            INSERT INTO daily_closures(driver_id, date, cash_fund_amount, counted_amount, total_cash,
                total_mbway, total_transfer, total_other, expected_cash, difference, status,
                route_totals, observations, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            ON CONFLICT(driver_id, date) DO UPDATE SET
                cash_fund_amount=excluded.cash_fund_amount,
                counted_amount=excluded.counted_amount,
                total_cash=excluded.total_cash,
                total_mbway=excluded.total_mbway,
                total_transfer=excluded.total_transfer,
                total_other=excluded.total_other,
                expected_cash=excluded.expected_cash,
                difference=excluded.difference,
                status=excluded.status,
                route_totals=excluded.route_totals,
                observations=excluded.observations,
                updated_at=excluded.updated_at
            """,
            (
                closure.driver_id,
                closure.date,
                closure.cash_fund_amount,
                closure.counted_amount,
                closure.total_cash,
                closure.total_mbway,
                closure.total_transfer,
                closure.total_other,
                closure.expected_cash,
                closure.difference,
                closure.status,
                json.dumps([asdict(x) for x in closure.route_totals], ensure_ascii=False),
                closure.observations,
                ts,
                ts,
            ),
        )
        self.conn.commit()
