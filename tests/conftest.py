# delivery_ledger/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Every test gets its own in-memory DB with the schema applied
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - Seed helpers build the small fixtures most tests share
# ---------------------------------------------------------------------

from __future__ import annotations

import os
import sqlite3
from typing import Optional

import pytest

# Run Qt headless unless the environment chooses a platform.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from delivery_ledger.database import get_connection
from delivery_ledger.database.repositories import (
    Client,
    ClientsRepo,
    Product,
    ProductsRepo,
    Route,
    ScheduleItem,
    ScheduleSnapshot,
)


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- Per-test in-memory database ----------
@pytest.fixture()
def conn():
    con = get_connection(":memory:")
    try:
        yield con
    finally:
        con.close()


# ---------- Plain builders (no DB) ----------
def make_client(
    client_id: str = "c1",
    *,
    name: Optional[str] = None,
    driver_id: str = "d1",
    route_id: Optional[str] = "r1",
    schedule: Optional[dict] = None,
    history: Optional[list[ScheduleSnapshot]] = None,
    dynamic: bool = False,
    last_payment_date: Optional[str] = None,
    created_at: str = "2024-01-01T08:00:00.000000Z",
    custom_prices: Optional[dict] = None,
    skipped: Optional[set] = None,
    status: str = "ACTIVE",
) -> Client:
    return Client(
        client_id=client_id,
        name=name or f"Client {client_id}",
        driver_id=driver_id,
        route_id=route_id,
        status=status,
        is_dynamic_choice=dynamic,
        last_payment_date=last_payment_date,
        delivery_schedule=schedule or {},
        schedule_history=history or [],
        custom_prices=custom_prices or {},
        skipped_dates=skipped or set(),
        created_at=created_at,
    )


def plan(**days) -> dict:
    """plan(mon={"p1": 2}) -> {'mon': [ScheduleItem('p1', 2)]}"""
    return {day: [ScheduleItem(pid, q) for pid, q in items.items()] for day, items in days.items()}


PRODUCTS = [
    Product("p1", "Pão", 1.0, target_quantity=40),
    Product("p2", "Viana", 0.5, target_quantity=20),
]


@pytest.fixture()
def products() -> list[Product]:
    return list(PRODUCTS)


# ---------- DB seed ----------
@pytest.fixture()
def seeded(conn: sqlite3.Connection) -> dict:
    """Two products, one route and two clients of driver d1 (c1 scheduled, c2 dynamic)."""
    prepo = ProductsRepo(conn)
    for p in PRODUCTS:
        prepo.upsert(p)
    prepo.add_route(Route("r1", "Centro", "d1"))
    crepo = ClientsRepo(conn)
    crepo.create(make_client("c1", name="Ana", schedule=plan(mon={"p1": 2}, wed={"p2": 4})))
    crepo.create(make_client("c2", name="Bruno", dynamic=True))
    return {"driver": "d1", "route": "r1", "scheduled": "c1", "dynamic": "c2"}
