# delivery_ledger/database/schema.py
from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== MASTER DATA ======================== */

/* -------- products -------- */
CREATE TABLE IF NOT EXISTS products (
    product_id      TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    price           NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(price AS REAL) >= 0),
    unit            TEXT NOT NULL DEFAULT 'unid',
    category        TEXT,
    target_quantity INTEGER NOT NULL DEFAULT 0 CHECK (target_quantity >= 0)
);

/* -------- routes -------- */
CREATE TABLE IF NOT EXISTS routes (
    route_id  TEXT PRIMARY KEY,
    name      TEXT NOT NULL,
    driver_id TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_routes_driver ON routes(driver_id);

/* -------- clients -------- */
CREATE TABLE IF NOT EXISTS clients (
    client_id           TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    address             TEXT,
    phone               TEXT,
    driver_id           TEXT NOT NULL,
    route_id            TEXT,
    status              TEXT NOT NULL DEFAULT 'ACTIVE' CHECK (status IN ('ACTIVE','INACTIVE')),
    is_dynamic_choice   INTEGER NOT NULL DEFAULT 0 CHECK (is_dynamic_choice IN (0,1)),
    payment_frequency   TEXT NOT NULL DEFAULT 'Semanal'
                        CHECK (payment_frequency IN ('Diário','Semanal','Mensal','Personalizado')),
    payment_custom_days INTEGER,
    current_balance     NUMERIC NOT NULL DEFAULT 0,
    last_payment_date   DATE,
    delivery_schedule   TEXT NOT NULL DEFAULT '{}',   /* JSON: weekday key -> [{product_id, quantity}] */
    notes               TEXT,
    created_at          TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_clients_driver ON clients(driver_id);

/* per-client price overrides; product ids are not constrained (a removed product bills 0) */
CREATE TABLE IF NOT EXISTS client_prices (
    client_id  TEXT NOT NULL,
    product_id TEXT NOT NULL,
    price      NUMERIC NOT NULL CHECK (CAST(price AS REAL) >= 0),
    PRIMARY KEY (client_id, product_id),
    FOREIGN KEY (client_id) REFERENCES clients(client_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS client_skipped_dates (
    client_id TEXT NOT NULL,
    date      DATE NOT NULL,
    PRIMARY KEY (client_id, date),
    FOREIGN KEY (client_id) REFERENCES clients(client_id) ON DELETE CASCADE
);

/* append-only plan snapshots */
CREATE TABLE IF NOT EXISTS client_schedule_history (
    snapshot_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id      TEXT NOT NULL,
    effective_date DATE NOT NULL,
    schedule       TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    FOREIGN KEY (client_id) REFERENCES clients(client_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_schedule_history_client
ON client_schedule_history(client_id, effective_date);

DROP TRIGGER IF EXISTS trg_schedule_history_no_update;
CREATE TRIGGER trg_schedule_history_no_update
BEFORE UPDATE ON client_schedule_history
BEGIN
  SELECT RAISE(ABORT, 'Schedule snapshots are append-only');
END;

/* ======================== EVENT LOGS ======================== */

/* -------- dynamic consumption -------- */
CREATE TABLE IF NOT EXISTS consumption_records (
    record_id   TEXT PRIMARY KEY,
    client_id   TEXT NOT NULL,
    driver_id   TEXT NOT NULL,
    date        DATE NOT NULL,
    day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
    total_value NUMERIC NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    FOREIGN KEY (client_id) REFERENCES clients(client_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_consumption_client ON consumption_records(client_id, date);
CREATE INDEX IF NOT EXISTS idx_consumption_driver ON consumption_records(driver_id, date);

CREATE TABLE IF NOT EXISTS consumption_items (
    record_id  TEXT NOT NULL,
    product_id TEXT NOT NULL,
    quantity   NUMERIC NOT NULL CHECK (CAST(quantity AS REAL) >= 0),
    price      NUMERIC NOT NULL DEFAULT 0,
    FOREIGN KEY (record_id) REFERENCES consumption_records(record_id) ON DELETE CASCADE
);

/* -------- deliveries -------- */
CREATE TABLE IF NOT EXISTS deliveries (
    delivery_id          TEXT PRIMARY KEY,
    date                 DATE NOT NULL,
    driver_id            TEXT NOT NULL,
    client_id            TEXT NOT NULL,
    route_id             TEXT,
    status               TEXT NOT NULL DEFAULT 'pending'
                         CHECK (status IN ('pending','delivered','not_delivered')),
    total_value          NUMERIC NOT NULL DEFAULT 0,
    delivered_at         TEXT,
    not_delivered_reason TEXT,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL,
    UNIQUE (client_id, date),
    FOREIGN KEY (client_id) REFERENCES clients(client_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_deliveries_driver ON deliveries(driver_id, date);

CREATE TABLE IF NOT EXISTS delivery_items (
    delivery_id   TEXT NOT NULL,
    line_no       INTEGER NOT NULL,
    product_id    TEXT NOT NULL,
    quantity      NUMERIC NOT NULL CHECK (CAST(quantity AS REAL) >= 0),
    unit_price    NUMERIC NOT NULL DEFAULT 0,
    total_price   NUMERIC NOT NULL DEFAULT 0,
    is_extra      INTEGER NOT NULL DEFAULT 0 CHECK (is_extra IN (0,1)),
    is_substitute INTEGER NOT NULL DEFAULT 0 CHECK (is_substitute IN (0,1)),
    PRIMARY KEY (delivery_id, line_no),
    FOREIGN KEY (delivery_id) REFERENCES deliveries(delivery_id) ON DELETE CASCADE
);

/* -------- daily loads -------- */
CREATE TABLE IF NOT EXISTS loads (
    load_id             TEXT PRIMARY KEY,
    driver_id           TEXT NOT NULL,
    date                DATE NOT NULL,
    status              TEXT NOT NULL DEFAULT 'loading'
                        CHECK (status IN ('loading','in_route','completed')),
    total_loaded        INTEGER NOT NULL DEFAULT 0,
    total_sold          INTEGER NOT NULL DEFAULT 0,
    total_returned      INTEGER NOT NULL DEFAULT 0,
    utilization_rate    INTEGER NOT NULL DEFAULT 0,
    load_observations   TEXT,
    return_observations TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_loads_date ON loads(date, driver_id);

CREATE TABLE IF NOT EXISTS load_items (
    load_id    TEXT NOT NULL,
    product_id TEXT NOT NULL,
    quantity   INTEGER NOT NULL CHECK (quantity >= 0),
    returned   INTEGER CHECK (returned IS NULL OR returned >= 0),
    sold       INTEGER CHECK (sold IS NULL OR sold >= 0),
    PRIMARY KEY (load_id, product_id),
    FOREIGN KEY (load_id) REFERENCES loads(load_id) ON DELETE CASCADE
);

/* -------- payments -------- */
CREATE TABLE IF NOT EXISTS payments (
    payment_id TEXT PRIMARY KEY,
    driver_id  TEXT NOT NULL,
    client_id  TEXT NOT NULL,
    route_id   TEXT,
    date       DATE NOT NULL,
    amount     NUMERIC NOT NULL CHECK (CAST(amount AS REAL) > 0),
    method     TEXT NOT NULL
               CHECK (method IN ('Dinheiro','MBWay','Transferência','Cartão','Outro')),
    paid_until DATE,
    created_at TEXT NOT NULL,
    FOREIGN KEY (client_id) REFERENCES clients(client_id)
);
CREATE INDEX IF NOT EXISTS idx_payments_driver ON payments(driver_id, created_at);

/* -------- settlements -------- */
CREATE TABLE IF NOT EXISTS settlements (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    settlement_id    TEXT NOT NULL UNIQUE,
    driver_id        TEXT NOT NULL,
    week_start_date  DATE NOT NULL,
    week_end_date    DATE NOT NULL,
    total_delivered  NUMERIC NOT NULL DEFAULT 0,
    total_received   NUMERIC NOT NULL DEFAULT 0,
    total_to_settle  NUMERIC NOT NULL DEFAULT 0,
    cash_total       NUMERIC NOT NULL DEFAULT 0,
    mbway_total      NUMERIC NOT NULL DEFAULT 0,
    transfer_total   NUMERIC NOT NULL DEFAULT 0,
    other_total      NUMERIC NOT NULL DEFAULT 0,
    route_totals     TEXT NOT NULL DEFAULT '[]',
    client_payments  TEXT NOT NULL DEFAULT '[]',
    status           TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','confirmed')),
    confirmed_at     TEXT,
    confirmed_by     TEXT,
    amount_delivered NUMERIC CHECK (amount_delivered IS NULL OR CAST(amount_delivered AS REAL) >= 0),
    variance         NUMERIC,
    denominations    TEXT NOT NULL DEFAULT '{}',
    observations     TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL,
    CHECK (status <> 'confirmed' OR confirmed_at IS NOT NULL)
);
CREATE INDEX IF NOT EXISTS idx_settlements_driver ON settlements(driver_id, status, confirmed_at);

/* -------- driver cash box -------- */
CREATE TABLE IF NOT EXISTS daily_cash_funds (
    driver_id      TEXT NOT NULL,
    date           DATE NOT NULL,
    initial_amount NUMERIC NOT NULL CHECK (CAST(initial_amount AS REAL) >= 0),
    observations   TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,
    PRIMARY KEY (driver_id, date)
);

CREATE TABLE IF NOT EXISTS daily_closures (
    driver_id        TEXT NOT NULL,
    date             DATE NOT NULL,
    cash_fund_amount NUMERIC NOT NULL DEFAULT 0,
    counted_amount   NUMERIC NOT NULL CHECK (CAST(counted_amount AS REAL) >= 0),
    total_cash       NUMERIC NOT NULL DEFAULT 0,
    total_mbway      NUMERIC NOT NULL DEFAULT 0,
    total_transfer   NUMERIC NOT NULL DEFAULT 0,
    total_other      NUMERIC NOT NULL DEFAULT 0,
    expected_cash    NUMERIC NOT NULL DEFAULT 0,
    difference       NUMERIC NOT NULL DEFAULT 0,
    status           TEXT NOT NULL CHECK (status IN ('balanced','surplus','shortage')),
    route_totals     TEXT NOT NULL DEFAULT '[]',
    observations     TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL,
    PRIMARY KEY (driver_id, date)
);
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()


if __name__ == "__main__":
    from ..config import DB_PATH

    target = sys.argv[1] if len(sys.argv) > 1 else DB_PATH
    init_schema(target)
    print(f"✓ DB applied to {target}")
