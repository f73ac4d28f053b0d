# delivery_ledger/modules/cashbox/service.py
from __future__ import annotations

import sqlite3
from typing import Optional

from ...database.repositories.cash_box_repo import CashBoxRepo, DailyCashFund, DailyClosure
from ...database.repositories.clients_repo import ClientsRepo
from ...database.repositories.payments_repo import PaymentsRepo
from ...database.repositories.products_repo import ProductsRepo
from ...utils.loggers import get_logger
from .closure import daily_closure

log = get_logger(__name__)


class CashBoxService:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.repo = CashBoxRepo(conn)
        self.payments = PaymentsRepo(conn)
        self.clients = ClientsRepo(conn)
        self.products = ProductsRepo(conn)

    def open_fund(self, driver_id: str, date: str, amount: float, observations: Optional[str] = None) -> DailyCashFund:
        fund = DailyCashFund(driver_id=driver_id, date=date, initial_amount=float(amount), observations=observations)
        self.repo.save_fund(fund)
        log.info("Cash fund for %s on %s: %.2f", driver_id, date, fund.initial_amount)
        return fund

    def preview(self, driver_id: str, date: str, counted_amount: float) -> DailyClosure:
        """Closure figures without storing them."""
        return daily_closure(
            driver_id,
            date,
            self.repo.get_fund(driver_id, date),
            self.payments.list_by_driver(driver_id, date),
            counted_amount,
            self.products.list_routes(),
            self.clients.list_clients(),
        )

    def close_day(
        self, driver_id: str, date: str, counted_amount: float, observations: Optional[str] = None
    ) -> DailyClosure:
        closure = self.preview(driver_id, date, counted_amount)
        closure.observations = (observations or "").strip() or None
        self.repo.save_closure(closure)
        if closure.status == "balanced":
            log.info("Closure %s %s balanced (expected %.2f)", driver_id, date, closure.expected_cash)
        else:
            log.warning(
                "Closure %s %s %s: counted %.2f, expected %.2f",
                driver_id, date, closure.status, closure.counted_amount, closure.expected_cash,
            )
        return closure
