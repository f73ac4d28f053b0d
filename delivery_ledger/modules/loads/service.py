# delivery_ledger/modules/loads/service.py
from __future__ import annotations

import sqlite3
from datetime import timedelta
from typing import List, Mapping, Optional

from ...constants import PRODUCTION_WINDOW_DAYS
from ...database.repositories.clients_repo import ClientsRepo
from ...database.repositories.loads_repo import DomainError, LoadsRepo, ReturnItem
from ...database.repositories.products_repo import ProductsRepo
from ...utils.helpers import now_iso, parse_iso
from ...utils.loggers import get_logger
from .production import ProductionSuggestion, production_suggestions
from .utilization import DailyLoadReport, complete_load, daily_load_report, scheduled_load_for_day

log = get_logger(__name__)


class LoadService:
    """Daily loads: completion writes and the read-side reports."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.loads = LoadsRepo(conn)
        self.products = ProductsRepo(conn)
        self.clients = ClientsRepo(conn)

    def complete(self, load_id: str, return_items: List[ReturnItem], observations: Optional[str] = None):
        """Store the driver's returns and the derived totals; the load becomes completed."""
        load = self.loads.get(load_id)
        if load is None:
            raise DomainError(f"Load {load_id} not found.")
        if load.status == "completed":
            raise DomainError(f"Load {load_id} is already completed.")
        for ri in return_items:
            if ri.product_id not in load.load_items:
                raise DomainError(f"Product {ri.product_id} was not loaded.")
            if ri.returned < 0 or ri.sold < 0:
                raise DomainError("Returned and sold quantities must be zero or more.")

        done = complete_load(load, return_items, now_iso())
        if observations is not None:
            done.return_observations = observations
        self.loads.save(done)
        log.info(
            "Load %s completed: loaded=%d sold=%d returned=%d (%d%%)",
            load_id, done.total_loaded, done.total_sold, done.total_returned, done.utilization_rate,
        )
        return done

    def daily_report(self, date: str, drivers: Optional[Mapping[str, str]] = None) -> DailyLoadReport:
        return daily_load_report(date, self.loads.list_by_date(date), self.products.list_products(), drivers)

    def production_suggestions(self, end_date: str, days: int = PRODUCTION_WINDOW_DAYS) -> List[ProductionSuggestion]:
        start = (parse_iso(end_date) - timedelta(days=max(days, 1) - 1)).isoformat()
        loads = self.loads.list_between(start, end_date, status="completed")
        return production_suggestions(loads, self.products.list_products(), end_date, days)

    def scheduled_load(self, driver_id: str, date: str) -> dict[str, int]:
        return scheduled_load_for_day(
            self.clients.list_clients(driver_id=driver_id, active_only=True),
            self.products.list_products(),
            date,
        )
