# delivery_ledger/modules/deliveries/service.py
from __future__ import annotations

import sqlite3
from typing import List, Optional

from ...database.repositories.clients_repo import ClientsRepo, DomainError, Schedule
from ...database.repositories.deliveries_repo import DeliveriesRepo, DeliveryRecord
from ...database.repositories.products_repo import ProductsRepo
from ...utils.helpers import now_iso
from ...utils.loggers import get_logger
from .daily import DriverDailySummary, build_daily_deliveries, daily_summary
from .schedule_events import ScheduleChanged, reconcile_pending_deliveries, update_schedule

log = get_logger(__name__)


class DeliveryService:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.deliveries = DeliveriesRepo(conn)
        self.clients = ClientsRepo(conn)
        self.products = ProductsRepo(conn)

    def generate_day(self, driver_id: str, date: str) -> List[DeliveryRecord]:
        """Create the missing pending records of the day and return them."""
        created = build_daily_deliveries(
            driver_id,
            date,
            self.clients.list_clients(driver_id=driver_id, active_only=True),
            self.products.list_products(),
            self.deliveries.list_by_driver(driver_id, date, date),
            now_iso(),
        )
        for record in created:
            self.deliveries.save(record)
        if created:
            log.info("Generated %d deliveries for %s on %s", len(created), driver_id, date)
        return created

    def summary(self, driver_id: str, date: str) -> DriverDailySummary:
        return daily_summary(
            driver_id,
            date,
            self.deliveries.list_by_driver(driver_id, date, date),
            self.products.list_products(),
            self.products.list_routes(driver_id),
        )

    def change_schedule(
        self, client_id: str, schedule: Schedule, effective_date: Optional[str] = None
    ) -> tuple[ScheduleChanged, List[DeliveryRecord]]:
        """Append the new plan, then bring the affected pending deliveries in line."""
        event = update_schedule(self.clients, client_id, schedule, effective_date)
        client = self.clients.get(client_id)
        if client is None:
            raise DomainError(f"Client {client_id} not found.")
        updated = reconcile_pending_deliveries(
            event, client, self.deliveries.list_by_client(client_id), self.products.list_products()
        )
        for record in updated:
            self.deliveries.replace_items(record.delivery_id, record.items)
        log.info(
            "Schedule of %s changed from %s; %d pending deliveries updated",
            client_id, event.effective_date, len(updated),
        )
        return event, updated
