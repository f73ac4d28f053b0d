# delivery_ledger/modules/billing/service.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from ...database.repositories.clients_repo import ClientsRepo, DomainError
from ...database.repositories.deliveries_repo import DeliveriesRepo
from ...database.repositories.products_repo import ProductsRepo
from .period_debt import DebtResult, debt_for_period


@dataclass
class ClientDebtRow:
    client_id: str
    client_name: str
    route_id: str | None
    last_payment_date: str | None
    total: float
    days_count: int
    is_dynamic_choice: bool


class DebtReports:
    """
    Debt figures computed on top of the repositories. Loads snapshots,
    hands them to debt_for_period and never writes.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.clients = ClientsRepo(conn)
        self.products = ProductsRepo(conn)
        self.deliveries = DeliveriesRepo(conn)

    def client_debt(
        self,
        client_id: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        today: Optional[date] = None,
    ) -> DebtResult:
        client = self.clients.get(client_id)
        if client is None:
            raise DomainError(f"Client {client_id} not found.")
        deliveries = self.deliveries.list_by_client(client_id) if client.is_dynamic_choice else []
        return debt_for_period(
            client,
            self.products.list_products(),
            deliveries,
            date_from=date_from,
            date_to=date_to,
            today=today,
        )

    def driver_debts(self, driver_id: str, today: Optional[date] = None) -> List[ClientDebtRow]:
        """Open debt of each active client of a driver, largest first."""
        products = {p.product_id: p for p in self.products.list_products()}
        rows: List[ClientDebtRow] = []
        for client in self.clients.list_clients(driver_id=driver_id, active_only=True):
            deliveries = self.deliveries.list_by_client(client.client_id) if client.is_dynamic_choice else []
            res = debt_for_period(client, products, deliveries, today=today)
            rows.append(
                ClientDebtRow(
                    client_id=client.client_id,
                    client_name=client.name,
                    route_id=client.route_id,
                    last_payment_date=client.last_payment_date,
                    total=res.total,
                    days_count=res.days_count,
                    is_dynamic_choice=client.is_dynamic_choice,
                )
            )
        rows.sort(key=lambda r: (-r.total, r.client_name.lower()))
        return rows
