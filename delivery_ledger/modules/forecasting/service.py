# delivery_ledger/modules/forecasting/service.py
from __future__ import annotations

import sqlite3
from typing import Optional

from ...database.repositories.clients_repo import ClientsRepo, DomainError
from ...database.repositories.consumption_repo import ConsumptionRepo
from ...database.repositories.products_repo import ProductsRepo
from .consumption_stats import DynamicClientHistory, client_history
from .predictor import DynamicLoadSummary, Prediction, PredictorSettings, driver_load_summary, predict


class ForecastService:
    """Loads consumption history through the repositories and runs the predictor."""

    def __init__(self, conn: sqlite3.Connection, settings: Optional[PredictorSettings] = None) -> None:
        self.conn = conn
        self.settings = settings or PredictorSettings()
        self.clients = ClientsRepo(conn)
        self.products = ProductsRepo(conn)
        self.consumption = ConsumptionRepo(conn)

    def _client(self, client_id: str):
        client = self.clients.get(client_id)
        if client is None:
            raise DomainError(f"Client {client_id} not found.")
        return client

    def client_history(self, client_id: str) -> DynamicClientHistory:
        client = self._client(client_id)
        return client_history(client, self.consumption.list_by_client(client_id), self.products.list_products())

    def predict(self, client_id: str, date: str) -> Prediction:
        client = self._client(client_id)
        return predict(
            client,
            self.consumption.list_by_client(client_id),
            self.products.list_products(),
            date,
            self.settings,
        )

    def driver_load_summary(self, driver_id: str, date: str) -> DynamicLoadSummary:
        return driver_load_summary(
            driver_id,
            self.clients.list_clients(driver_id=driver_id, active_only=True),
            self.consumption.list_by_driver(driver_id),
            self.products.list_products(),
            date,
            self.settings,
        )
