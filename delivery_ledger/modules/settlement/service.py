# delivery_ledger/modules/settlement/service.py
from __future__ import annotations

import re
import sqlite3
from typing import Dict, List, Mapping, Optional

from ...constants import DENOMINATIONS
from ...database.repositories.clients_repo import ClientsRepo
from ...database.repositories.deliveries_repo import DeliveriesRepo
from ...database.repositories.payments_repo import PaymentsRepo
from ...database.repositories.products_repo import ProductsRepo
from ...database.repositories.settlements_repo import DomainError, SettlementRecord, SettlementsRepo
from ...utils.helpers import now_iso, round_money
from ...utils.loggers import get_logger
from ...utils.validators import is_iso_date, is_non_negative_number, try_parse_float
from .reconciler import SettlementCalculation, calculate_settlement

log = get_logger(__name__)


def _denominations_total(denominations: Mapping[str, int]) -> tuple[Dict[str, int], float]:
    """Validate a face -> count breakdown; returns it normalized with its total."""
    clean: Dict[str, int] = {}
    total = 0.0
    for face, count in (denominations or {}).items():
        ok, value = try_parse_float(face)
        if not ok or value not in DENOMINATIONS:
            raise DomainError(f"Unknown denomination: {face!r}.")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise DomainError(f"Count for {face} must be a whole number, zero or more.")
        if count:
            clean[f"{value:.2f}"] = count
            total += value * count
    return clean, round_money(total)


def settlement_id_for(driver_id: str, week_start: str, ts: str) -> str:
    return f"settlement-{driver_id}-{week_start}-{re.sub(r'[^0-9]', '', ts)}"


class SettlementService:
    """
    Write side of the weekly settlement.

    Every confirm recomputes from the current store contents instead of
    trusting a figure shown earlier, so a payment arriving between display
    and confirmation is included.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.repo = SettlementsRepo(conn)
        self.payments = PaymentsRepo(conn)
        self.deliveries = DeliveriesRepo(conn)
        self.clients = ClientsRepo(conn)
        self.products = ProductsRepo(conn)

    # ---- read ---------------------------------------------------------------

    def calculate(self, driver_id: str, week_start: str, until: Optional[str] = None) -> SettlementCalculation:
        if not is_iso_date(week_start):
            raise DomainError(f"Invalid week start: {week_start!r}.")
        return calculate_settlement(
            driver_id,
            week_start,
            self.payments.list_by_driver(driver_id),
            self.deliveries.list_by_driver(driver_id),
            self.repo.list_by_driver(driver_id),
            self.clients.list_clients(),
            self.products.list_routes(),
            until=until,
        )

    def history(self, driver_id: str) -> List[SettlementRecord]:
        """Persisted settlements for audit display, newest first."""
        return self.repo.list_by_driver(driver_id)

    # ---- write --------------------------------------------------------------

    def confirm(
        self,
        driver_id: str,
        week_start: str,
        admin_id: str,
        amount_delivered: Optional[float] = None,
        denominations: Optional[Mapping[str, int]] = None,
        observations: Optional[str] = None,
    ) -> SettlementRecord:
        """
        Close the driver's open period. A week that already has a confirmed
        settlement gets an additional one; nothing is overwritten.
        """
        if amount_delivered is not None and not is_non_negative_number(amount_delivered):
            log.warning("Settlement for %s rejected: amount_delivered=%r", driver_id, amount_delivered)
            raise DomainError("Amount delivered must be zero or more.")
        counted, counted_total = _denominations_total(denominations or {})
        if amount_delivered is None and counted:
            amount_delivered = counted_total

        ts = now_iso()
        calc = self.calculate(driver_id, week_start, until=ts)
        delivered = None if amount_delivered is None else round_money(amount_delivered)
        record = SettlementRecord(
            settlement_id=settlement_id_for(driver_id, week_start, ts),
            driver_id=driver_id,
            week_start_date=calc.week_start_date,
            week_end_date=calc.week_end_date,
            total_delivered=calc.total_delivered,
            total_received=calc.total_received,
            total_to_settle=calc.total_to_settle,
            cash_total=calc.cash_total,
            mbway_total=calc.mbway_total,
            transfer_total=calc.transfer_total,
            other_total=calc.other_total,
            route_totals=calc.route_totals,
            client_payments=calc.client_payments,
            status="confirmed",
            confirmed_at=ts,
            confirmed_by=admin_id,
            amount_delivered=delivered,
            variance=None if delivered is None else round_money(delivered - calc.total_to_settle),
            denominations=counted,
            observations=(observations or "").strip() or None,
            created_at=ts,
            updated_at=ts,
        )
        record.seq = self.repo.insert(record)
        log.info(
            "Settlement %s confirmed by %s: to_settle=%.2f received=%.2f (%s)",
            record.settlement_id, admin_id, record.total_to_settle, record.total_received, calc.mode,
        )
        return record

    def cancel(self, settlement_id: str) -> None:
        """
        Remove a confirmed settlement, reopening its period. Only the
        driver's most recent one can go; removing an older one would not
        change any open figure.
        """
        record = self.repo.get(settlement_id)
        if record is None:
            raise DomainError(f"Settlement {settlement_id} not found.")
        if record.status != "confirmed":
            raise DomainError(f"Settlement {settlement_id} is not confirmed.")
        latest = self.repo.latest_confirmed(record.driver_id)
        if latest is None or latest.settlement_id != settlement_id:
            log.warning("Cancel refused for %s: not the latest settlement of %s", settlement_id, record.driver_id)
            raise DomainError("Only the most recent confirmed settlement can be cancelled.")
        self.repo.delete(settlement_id)
        log.info("Settlement %s cancelled", settlement_id)
