"""
settlement/reconciler.py

What a driver owes the business since the last close.

Settlement periods are delimited by confirmation time, not by calendar
week: once a settlement is confirmed at T, the next calculation takes every
payment created after T and every delivery delivered after T, whatever
their nominal dates. Only before a driver's first confirmed settlement does
the calculation fall back to the calendar week [week_start, week_start + 6].

Only cash is owed in hand (total_to_settle == cash_total); MBWay, transfers
and card payments land in the business account directly.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from ...constants import METHOD_CASH, METHOD_MBWAY, METHOD_TRANSFER
from ...database.repositories.clients_repo import Client
from ...database.repositories.deliveries_repo import DeliveryRecord
from ...database.repositories.payments_repo import PaymentRecord
from ...database.repositories.products_repo import Route
from ...database.repositories.settlements_repo import (
    ClientPaymentSummary,
    RouteSettlementTotal,
    SettlementRecord,
)
from ...utils.helpers import parse_iso, round_money

__all__ = [
    "MODE_SINCE_LAST",
    "MODE_CALENDAR",
    "NO_ROUTE_NAME",
    "SettlementCalculation",
    "latest_confirmed",
    "method_bucket",
    "calculate_settlement",
]

_log = logging.getLogger(__name__)

MODE_SINCE_LAST = "since_last_settlement"
MODE_CALENDAR = "calendar_week"
NO_ROUTE_NAME = "(no route)"


@dataclass
class SettlementCalculation:
    driver_id: str
    week_start_date: str
    week_end_date: str
    period_start: str  # anchor timestamp, or week start in calendar mode
    mode: str
    total_delivered: float = 0.0
    total_received: float = 0.0
    total_to_settle: float = 0.0
    cash_total: float = 0.0
    mbway_total: float = 0.0
    transfer_total: float = 0.0
    other_total: float = 0.0
    route_totals: List[RouteSettlementTotal] = field(default_factory=list)
    client_payments: List[ClientPaymentSummary] = field(default_factory=list)
    payments_count: int = 0
    deliveries_count: int = 0


def latest_confirmed(driver_id: str, settlements: Iterable[SettlementRecord]) -> Optional[SettlementRecord]:
    """Most recent confirmed settlement: latest confirmed_at, ties broken by store order."""
    confirmed = [
        s for s in settlements
        if s.driver_id == driver_id and s.status == "confirmed" and s.confirmed_at
    ]
    if not confirmed:
        return None
    return max(confirmed, key=lambda s: (s.confirmed_at, s.seq if s.seq is not None else -1))


def method_bucket(method: str) -> str:
    if method == METHOD_CASH:
        return "cash"
    if method == METHOD_MBWAY:
        return "mbway"
    if method == METHOD_TRANSFER:
        return "transfer"
    return "other"


def _delivery_stamp(d: DeliveryRecord) -> str:
    return d.delivered_at or d.created_at or ""


def calculate_settlement(
    driver_id: str,
    week_start: str,
    payments: Iterable[PaymentRecord],
    deliveries: Iterable[DeliveryRecord],
    settlements: Iterable[SettlementRecord],
    clients: Sequence[Client] | Dict[str, Client] = (),
    routes: Sequence[Route] | Dict[str, Route] = (),
    until: Optional[str] = None,
) -> SettlementCalculation:
    """
    Pure and idempotent: the same inputs always give the same totals.
    `clients` and `routes` only supply names and fallback routes. `until`
    caps the period at a confirmation time: payments created and deliveries
    delivered after it belong to the next period.
    """
    clients_by_id = clients if isinstance(clients, dict) else {c.client_id: c for c in clients}
    routes_by_id = routes if isinstance(routes, dict) else {r.route_id: r for r in routes}
    week_end = (parse_iso(week_start) + timedelta(days=6)).isoformat()

    anchor = latest_confirmed(driver_id, settlements)
    if anchor is not None:
        t = anchor.confirmed_at
        mode, period_start = MODE_SINCE_LAST, t
        own_payments = [p for p in payments if p.driver_id == driver_id and (p.created_at or "") > t]
        own_deliveries = [
            d for d in deliveries
            if d.driver_id == driver_id and d.status == "delivered" and _delivery_stamp(d) > t
        ]
    else:
        mode, period_start = MODE_CALENDAR, week_start
        own_payments = [p for p in payments if p.driver_id == driver_id and week_start <= p.date <= week_end]
        own_deliveries = [
            d for d in deliveries
            if d.driver_id == driver_id and d.status == "delivered" and week_start <= d.date <= week_end
        ]
    if until is not None:
        own_payments = [p for p in own_payments if (p.created_at or "") <= until]
        own_deliveries = [d for d in own_deliveries if _delivery_stamp(d) <= until]
    _log.debug(
        "calculate_settlement %s (%s from %s): %d payments, %d deliveries",
        driver_id, mode, period_start, len(own_payments), len(own_deliveries),
    )

    calc = SettlementCalculation(
        driver_id=driver_id,
        week_start_date=week_start,
        week_end_date=week_end,
        period_start=period_start,
        mode=mode,
        payments_count=len(own_payments),
        deliveries_count=len(own_deliveries),
    )

    def route_of(route_id: Optional[str], client_id: str) -> str:
        if route_id:
            return route_id
        client = clients_by_id.get(client_id)
        return (client.route_id if client else None) or ""

    def route_total(rid: str, bucket: Dict[str, RouteSettlementTotal]) -> RouteSettlementTotal:
        if rid not in bucket:
            name = routes_by_id[rid].name if rid in routes_by_id else (rid or NO_ROUTE_NAME)
            bucket[rid] = RouteSettlementTotal(route_id=rid, route_name=name)
        return bucket[rid]

    per_route: Dict[str, RouteSettlementTotal] = {}
    payers_by_route: Dict[str, set] = defaultdict(set)
    per_method = {"cash": 0.0, "mbway": 0.0, "transfer": 0.0, "other": 0.0}
    per_client: Dict[str, List[PaymentRecord]] = defaultdict(list)

    for d in own_deliveries:
        value = float(d.total_value or 0.0)
        calc.total_delivered += value
        route_total(route_of(d.route_id, d.client_id), per_route).total_delivered += value

    for p in own_payments:
        amount = float(p.amount)
        calc.total_received += amount
        per_method[method_bucket(p.method)] += amount
        rid = route_of(p.route_id, p.client_id)
        route_total(rid, per_route).total_received += amount
        payers_by_route[rid].add(p.client_id)
        per_client[p.client_id].append(p)

    calc.cash_total = round_money(per_method["cash"])
    calc.mbway_total = round_money(per_method["mbway"])
    calc.transfer_total = round_money(per_method["transfer"])
    calc.other_total = round_money(per_method["other"])
    calc.total_delivered = round_money(calc.total_delivered)
    calc.total_received = round_money(calc.total_received)
    calc.total_to_settle = calc.cash_total

    for rid, rt in per_route.items():
        rt.total_delivered = round_money(rt.total_delivered)
        rt.total_received = round_money(rt.total_received)
        rt.clients_paid = len(payers_by_route.get(rid, ()))
    calc.route_totals = sorted(per_route.values(), key=lambda r: (r.route_name.lower(), r.route_id))

    for cid, plist in per_client.items():
        client = clients_by_id.get(cid)
        rid = route_of(plist[-1].route_id, cid) or None
        calc.client_payments.append(
            ClientPaymentSummary(
                client_id=cid,
                client_name=client.name if client else cid,
                route_id=rid,
                route_name=(routes_by_id[rid].name if rid in routes_by_id else rid) if rid else None,
                total_paid=round_money(sum(float(p.amount) for p in plist)),
                method=", ".join(sorted({p.method for p in plist})),
                payment_dates=sorted({p.date for p in plist}),
            )
        )
    calc.client_payments.sort(key=lambda c: (c.client_name.lower(), c.client_id))
    return calc
