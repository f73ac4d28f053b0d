"""
cashbox/closure.py

End-of-day cash check for a driver: the cash fund taken out in the morning
plus the cash collected that day is what should be in hand; the driver's
count is compared against it.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, Optional, Sequence

from ...constants import CASH_TOLERANCE
from ...database.repositories.cash_box_repo import (
    DailyCashFund,
    DailyClosure,
    DomainError,
    RouteReceivedTotal,
)
from ...database.repositories.clients_repo import Client
from ...database.repositories.payments_repo import PaymentRecord
from ...database.repositories.products_repo import Route
from ...utils.helpers import round_money
from ...utils.validators import is_non_negative_number
from ..settlement.reconciler import NO_ROUTE_NAME, method_bucket

__all__ = ["closure_status", "daily_closure"]


def closure_status(difference: float) -> str:
    if abs(difference) < CASH_TOLERANCE:
        return "balanced"
    return "surplus" if difference > 0 else "shortage"


def daily_closure(
    driver_id: str,
    date: str,
    cash_fund: DailyCashFund | float | None,
    payments: Iterable[PaymentRecord],
    counted_amount: float,
    routes: Sequence[Route] | Dict[str, Route] = (),
    clients: Sequence[Client] | Dict[str, Client] = (),
    observations: Optional[str] = None,
) -> DailyClosure:
    if not is_non_negative_number(counted_amount):
        raise DomainError("Counted amount must be zero or more.")
    if isinstance(cash_fund, DailyCashFund):
        fund = float(cash_fund.initial_amount)
    else:
        fund = float(cash_fund or 0.0)
    if fund < 0:
        raise DomainError("Cash fund must be zero or more.")

    routes_by_id = routes if isinstance(routes, dict) else {r.route_id: r for r in routes}
    clients_by_id = clients if isinstance(clients, dict) else {c.client_id: c for c in clients}

    per_method = {"cash": 0.0, "mbway": 0.0, "transfer": 0.0, "other": 0.0}
    per_route: Dict[str, float] = defaultdict(float)
    payers: Dict[str, set] = defaultdict(set)
    for p in payments:
        if p.driver_id != driver_id or p.date != date:
            continue
        per_method[method_bucket(p.method)] += float(p.amount)
        client = clients_by_id.get(p.client_id)
        rid = p.route_id or (client.route_id if client else None) or ""
        per_route[rid] += float(p.amount)
        payers[rid].add(p.client_id)

    expected = round_money(fund + per_method["cash"])
    counted = round_money(counted_amount)
    difference = round_money(counted - expected)
    route_totals = [
        RouteReceivedTotal(
            route_id=rid,
            route_name=routes_by_id[rid].name if rid in routes_by_id else (rid or NO_ROUTE_NAME),
            total_received=round_money(total),
            client_count=len(payers[rid]),
        )
        for rid, total in per_route.items()
    ]
    route_totals.sort(key=lambda r: (r.route_name.lower(), r.route_id))

    return DailyClosure(
        driver_id=driver_id,
        date=date,
        cash_fund_amount=round_money(fund),
        counted_amount=counted,
        total_cash=round_money(per_method["cash"]),
        total_mbway=round_money(per_method["mbway"]),
        total_transfer=round_money(per_method["transfer"]),
        total_other=round_money(per_method["other"]),
        expected_cash=expected,
        difference=difference,
        status=closure_status(difference),
        route_totals=route_totals,
        observations=(observations or "").strip() or None,
    )
