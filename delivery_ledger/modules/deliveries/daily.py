"""
deliveries/daily.py

The day's delivery sheet of a driver: pending records generated from the
scheduled clients' plans, and the summary shown while the route is run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date as _date
from typing import Dict, Iterable, List, Sequence, Union

from ...database.repositories.clients_repo import Client
from ...database.repositories.deliveries_repo import DeliveryItem, DeliveryRecord, items_total
from ...database.repositories.products_repo import Product, Route
from ...utils.helpers import parse_iso, round_money
from ..billing.period_debt import effective_price
from ..billing.schedule_history import items_for_day, schedule_at
from ..settlement.reconciler import NO_ROUTE_NAME

__all__ = [
    "ProductDayTotal",
    "RouteDayTotal",
    "DriverDailySummary",
    "delivery_id_for",
    "planned_items",
    "build_daily_deliveries",
    "daily_summary",
]

_log = logging.getLogger(__name__)


@dataclass
class ProductDayTotal:
    product_id: str
    product_name: str
    quantity: float = 0.0
    value: float = 0.0


@dataclass
class RouteDayTotal:
    route_id: str
    route_name: str
    client_count: int = 0
    total_value: float = 0.0
    delivered_count: int = 0
    pending_count: int = 0


@dataclass
class DriverDailySummary:
    date: str
    driver_id: str
    product_totals: List[ProductDayTotal] = field(default_factory=list)
    route_totals: List[RouteDayTotal] = field(default_factory=list)
    total_clients: int = 0
    total_delivered: int = 0
    total_not_delivered: int = 0
    total_pending: int = 0
    total_value: float = 0.0
    delivered_value: float = 0.0
    adjusted_value: float = 0.0  # value of the deliveries that did not happen


def delivery_id_for(client_id: str, date: str) -> str:
    return f"delivery-{client_id}-{date}"


def planned_items(client: Client, products: Dict[str, Product], day: _date) -> List[DeliveryItem]:
    """Priced delivery lines for the plan in force on `day`; unknown products are dropped."""
    lines: List[DeliveryItem] = []
    for item in items_for_day(schedule_at(client, day), day):
        price = effective_price(client, item.product_id, products)
        if price is None or item.quantity <= 0:
            continue
        lines.append(
            DeliveryItem(
                product_id=item.product_id,
                quantity=float(item.quantity),
                unit_price=price,
                total_price=round_money(float(item.quantity) * price),
            )
        )
    return lines


def build_daily_deliveries(
    driver_id: str,
    date: Union[str, _date],
    clients: Iterable[Client],
    products: Sequence[Product] | Dict[str, Product],
    existing: Iterable[DeliveryRecord],
    now: str,
) -> List[DeliveryRecord]:
    """
    New pending records for the driver's scheduled clients with something
    planned on `date`. Clients that already have a record that day, skip
    the date, are inactive or choose at delivery time get nothing.
    """
    day = date if isinstance(date, _date) else parse_iso(date)
    iso = day.isoformat()
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    already = {d.client_id for d in existing if d.date == iso}

    out: List[DeliveryRecord] = []
    for client in clients:
        if client.driver_id != driver_id or client.is_dynamic_choice or not client.is_active:
            continue
        if client.client_id in already or iso in (client.skipped_dates or set()):
            continue
        lines = planned_items(client, by_id, day)
        if not lines:
            continue
        out.append(
            DeliveryRecord(
                delivery_id=delivery_id_for(client.client_id, iso),
                date=iso,
                driver_id=driver_id,
                client_id=client.client_id,
                items=lines,
                total_value=items_total(lines),
                status="pending",
                route_id=client.route_id,
                created_at=now,
                updated_at=now,
            )
        )
    _log.debug("build_daily_deliveries %s %s: %d new", driver_id, iso, len(out))
    return out


def daily_summary(
    driver_id: str,
    date: str,
    deliveries: Iterable[DeliveryRecord],
    products: Sequence[Product] | Dict[str, Product],
    routes: Sequence[Route] | Dict[str, Route] = (),
) -> DriverDailySummary:
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    routes_by_id = routes if isinstance(routes, dict) else {r.route_id: r for r in routes}
    summary = DriverDailySummary(date=date, driver_id=driver_id)

    per_product: Dict[str, ProductDayTotal] = {}
    per_route: Dict[str, RouteDayTotal] = {}
    clients_seen: set[str] = set()
    for d in deliveries:
        if d.driver_id != driver_id or d.date != date:
            continue
        value = float(d.total_value or 0.0)
        clients_seen.add(d.client_id)
        summary.total_value += value

        rid = d.route_id or ""
        rt = per_route.get(rid)
        if rt is None:
            name = routes_by_id[rid].name if rid in routes_by_id else (rid or NO_ROUTE_NAME)
            rt = per_route[rid] = RouteDayTotal(rid, name)
        rt.client_count += 1
        rt.total_value += value

        if d.status == "delivered":
            summary.total_delivered += 1
            summary.delivered_value += value
            rt.delivered_count += 1
        elif d.status == "not_delivered":
            summary.total_not_delivered += 1
            summary.adjusted_value += value
            continue
        else:
            summary.total_pending += 1
            rt.pending_count += 1

        for item in d.items:
            pt = per_product.setdefault(
                item.product_id,
                ProductDayTotal(item.product_id, by_id[item.product_id].name if item.product_id in by_id else item.product_id),
            )
            pt.quantity += float(item.quantity)
            pt.value += float(item.total_price or 0.0)

    summary.total_clients = len(clients_seen)
    summary.total_value = round_money(summary.total_value)
    summary.delivered_value = round_money(summary.delivered_value)
    summary.adjusted_value = round_money(summary.adjusted_value)
    for pt in per_product.values():
        pt.value = round_money(pt.value)
    for rt in per_route.values():
        rt.total_value = round_money(rt.total_value)
    summary.product_totals = sorted(per_product.values(), key=lambda p: p.product_name.lower())
    summary.route_totals = sorted(per_route.values(), key=lambda r: (r.route_name.lower(), r.route_id))
    return summary
