"""
billing/period_debt.py

What a client owes over a date range.

Two billing sources:
- scheduled clients bill from the plan in force on each day (see
  schedule_history.schedule_at), minus skip dates, at the client's price
  overrides or the product default;
- dynamic-choice clients bill from their realized (delivered) delivery
  records since the paid-through date.

Missing data never raises: an unknown product contributes 0, an empty or
reversed range gives an empty result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from ...constants import DEBT_MAX_DAYS
from ...database.repositories.clients_repo import Client, ScheduleItem
from ...database.repositories.deliveries_repo import DeliveryRecord
from ...database.repositories.products_repo import Product
from ...utils.helpers import fmt_money, iter_dates, parse_iso, round_money
from .schedule_history import items_for_day, schedule_at

__all__ = [
    "DebtResult",
    "effective_price",
    "default_period",
    "day_value",
    "debt_for_period",
]

_log = logging.getLogger(__name__)


@dataclass
class DebtResult:
    total: float = 0.0
    days_count: int = 0
    details: List[str] = field(default_factory=list)
    daily_value: float = 0.0  # average billed per counted day


def _qty(q: float) -> str:
    return str(int(q)) if float(q).is_integer() else f"{q:g}"


def _describe(items, products: Dict[str, Product]) -> str:
    return ", ".join(
        f"{_qty(i.quantity)}x {products[i.product_id].name if i.product_id in products else i.product_id}"
        for i in items
    )


def effective_price(client: Client, product_id: str, products: Dict[str, Product]) -> Optional[float]:
    """Client override, else the product default; None when the product no longer exists."""
    product = products.get(product_id)
    if product is None:
        return None
    override = (client.custom_prices or {}).get(product_id)
    return float(override) if override is not None else float(product.price)


def day_value(client: Client, items: Iterable[ScheduleItem], products: Dict[str, Product]) -> float:
    total = 0.0
    for item in items:
        price = effective_price(client, item.product_id, products)
        if price is None:
            continue
        total += float(item.quantity) * price
    return total


def default_period(client: Client, today: date) -> tuple[date, date]:
    """
    Billing window when the caller gives none: from the day after the
    paid-through date (or from the client's creation date) up to today.
    """
    if client.last_payment_date:
        start = parse_iso(client.last_payment_date) + timedelta(days=1)
    else:
        start = parse_iso(client.created_at) if client.created_at else today
    return start, today


def _as_products(products: Sequence[Product] | Dict[str, Product]) -> Dict[str, Product]:
    if isinstance(products, dict):
        return products
    return {p.product_id: p for p in products}


def _dynamic_debt(
    client: Client,
    products: Dict[str, Product],
    deliveries: Iterable[DeliveryRecord],
) -> DebtResult:
    paid_through = client.last_payment_date
    billable = sorted(
        (
            d
            for d in deliveries
            if d.client_id == client.client_id
            and d.status == "delivered"
            and (paid_through is None or d.date > paid_through)
        ),
        key=lambda d: (d.date, d.delivery_id),
    )
    result = DebtResult()
    for d in billable:
        value = float(d.total_value or 0.0)
        result.total += value
        result.days_count += 1
        result.details.append(f"{d.date}: {fmt_money(value)} ({_describe(d.items, products)})")
    return result


def _scheduled_debt(
    client: Client,
    products: Dict[str, Product],
    start: date,
    end: date,
) -> DebtResult:
    result = DebtResult()
    skipped = client.skipped_dates or set()
    for d in iter_dates(start, end):
        iso = d.isoformat()
        if iso in skipped:
            continue
        items = items_for_day(schedule_at(client, iso), d)
        if not items:
            continue
        value = day_value(client, items, products)
        if value > 0:
            result.total += value
            result.days_count += 1
            result.details.append(f"{iso}: {fmt_money(value)} ({_describe(items, products)})")
    return result


def debt_for_period(
    client: Client,
    products: Sequence[Product] | Dict[str, Product],
    deliveries: Iterable[DeliveryRecord] = (),
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    today: Optional[date] = None,
) -> DebtResult:
    """
    Amount owed by `client`.

    Scheduled clients are billed day by day over [date_from, date_to]
    (inclusive). A range longer than DEBT_MAX_DAYS keeps its most recent
    DEBT_MAX_DAYS days. Dynamic clients are billed from
    delivered records dated after last_payment_date; the range does not
    apply to them.
    """
    by_id = _as_products(products)

    if client.is_dynamic_choice:
        result = _dynamic_debt(client, by_id, deliveries)
    else:
        default_start, default_end = default_period(client, today or date.today())
        start = parse_iso(date_from) if date_from else default_start
        end = parse_iso(date_to) if date_to else default_end
        if end < start:
            _log.debug("debt_for_period: empty range %s..%s for client %s", start, end, client.client_id)
            return DebtResult()
        earliest = end - timedelta(days=DEBT_MAX_DAYS - 1)
        if start < earliest:
            _log.debug("debt_for_period: %s clamped to %s for client %s", start, earliest, client.client_id)
            start = earliest
        result = _scheduled_debt(client, by_id, start, end)

    result.total = round_money(result.total)
    result.daily_value = round_money(result.total / result.days_count) if result.days_count else 0.0
    return result
