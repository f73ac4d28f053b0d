"""
forecasting/consumption_stats.py

Descriptive statistics over a dynamic client's consumption history.

Orders are consumption records that contain the product; a product listed
twice in one record counts once, with the quantities added. The standard
deviation is the population one. Pure functions, no I/O.
"""
from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from ...constants import TREND_BAND, TREND_MIN_ORDERS, TREND_RECENT_ORDERS
from ...database.repositories.clients_repo import Client
from ...database.repositories.consumption_repo import ConsumptionRecord
from ...database.repositories.products_repo import Product
from ...utils.helpers import mean, round_money

__all__ = [
    "DayOfWeekStat",
    "ProductConsumptionStats",
    "DynamicClientHistory",
    "product_stats",
    "client_history",
    "ordered_product_ids",
    "classify_trend",
]

_log = logging.getLogger(__name__)


@dataclass
class DayOfWeekStat:
    day_of_week: int  # date.weekday(), Monday = 0
    average_quantity: float
    order_count: int


@dataclass
class ProductConsumptionStats:
    product_id: str
    product_name: str = ""
    total_orders: int = 0
    total_quantity: float = 0.0
    average_quantity: float = 0.0
    min_quantity: float = 0.0
    max_quantity: float = 0.0
    std_deviation: float = 0.0
    last_order_date: Optional[str] = None
    trend: str = "stable"  # increasing | stable | decreasing
    by_day_of_week: List[DayOfWeekStat] = field(default_factory=list)

    def weekday_average(self, day_of_week: int) -> Optional[float]:
        for d in self.by_day_of_week:
            if d.day_of_week == day_of_week:
                return d.average_quantity
        return None


@dataclass
class DynamicClientHistory:
    client_id: str
    client_name: str
    total_deliveries: int = 0
    first_delivery_date: Optional[str] = None
    last_delivery_date: Optional[str] = None
    product_stats: List[ProductConsumptionStats] = field(default_factory=list)
    average_total_value: float = 0.0
    preferred_days: List[int] = field(default_factory=list)  # most visited weekday first


def _chronological(records: Iterable[ConsumptionRecord]) -> List[ConsumptionRecord]:
    return sorted(records, key=lambda r: (r.date, r.created_at or "", r.record_id))


def _pstdev(values: Sequence[float], avg: float) -> float:
    if not values:
        return 0.0
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def classify_trend(
    quantities: Sequence[float],
    *,
    min_points: int = TREND_MIN_ORDERS,
    recent: int = TREND_RECENT_ORDERS,
    band: float = TREND_BAND,
    labels: tuple[str, str, str] = ("increasing", "stable", "decreasing"),
) -> str:
    """
    Compare the mean of the `recent` newest values with the mean of the
    older ones. `quantities` is oldest first. Within ±band of the older mean
    the trend is stable; too few points, or nothing older, is stable too.
    """
    up, flat, down = labels
    if len(quantities) < min_points:
        return flat
    newest = quantities[-recent:]
    older = quantities[:-recent]
    if not older:
        return flat
    older_avg = mean(list(older))
    recent_avg = mean(list(newest))
    if older_avg <= 0:
        return up if recent_avg > 0 else flat
    if recent_avg > older_avg * (1 + band):
        return up
    if recent_avg < older_avg * (1 - band):
        return down
    return flat


def ordered_product_ids(records: Iterable[ConsumptionRecord]) -> List[str]:
    """Every product the records mention, in order of first appearance."""
    seen: Dict[str, None] = {}
    for r in _chronological(records):
        for item in r.items:
            seen.setdefault(item.product_id, None)
    return list(seen)


def product_stats(
    records: Iterable[ConsumptionRecord],
    product_id: str,
    product_name: str = "",
) -> ProductConsumptionStats:
    orders: List[tuple[ConsumptionRecord, float]] = []
    for r in _chronological(records):
        qty = sum(float(i.quantity) for i in r.items if i.product_id == product_id)
        if any(i.product_id == product_id for i in r.items):
            orders.append((r, qty))

    stats = ProductConsumptionStats(product_id=product_id, product_name=product_name or product_id)
    if not orders:
        return stats

    quantities = [q for _, q in orders]
    avg = mean(quantities)
    stats.total_orders = len(orders)
    stats.total_quantity = sum(quantities)
    stats.average_quantity = avg
    stats.min_quantity = min(quantities)
    stats.max_quantity = max(quantities)
    stats.std_deviation = _pstdev(quantities, avg)
    stats.last_order_date = orders[-1][0].date
    stats.trend = classify_trend(quantities)

    per_day: Dict[int, List[float]] = defaultdict(list)
    for r, q in orders:
        per_day[int(r.day_of_week)].append(q)
    stats.by_day_of_week = [
        DayOfWeekStat(day_of_week=d, average_quantity=mean(qs), order_count=len(qs))
        for d, qs in sorted(per_day.items())
    ]
    return stats


def client_history(
    client: Client,
    records: Iterable[ConsumptionRecord],
    products: Sequence[Product] | Dict[str, Product],
) -> DynamicClientHistory:
    """Everything learned so far about one dynamic client."""
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    own = _chronological(r for r in records if r.client_id == client.client_id)
    history = DynamicClientHistory(client_id=client.client_id, client_name=client.name)
    if not own:
        return history

    history.total_deliveries = len(own)
    history.first_delivery_date = own[0].date
    history.last_delivery_date = own[-1].date
    history.average_total_value = round_money(mean([float(r.total_value or 0.0) for r in own]))
    history.product_stats = [
        product_stats(own, pid, by_id[pid].name if pid in by_id else pid)
        for pid in ordered_product_ids(own)
    ]
    visits = Counter(int(r.day_of_week) for r in own)
    history.preferred_days = [d for d, _ in sorted(visits.items(), key=lambda kv: (-kv[1], kv[0]))]
    _log.debug("client_history %s: %d records, %d products", client.client_id, len(own), len(history.product_stats))
    return history
