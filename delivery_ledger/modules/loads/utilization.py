"""
loads/utilization.py

Sell-through of the daily loads.

A load starts with the quantities a driver takes out; on completion the
driver reports, per product, what was sold and what came back. The caller
guarantees sold + returned == loaded for every product; nothing here
re-derives one from the other.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date as _date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ...constants import HIGH_RETURN_RATIO, UTILIZATION_FAIR, UTILIZATION_GOOD
from ...database.repositories.clients_repo import Client
from ...database.repositories.loads_repo import LoadRecord, ReturnItem
from ...database.repositories.products_repo import Product
from ...utils.helpers import ceil_qty, parse_iso
from ..billing.schedule_history import items_for_day, schedule_at

__all__ = [
    "ProductLoadLine",
    "DriverLoadTotals",
    "DailyLoadReport",
    "utilization_rate",
    "utilization_level",
    "load_totals",
    "complete_load",
    "daily_load_report",
    "scheduled_load_for_day",
]

_log = logging.getLogger(__name__)


@dataclass
class ProductLoadLine:
    product_id: str
    product_name: str
    loaded: int = 0
    sold: int = 0
    returned: int = 0
    utilization_rate: int = 0
    alert_high_return: bool = False


@dataclass
class DriverLoadTotals:
    driver_id: str
    driver_name: str
    loads: List[LoadRecord] = field(default_factory=list)
    total_loaded: int = 0
    total_sold: int = 0
    total_returned: int = 0
    utilization_rate: int = 0


@dataclass
class DailyLoadReport:
    date: str
    drivers: List[DriverLoadTotals] = field(default_factory=list)
    total_loaded: int = 0
    total_sold: int = 0
    total_returned: int = 0
    utilization_rate: int = 0
    product_breakdown: List[ProductLoadLine] = field(default_factory=list)


def utilization_rate(sold: float, loaded: float) -> int:
    """Percentage sold, rounded half up; 0 when nothing was loaded."""
    if loaded <= 0:
        return 0
    return int(sold * 100.0 / loaded + 0.5)


def utilization_level(rate: float) -> str:
    if rate >= UTILIZATION_GOOD:
        return "good"
    if rate >= UTILIZATION_FAIR:
        return "fair"
    return "poor"


def load_totals(
    load_items: Mapping[str, int],
    return_items: Iterable[ReturnItem] = (),
) -> tuple[int, int, int, int]:
    """(total_loaded, total_sold, total_returned, utilization_rate)"""
    loaded = sum(int(q) for q in load_items.values())
    sold = 0
    returned = 0
    for ri in return_items:
        sold += int(ri.sold)
        returned += int(ri.returned)
    return loaded, sold, returned, utilization_rate(sold, loaded)


def complete_load(load: LoadRecord, return_items: Sequence[ReturnItem], now: str) -> LoadRecord:
    """A completed copy of `load` carrying the reported returns and derived totals."""
    loaded, sold, returned, rate = load_totals(load.load_items, return_items)
    return replace(
        load,
        status="completed",
        return_items=list(return_items),
        total_loaded=loaded,
        total_sold=sold,
        total_returned=returned,
        utilization_rate=rate,
        updated_at=now,
    )


def daily_load_report(
    date: str,
    loads: Iterable[LoadRecord],
    products: Sequence[Product] | Dict[str, Product],
    drivers: Optional[Mapping[str, str]] = None,
) -> DailyLoadReport:
    """
    Per-driver totals and a cross-driver product breakdown for one date.
    `drivers` maps driver id to display name.
    """
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    names = drivers or {}
    report = DailyLoadReport(date=date)

    per_driver: Dict[str, DriverLoadTotals] = {}
    per_product: Dict[str, ProductLoadLine] = {}
    for load in loads:
        if load.date != date:
            continue
        loaded, sold, returned, _ = load_totals(load.load_items, load.return_items)
        d = per_driver.setdefault(
            load.driver_id, DriverLoadTotals(load.driver_id, names.get(load.driver_id, load.driver_id))
        )
        d.loads.append(load)
        d.total_loaded += loaded
        d.total_sold += sold
        d.total_returned += returned

        for pid, qty in load.load_items.items():
            line = per_product.setdefault(
                pid, ProductLoadLine(pid, by_id[pid].name if pid in by_id else pid)
            )
            line.loaded += int(qty)
        for ri in load.return_items:
            line = per_product.setdefault(
                ri.product_id,
                ProductLoadLine(ri.product_id, by_id[ri.product_id].name if ri.product_id in by_id else ri.product_id),
            )
            line.sold += int(ri.sold)
            line.returned += int(ri.returned)

    for d in per_driver.values():
        d.utilization_rate = utilization_rate(d.total_sold, d.total_loaded)
        report.total_loaded += d.total_loaded
        report.total_sold += d.total_sold
        report.total_returned += d.total_returned
    report.utilization_rate = utilization_rate(report.total_sold, report.total_loaded)

    for line in per_product.values():
        line.utilization_rate = utilization_rate(line.sold, line.loaded)
        line.alert_high_return = line.loaded > 0 and line.returned / line.loaded > HIGH_RETURN_RATIO

    report.drivers = sorted(per_driver.values(), key=lambda d: d.driver_name.lower())
    report.product_breakdown = sorted(per_product.values(), key=lambda l: l.product_name.lower())
    _log.debug("daily_load_report %s: %d drivers, %d products", date, len(report.drivers), len(report.product_breakdown))
    return report


def scheduled_load_for_day(
    clients: Iterable[Client],
    products: Sequence[Product] | Dict[str, Product],
    date: Union[str, _date],
) -> Dict[str, int]:
    """
    Quantity of each product a driver must take for the scheduled clients
    served on `date` (active, not dynamic, not skipping that date). Pass the
    driver's clients only. Unknown products are left out.
    """
    target = date if isinstance(date, _date) else parse_iso(date)
    iso = target.isoformat()
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    totals: Dict[str, float] = {}
    for client in clients:
        if client.is_dynamic_choice or not client.is_active or iso in (client.skipped_dates or set()):
            continue
        for item in items_for_day(schedule_at(client, iso), target):
            if item.product_id not in by_id:
                continue
            totals[item.product_id] = totals.get(item.product_id, 0.0) + float(item.quantity)
    return {pid: ceil_qty(q) for pid, q in totals.items() if q > 0}
