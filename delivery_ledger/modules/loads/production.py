"""
loads/production.py

How much of each product to bake tomorrow, from what the drivers actually
sold over a trailing window of completed loads.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date as _date, timedelta
from typing import Dict, Iterable, List, Sequence, Union

from ...constants import (
    PRODUCTION_CONFIDENCE_HIGH_POINTS,
    PRODUCTION_CONFIDENCE_MEDIUM_POINTS,
    PRODUCTION_MARGIN,
    PRODUCTION_TREND_MIN_POINTS,
    PRODUCTION_TREND_RECENT_DAYS,
    PRODUCTION_WINDOW_DAYS,
)
from ...database.repositories.loads_repo import LoadRecord
from ...database.repositories.products_repo import Product
from ...utils.helpers import ceil_qty, mean, parse_iso
from ..forecasting.consumption_stats import classify_trend

__all__ = ["ProductionSuggestion", "production_suggestions", "production_confidence"]

_log = logging.getLogger(__name__)


@dataclass
class ProductionSuggestion:
    product_id: str
    product_name: str
    avg_daily: float = 0.0
    avg_returned: float = 0.0
    suggested_quantity: int = 0
    confidence: str = "low"  # low | medium | high
    trend: str = "stable"    # up | down | stable
    data_points: int = 0     # days with data in the window


def production_confidence(points: int) -> str:
    if points >= PRODUCTION_CONFIDENCE_HIGH_POINTS:
        return "high"
    if points >= PRODUCTION_CONFIDENCE_MEDIUM_POINTS:
        return "medium"
    return "low"


def production_suggestions(
    loads: Iterable[LoadRecord],
    products: Sequence[Product] | Dict[str, Product],
    end_date: Union[str, _date],
    days: int = PRODUCTION_WINDOW_DAYS,
) -> List[ProductionSuggestion]:
    """
    One suggestion per catalog product (plus any product seen in the loads),
    over completed loads dated in [end_date - days + 1, end_date].

    Quantities from several drivers on the same date are added into one data
    point. A product without data points falls back to its target quantity.
    """
    end = end_date if isinstance(end_date, _date) else parse_iso(end_date)
    start = end - timedelta(days=max(days, 1) - 1)
    start_iso, end_iso = start.isoformat(), end.isoformat()
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}

    sold: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    returned: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for load in loads:
        if load.status != "completed" or not (start_iso <= load.date <= end_iso):
            continue
        for ri in load.return_items:
            sold[ri.product_id][load.date] += int(ri.sold)
            returned[ri.product_id][load.date] += int(ri.returned)

    out: List[ProductionSuggestion] = []
    for pid in list(by_id) + [p for p in sold if p not in by_id]:
        product = by_id.get(pid)
        s = ProductionSuggestion(product_id=pid, product_name=product.name if product else pid)
        dates = sorted(sold[pid]) if pid in sold else []
        s.data_points = len(dates)
        if not dates:
            s.suggested_quantity = int(product.target_quantity or 0) if product else 0
        else:
            daily_sold = [float(sold[pid][d]) for d in dates]
            daily_returned = [float(returned[pid][d]) for d in dates]
            s.avg_daily = round(mean(daily_sold), 2)
            s.avg_returned = round(mean(daily_returned), 2)
            s.suggested_quantity = ceil_qty(mean(daily_sold) * PRODUCTION_MARGIN)
            s.trend = classify_trend(
                daily_sold,
                min_points=PRODUCTION_TREND_MIN_POINTS,
                recent=PRODUCTION_TREND_RECENT_DAYS,
                labels=("up", "stable", "down"),
            )
        s.confidence = production_confidence(s.data_points)
        out.append(s)

    out.sort(key=lambda s: s.product_name.lower())
    _log.debug("production_suggestions %s..%s: %d products", start_iso, end_iso, len(out))
    return out
