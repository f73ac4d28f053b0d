"""
forecasting/predictor.py

Recommended order for a dynamic client on a date, and the extra load a
driver should carry for all of their dynamic clients.

Below the history threshold a prediction is returned empty with
has_history=False; callers show "still learning" instead of a guess.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date as _date
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ...constants import (
    CONFIDENCE_HIGH_ORDERS,
    CONFIDENCE_MEDIUM_ORDERS,
    MIN_HISTORY_RECORDS,
    SAFETY_MARGIN_PERCENT,
)
from ...database.repositories.clients_repo import Client
from ...database.repositories.consumption_repo import ConsumptionRecord
from ...database.repositories.products_repo import Product
from ...utils.helpers import ceil_qty, floor_qty, parse_iso, round_money
from .consumption_stats import ordered_product_ids, product_stats

__all__ = [
    "PredictorSettings",
    "PredictedItem",
    "Prediction",
    "RecommendedLoadItem",
    "DynamicLoadSummary",
    "confidence_for",
    "predict",
    "driver_load_summary",
]

_log = logging.getLogger(__name__)

DateLike = Union[str, _date]


@dataclass
class PredictorSettings:
    safety_margin_percent: float = SAFETY_MARGIN_PERCENT
    min_history_records: int = MIN_HISTORY_RECORDS


@dataclass
class PredictedItem:
    product_id: str
    product_name: str
    min_quantity: int
    avg_quantity: float
    max_quantity: int
    recommended_quantity: int


@dataclass
class Prediction:
    client_id: str
    client_name: str
    date: str
    day_of_week: int
    route_id: str | None = None
    has_history: bool = False
    confidence: str = "low"  # low | medium | high
    predicted_items: List[PredictedItem] = field(default_factory=list)
    predicted_total_value: float = 0.0


@dataclass
class RecommendedLoadItem:
    product_id: str
    product_name: str
    min_total: int = 0
    avg_total: float = 0.0
    max_total: int = 0
    recommended_total: int = 0


@dataclass
class DynamicLoadSummary:
    date: str
    driver_id: str
    dynamic_clients_count: int = 0
    predictions: List[Prediction] = field(default_factory=list)
    recommended_load: List[RecommendedLoadItem] = field(default_factory=list)
    total_recommended_value: float = 0.0


def confidence_for(order_count: int) -> str:
    if order_count >= CONFIDENCE_HIGH_ORDERS:
        return "high"
    if order_count >= CONFIDENCE_MEDIUM_ORDERS:
        return "medium"
    return "low"


def _unit_price(
    client: Client,
    product_id: str,
    products: Dict[str, Product],
    own: List[ConsumptionRecord],
) -> float:
    """Client override, product default, then the last price the client actually paid."""
    override = (client.custom_prices or {}).get(product_id)
    if override is not None:
        return float(override)
    if product_id in products:
        return float(products[product_id].price)
    for r in reversed(own):
        for item in r.items:
            if item.product_id == product_id:
                return float(item.price)
    return 0.0


def predict(
    client: Client,
    records: Iterable[ConsumptionRecord],
    products: Sequence[Product] | Dict[str, Product],
    date: DateLike,
    settings: Optional[PredictorSettings] = None,
) -> Prediction:
    settings = settings or PredictorSettings()
    target = date if isinstance(date, _date) else parse_iso(date)
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    own = sorted(
        (r for r in records if r.client_id == client.client_id),
        key=lambda r: (r.date, r.created_at or "", r.record_id),
    )

    prediction = Prediction(
        client_id=client.client_id,
        client_name=client.name,
        date=target.isoformat(),
        day_of_week=target.weekday(),
        route_id=client.route_id,
    )
    if len(own) < settings.min_history_records:
        _log.debug("predict %s: %d records, below threshold", client.client_id, len(own))
        return prediction

    prediction.has_history = True
    prediction.confidence = confidence_for(len(own))
    factor = 1 + settings.safety_margin_percent / 100.0
    total_value = 0.0
    for pid in ordered_product_ids(own):
        name = by_id[pid].name if pid in by_id else pid
        stats = product_stats(own, pid, name)
        avg = stats.weekday_average(prediction.day_of_week)
        if avg is None:
            avg = stats.average_quantity
        sd = stats.std_deviation
        recommended = ceil_qty(avg * factor)
        prediction.predicted_items.append(
            PredictedItem(
                product_id=pid,
                product_name=name,
                min_quantity=max(1, floor_qty(avg - sd)),
                avg_quantity=round(avg, 2),
                max_quantity=ceil_qty(avg + sd),
                recommended_quantity=recommended,
            )
        )
        total_value += recommended * _unit_price(client, pid, by_id, own)
    prediction.predicted_total_value = round_money(total_value)
    return prediction


def driver_load_summary(
    driver_id: str,
    clients: Iterable[Client],
    records: Iterable[ConsumptionRecord],
    products: Sequence[Product] | Dict[str, Product],
    date: DateLike,
    settings: Optional[PredictorSettings] = None,
) -> DynamicLoadSummary:
    """Predictions for the driver's active dynamic clients, summed per product."""
    target = date if isinstance(date, _date) else parse_iso(date)
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    records = list(records)
    dynamic = [
        c for c in clients
        if c.driver_id == driver_id and c.is_dynamic_choice and c.is_active
    ]

    summary = DynamicLoadSummary(date=target.isoformat(), driver_id=driver_id, dynamic_clients_count=len(dynamic))
    totals: Dict[str, RecommendedLoadItem] = {}
    for client in dynamic:
        p = predict(client, records, by_id, target, settings)
        summary.predictions.append(p)
        summary.total_recommended_value += p.predicted_total_value
        for item in p.predicted_items:
            agg = totals.setdefault(item.product_id, RecommendedLoadItem(item.product_id, item.product_name))
            agg.min_total += item.min_quantity
            agg.avg_total = round(agg.avg_total + item.avg_quantity, 2)
            agg.max_total += item.max_quantity
            agg.recommended_total += item.recommended_quantity

    summary.recommended_load = sorted(totals.values(), key=lambda r: r.product_name.lower())
    summary.total_recommended_value = round_money(summary.total_recommended_value)
    return summary
