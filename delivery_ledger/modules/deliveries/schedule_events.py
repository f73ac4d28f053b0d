"""
deliveries/schedule_events.py

Changing a client's plan is a write that emits a ScheduleChanged event;
pending deliveries already generated for the affected days are brought in
line by a separate reconciliation step. Delivered and not-delivered records
are history and are never touched.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from ...database.repositories.clients_repo import Client, ClientsRepo, Schedule, ScheduleSnapshot
from ...database.repositories.deliveries_repo import DeliveryRecord, items_total
from ...database.repositories.products_repo import Product
from ...utils.helpers import now_iso, parse_iso
from .daily import planned_items

__all__ = ["ScheduleChanged", "update_schedule", "reconcile_pending_deliveries"]


@dataclass(frozen=True)
class ScheduleChanged:
    client_id: str
    effective_date: str
    schedule: Schedule
    changed_at: str


def update_schedule(
    repo: ClientsRepo,
    client_id: str,
    schedule: Schedule,
    effective_date: Optional[str] = None,
) -> ScheduleChanged:
    snapshot = repo.append_schedule_snapshot(client_id, schedule, effective_date)
    return ScheduleChanged(
        client_id=client_id,
        effective_date=snapshot.date,
        schedule=snapshot.schedule,
        changed_at=now_iso(),
    )


def _with_event(client: Client, event: ScheduleChanged) -> Client:
    history = list(client.schedule_history or [])
    if any(s.date == event.effective_date and s.schedule == event.schedule for s in history):
        return client
    history.append(ScheduleSnapshot(event.effective_date, event.schedule))
    return replace(client, delivery_schedule=event.schedule, schedule_history=history)


def reconcile_pending_deliveries(
    event: ScheduleChanged,
    client: Client,
    deliveries: Iterable[DeliveryRecord],
    products: Sequence[Product] | Dict[str, Product],
) -> List[DeliveryRecord]:
    """
    Updated copies of the client's pending deliveries dated on or after the
    effective date, with planned lines rebuilt from the new plan. Extra lines
    added by the driver are kept. Returns only records whose lines changed.
    """
    by_id = products if isinstance(products, dict) else {p.product_id: p for p in products}
    current = _with_event(client, event)
    changed: List[DeliveryRecord] = []
    for d in deliveries:
        if d.client_id != event.client_id or d.status != "pending" or d.date < event.effective_date:
            continue
        lines = planned_items(current, by_id, parse_iso(d.date)) + [i for i in d.items if i.is_extra]
        if lines == d.items:
            continue
        changed.append(replace(d, items=lines, total_value=items_total(lines), updated_at=event.changed_at))
    return changed
