"""
billing/schedule_history.py

Which delivery plan was in force on a given day.

A client's plan history is an append-only list of snapshots. The plan in
effect on date D is the snapshot with the latest date <= D; a date earlier
than every snapshot resolves to the oldest one, and a client without history
uses its current plan. Pure functions, no I/O.
"""
from __future__ import annotations

from datetime import date as _date
from typing import List, Union

from ...constants import WEEKDAY_KEYS
from ...database.repositories.clients_repo import Client, Schedule, ScheduleItem

__all__ = ["schedule_at", "items_for_day", "weekday_key"]

DateLike = Union[str, _date]


def _iso(d: DateLike) -> str:
    return d.isoformat() if isinstance(d, _date) else str(d)[:10]


def weekday_key(d: _date) -> str:
    return WEEKDAY_KEYS[d.weekday()]


def schedule_at(client: Client, target: DateLike) -> Schedule:
    """
    Snapshots sharing a date are resolved in append order: the later one
    replaced the earlier one on that day.
    """
    history = client.schedule_history or []
    if not history:
        return client.delivery_schedule or {}

    target_iso = _iso(target)
    oldest_first = sorted(history, key=lambda s: s.date)  # stable: append order kept within a date
    for snapshot in reversed(oldest_first):
        if snapshot.date <= target_iso:
            return snapshot.schedule
    earliest = oldest_first[0].date
    return [s for s in oldest_first if s.date == earliest][-1].schedule


def items_for_day(schedule: Schedule, d: _date) -> List[ScheduleItem]:
    """Scheduled items for the weekday of `d` (empty list when none)."""
    return list((schedule or {}).get(weekday_key(d)) or [])
