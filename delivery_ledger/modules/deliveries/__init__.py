# delivery_ledger/modules/deliveries/__init__.py
from .daily import DriverDailySummary, build_daily_deliveries, daily_summary
from .schedule_events import ScheduleChanged, reconcile_pending_deliveries, update_schedule

__all__ = [
    "DriverDailySummary",
    "build_daily_deliveries",
    "daily_summary",
    "ScheduleChanged",
    "reconcile_pending_deliveries",
    "update_schedule",
]
