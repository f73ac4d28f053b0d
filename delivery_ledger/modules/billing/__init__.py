# delivery_ledger/modules/billing/__init__.py
from .period_debt import DebtResult, debt_for_period, effective_price
from .schedule_history import items_for_day, schedule_at, weekday_key

__all__ = [
    "DebtResult",
    "debt_for_period",
    "effective_price",
    "items_for_day",
    "schedule_at",
    "weekday_key",
]
