# delivery_ledger/modules/loads/__init__.py
from .production import ProductionSuggestion, production_suggestions
from .utilization import (
    DailyLoadReport,
    complete_load,
    daily_load_report,
    load_totals,
    scheduled_load_for_day,
    utilization_level,
)

__all__ = [
    "ProductionSuggestion",
    "production_suggestions",
    "DailyLoadReport",
    "complete_load",
    "daily_load_report",
    "load_totals",
    "scheduled_load_for_day",
    "utilization_level",
]
