# delivery_ledger/modules/cashbox/__init__.py
from .closure import closure_status, daily_closure
from .service import CashBoxService

__all__ = ["closure_status", "daily_closure", "CashBoxService"]
