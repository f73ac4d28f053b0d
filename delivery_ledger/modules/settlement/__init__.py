# delivery_ledger/modules/settlement/__init__.py
from .reconciler import SettlementCalculation, calculate_settlement, latest_confirmed
from .service import SettlementService

__all__ = ["SettlementCalculation", "calculate_settlement", "latest_confirmed", "SettlementService"]
