# delivery_ledger/modules/forecasting/__init__.py
from .consumption_stats import DynamicClientHistory, ProductConsumptionStats, client_history, product_stats
from .predictor import DynamicLoadSummary, Prediction, PredictorSettings, driver_load_summary, predict

__all__ = [
    "DynamicClientHistory",
    "ProductConsumptionStats",
    "client_history",
    "product_stats",
    "DynamicLoadSummary",
    "Prediction",
    "PredictorSettings",
    "driver_load_summary",
    "predict",
]
