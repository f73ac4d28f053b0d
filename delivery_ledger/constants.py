# delivery_ledger/constants.py

DATA_DIR = "data"
DB_FILE_NAME = "ledger.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# Schedule keys, indexed by date.weekday() (Monday = 0)
WEEKDAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# ---- Payments ----
METHOD_CASH = "Dinheiro"
METHOD_MBWAY = "MBWay"
METHOD_TRANSFER = "Transferência"
METHOD_CARD = "Cartão"
METHOD_OTHER = "Outro"
PAYMENT_METHODS: tuple[str, ...] = (
    METHOD_CASH,
    METHOD_MBWAY,
    METHOD_TRANSFER,
    METHOD_CARD,
    METHOD_OTHER,
)
PAYMENT_FREQUENCIES: tuple[str, ...] = ("Diário", "Semanal", "Mensal", "Personalizado")

# ---- Billing ----
DEBT_MAX_DAYS = 365

# ---- Dynamic clients ----
SAFETY_MARGIN_PERCENT = 20.0
MIN_HISTORY_RECORDS = 3
CONFIDENCE_HIGH_ORDERS = 10
CONFIDENCE_MEDIUM_ORDERS = 5
TREND_MIN_ORDERS = 5
TREND_RECENT_ORDERS = 5
TREND_BAND = 0.10

# ---- Loads & production ----
HIGH_RETURN_RATIO = 0.2
PRODUCTION_MARGIN = 1.1
PRODUCTION_WINDOW_DAYS = 7
PRODUCTION_TREND_MIN_POINTS = 5
PRODUCTION_TREND_RECENT_DAYS = 3
PRODUCTION_CONFIDENCE_HIGH_POINTS = 7
PRODUCTION_CONFIDENCE_MEDIUM_POINTS = 3
UTILIZATION_GOOD = 80
UTILIZATION_FAIR = 60

# ---- Cash box ----
CASH_TOLERANCE = 0.01
# Euro faces accepted in a counted-cash breakdown
DENOMINATIONS: tuple[float, ...] = (
    500.0, 200.0, 100.0, 50.0, 20.0, 10.0, 5.0,
    2.0, 1.0, 0.5, 0.2, 0.1, 0.05, 0.02, 0.01,
)
