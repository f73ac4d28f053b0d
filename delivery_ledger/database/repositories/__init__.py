# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from delivery_ledger.database.repositories import (
        # Clients
        ClientsRepo, Client, ScheduleItem, ScheduleSnapshot, ClientsDomainError,
        # Products / routes
        ProductsRepo, Product, Route,
        # Event logs
        DeliveriesRepo, DeliveryRecord, ConsumptionRepo, ConsumptionRecord,
        LoadsRepo, LoadRecord, PaymentsRepo, PaymentRecord,
        # Settlements / cash box
        SettlementsRepo, SettlementRecord, CashBoxRepo,
    )
"""

# ---------------- Clients ----------------
from .clients_repo import (
    ClientsRepo,
    Client,
    Schedule,
    ScheduleItem,
    ScheduleSnapshot,
    DomainError as ClientsDomainError,
)

# -------------- Products / routes --------------
from .products_repo import (
    ProductsRepo,
    Product,
    Route,
    DomainError as ProductsDomainError,
)

# ---------------- Deliveries ----------------
from .deliveries_repo import (
    DeliveriesRepo,
    DeliveryItem,
    DeliveryRecord,
    DomainError as DeliveriesDomainError,
)

# -------------- Dynamic consumption --------------
from .consumption_repo import (
    ConsumptionRepo,
    ConsumptionItem,
    ConsumptionRecord,
    make_consumption_record,
    DomainError as ConsumptionDomainError,
)

# ------------------ Loads ------------------
from .loads_repo import (
    LoadsRepo,
    LoadRecord,
    ReturnItem,
    DomainError as LoadsDomainError,
)

# ----------------- Payments -----------------
from .payments_repo import (
    PaymentsRepo,
    PaymentRecord,
    DomainError as PaymentsDomainError,
)

# ---------------- Settlements ----------------
from .settlements_repo import (
    SettlementsRepo,
    SettlementRecord,
    RouteSettlementTotal,
    ClientPaymentSummary,
    DomainError as SettlementsDomainError,
)

# ----------------- Cash box -----------------
from .cash_box_repo import (
    CashBoxRepo,
    DailyCashFund,
    DailyClosure,
    RouteReceivedTotal,
    DomainError as CashBoxDomainError,
)

__all__ = [
    # clients_repo
    "ClientsRepo",
    "Client",
    "Schedule",
    "ScheduleItem",
    "ScheduleSnapshot",
    "ClientsDomainError",
    # products_repo
    "ProductsRepo",
    "Product",
    "Route",
    "ProductsDomainError",
    # deliveries_repo
    "DeliveriesRepo",
    "DeliveryItem",
    "DeliveryRecord",
    "DeliveriesDomainError",
    # consumption_repo
    "ConsumptionRepo",
    "ConsumptionItem",
    "ConsumptionRecord",
    "make_consumption_record",
    "ConsumptionDomainError",
    # loads_repo
    "LoadsRepo",
    "LoadRecord",
    "ReturnItem",
    "LoadsDomainError",
    # payments_repo
    "PaymentsRepo",
    "PaymentRecord",
    "PaymentsDomainError",
    # settlements_repo
    "SettlementsRepo",
    "SettlementRecord",
    "RouteSettlementTotal",
    "ClientPaymentSummary",
    "SettlementsDomainError",
    # cash_box_repo
    "CashBoxRepo",
    "DailyCashFund",
    "DailyClosure",
    "RouteReceivedTotal",
    "CashBoxDomainError",
]
