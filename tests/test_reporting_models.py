# tests/test_reporting_models.py
from PySide6.QtCore import Qt
from PySide6.QtGui import QColor

from delivery_ledger.database.repositories import ClientPaymentSummary, RouteSettlementTotal, SettlementRecord
from delivery_ledger.modules.billing.service import ClientDebtRow
from delivery_ledger.modules.forecasting.predictor import RecommendedLoadItem
from delivery_ledger.modules.loads.production import ProductionSuggestion
from delivery_ledger.modules.loads.utilization import ProductLoadLine
from delivery_ledger.modules.reporting.model import (
    ClientDebtTableModel,
    LoadBreakdownTableModel,
    PredictionTableModel,
    ProductionSuggestionTableModel,
    RouteTotalsTableModel,
    SettlementClientPaymentsTableModel,
    SettlementHistoryTableModel,
)


def _cells(model, row):
    return [model.data(model.index(row, c), Qt.DisplayRole) for c in range(model.columnCount())]


def test_client_debt_model(app):
    model = ClientDebtTableModel([ClientDebtRow("c1", "Ana", "r1", None, 1234.5, 12, False)])
    assert model.rowCount() == 1
    assert model.headerData(3, Qt.Horizontal) == "Debt"
    assert _cells(model, 0) == ["Ana", "-", "12", "€1,234.50"]
    assert model.data(model.index(0, 0), Qt.TextAlignmentRole) == Qt.AlignLeft | Qt.AlignVCenter
    assert model.data(model.index(0, 3), Qt.TextAlignmentRole) == Qt.AlignRight | Qt.AlignVCenter


def test_set_rows_resets(app):
    model = RouteTotalsTableModel()
    assert model.rowCount() == 0
    model.set_rows([RouteSettlementTotal("r1", "Centro", 7.0, 19.0, 2)])
    assert _cells(model, 0) == ["Centro", "€7.00", "€19.00", "2"]
    assert model.row_at(0).route_id == "r1"


def test_settlement_models(app):
    payments = SettlementClientPaymentsTableModel(
        [ClientPaymentSummary("c1", "Ana", "r1", "Centro", 15.0, "Dinheiro, MBWay", ["2024-01-02", "2024-01-04"])]
    )
    assert _cells(payments, 0) == ["Ana", "Centro", "Dinheiro, MBWay", "2024-01-02, 2024-01-04", "€15.00"]

    short = SettlementRecord(
        "s1", "d1", "2024-01-01", "2024-01-07", total_to_settle=10.0, status="confirmed",
        confirmed_at="2024-01-08T18:30:00.000000Z", confirmed_by="admin", amount_delivered=9.5, variance=-0.5,
    )
    history = SettlementHistoryTableModel([short])
    assert _cells(history, 0) == [
        "2024-01-08 18:30:00", "2024-01-01 → 2024-01-07", "€10.00", "€9.50", "-€0.50", "admin",
    ]
    assert history.data(history.index(0, 4), Qt.ForegroundRole) == QColor(185, 28, 28)
    assert history.data(history.index(0, 2), Qt.ForegroundRole) is None


def test_load_breakdown_flags_high_returns(app):
    model = LoadBreakdownTableModel([
        ProductLoadLine("p1", "Pão", 100, 79, 21, 79, True),
        ProductLoadLine("p2", "Viana", 100, 55, 45, 55, True),
        ProductLoadLine("p3", "Broa", 10, 9, 1, 90, False),
    ])
    assert _cells(model, 0) == ["Pão", "100", "79", "21 ⚠", "79%"]
    assert model.data(model.index(0, 4), Qt.ForegroundRole) == QColor(180, 120, 0)
    assert model.data(model.index(1, 4), Qt.ForegroundRole) == QColor(185, 28, 28)
    assert model.data(model.index(2, 4), Qt.ForegroundRole) == QColor(22, 128, 61)
    assert _cells(model, 2)[3] == "1"


def test_production_and_prediction_models(app):
    prod = ProductionSuggestionTableModel([ProductionSuggestion("p1", "Pão", 10.857, 2.0, 12, "high", "up", 7)])
    assert _cells(prod, 0) == ["Pão", "10.9", "2.0", "12", "up", "high", "7"]

    pred = PredictionTableModel([RecommendedLoadItem("p1", "Pão", 8, 10.5, 12, 12)])
    assert pred.columnCount() == 5
    assert _cells(pred, 0) == ["Pão", "8", "10.50", "12", "12"]
