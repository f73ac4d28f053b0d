# delivery_ledger/modules/reporting/model.py
from __future__ import annotations

from typing import Any, List, Optional, Sequence

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt
from PySide6.QtGui import QColor

from ...database.repositories.settlements_repo import (
    ClientPaymentSummary,
    RouteSettlementTotal,
    SettlementRecord,
)
from ...utils.helpers import fmt_money
from ..billing.service import ClientDebtRow
from ..forecasting.predictor import RecommendedLoadItem
from ..loads.production import ProductionSuggestion
from ..loads.utilization import ProductLoadLine, utilization_level

_LEVEL_COLORS = {
    "good": QColor(22, 128, 61),
    "fair": QColor(180, 120, 0),
    "poor": QColor(185, 28, 28),
}

_LEFT = Qt.AlignLeft | Qt.AlignVCenter
_RIGHT = Qt.AlignRight | Qt.AlignVCenter


def _qty(q: float) -> str:
    return str(int(q)) if float(q).is_integer() else f"{q:.2f}"


class _RowsTableModel(QAbstractTableModel):
    """Read-only table over a list of report rows (dataclass instances)."""

    HEADERS: tuple[str, ...] = ()
    LEFT_COLUMNS: tuple[int, ...] = (0,)

    def __init__(self, rows: Optional[Sequence[Any]] = None, parent=None) -> None:
        super().__init__(parent)
        self._rows: List[Any] = list(rows or [])

    def set_rows(self, rows: Sequence[Any]) -> None:
        self.beginResetModel()
        self._rows = list(rows or [])
        self.endResetModel()

    def row_at(self, r: int) -> Any:
        return self._rows[r]

    def rowCount(self, parent=QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent=QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self.HEADERS)

    def headerData(self, section, orientation, role=Qt.DisplayRole):  # type: ignore[override]
        if role != Qt.DisplayRole:
            return None
        if orientation == Qt.Horizontal:
            return self.HEADERS[section]
        return str(section + 1)

    def data(self, index: QModelIndex, role=Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        row = self._rows[index.row()]
        c = index.column()
        if role == Qt.DisplayRole:
            return self.display(row, c)
        if role == Qt.TextAlignmentRole:
            return _LEFT if c in self.LEFT_COLUMNS else _RIGHT
        if role == Qt.ForegroundRole:
            return self.foreground(row, c)
        return None

    def display(self, row: Any, column: int) -> Any:
        raise NotImplementedError

    def foreground(self, row: Any, column: int) -> Optional[QColor]:
        return None


# ------------------------------ A) Client debts ------------------------------

class ClientDebtTableModel(_RowsTableModel):
    HEADERS = ("Client", "Paid Through", "Days", "Debt")
    LEFT_COLUMNS = (0, 1)

    def display(self, row: ClientDebtRow, column: int):
        if column == 0:
            return row.client_name
        if column == 1:
            return row.last_payment_date or "-"
        if column == 2:
            return str(row.days_count)
        return fmt_money(row.total)


# ------------------------------ B) Settlement --------------------------------

class SettlementClientPaymentsTableModel(_RowsTableModel):
    HEADERS = ("Client", "Route", "Method", "Dates", "Paid")
    LEFT_COLUMNS = (0, 1, 2, 3)

    def display(self, row: ClientPaymentSummary, column: int):
        if column == 0:
            return row.client_name
        if column == 1:
            return row.route_name or ""
        if column == 2:
            return row.method
        if column == 3:
            return ", ".join(row.payment_dates)
        return fmt_money(row.total_paid)


class RouteTotalsTableModel(_RowsTableModel):
    HEADERS = ("Route", "Delivered", "Received", "Clients Paid")

    def display(self, row: RouteSettlementTotal, column: int):
        if column == 0:
            return row.route_name
        if column == 1:
            return fmt_money(row.total_delivered)
        if column == 2:
            return fmt_money(row.total_received)
        return str(row.clients_paid)


class SettlementHistoryTableModel(_RowsTableModel):
    HEADERS = ("Confirmed At", "Week", "To Settle", "Delivered", "Variance", "By")
    LEFT_COLUMNS = (0, 1, 5)

    def display(self, row: SettlementRecord, column: int):
        if column == 0:
            return (row.confirmed_at or "")[:19].replace("T", " ")
        if column == 1:
            return f"{row.week_start_date} → {row.week_end_date}"
        if column == 2:
            return fmt_money(row.total_to_settle)
        if column == 3:
            return "-" if row.amount_delivered is None else fmt_money(row.amount_delivered)
        if column == 4:
            return "-" if row.variance is None else fmt_money(row.variance)
        return row.confirmed_by or ""

    def foreground(self, row: SettlementRecord, column: int):
        if column == 4 and row.variance is not None and abs(row.variance) >= 0.01:
            return _LEVEL_COLORS["good"] if row.variance > 0 else _LEVEL_COLORS["poor"]
        return None


# ------------------------------ C) Loads & production ------------------------

class LoadBreakdownTableModel(_RowsTableModel):
    HEADERS = ("Product", "Loaded", "Sold", "Returned", "Utilization")

    def display(self, row: ProductLoadLine, column: int):
        if column == 0:
            return row.product_name
        if column == 1:
            return str(row.loaded)
        if column == 2:
            return str(row.sold)
        if column == 3:
            return f"{row.returned} ⚠" if row.alert_high_return else str(row.returned)
        return f"{row.utilization_rate}%"

    def foreground(self, row: ProductLoadLine, column: int):
        if column == 3 and row.alert_high_return:
            return _LEVEL_COLORS["poor"]
        if column == 4:
            return _LEVEL_COLORS[utilization_level(row.utilization_rate)]
        return None


class ProductionSuggestionTableModel(_RowsTableModel):
    HEADERS = ("Product", "Avg Sold/Day", "Avg Returned", "Suggested", "Trend", "Confidence", "Days")
    LEFT_COLUMNS = (0, 4, 5)

    def display(self, row: ProductionSuggestion, column: int):
        if column == 0:
            return row.product_name
        if column == 1:
            return f"{row.avg_daily:.1f}"
        if column == 2:
            return f"{row.avg_returned:.1f}"
        if column == 3:
            return str(row.suggested_quantity)
        if column == 4:
            return row.trend
        if column == 5:
            return row.confidence
        return str(row.data_points)


# ------------------------------ D) Dynamic clients ---------------------------

class PredictionTableModel(_RowsTableModel):
    """Driver-wide recommended extra load for dynamic clients."""

    HEADERS = ("Product", "Min", "Avg", "Max", "Recommended")

    def display(self, row: RecommendedLoadItem, column: int):
        if column == 0:
            return row.product_name
        if column == 1:
            return str(row.min_total)
        if column == 2:
            return _qty(row.avg_total)
        if column == 3:
            return str(row.max_total)
        return str(row.recommended_total)
